"""
Optional LLM pass that adds location-specific advice to a finished plan:
travel alerts, tourist traps to avoid nearby, insider tips and a packing
checklist. The plan itself is never changed.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional, Protocol, Sequence

from pydantic import BaseModel, Field, ValidationError

from tripplanner.core.schemas import (
    ChecklistCategory,
    ChecklistItem,
    DayPlan,
    TouristTrapAlert,
    TravelAlert,
)
from tripplanner.core.settings import Settings

logger = logging.getLogger(__name__)

POLISH_TEMPERATURE = 0.7
DESCRIPTION_PREVIEW_CHARS = 100

# Free-form categories the model tends to invent, folded into the fixed set
CHECKLIST_CATEGORY_ALIASES = {
    "TEC": ChecklistCategory.ESSENTIALS,
    "TECH": ChecklistCategory.ESSENTIALS,
    "TECHNOLOGY": ChecklistCategory.ESSENTIALS,
    "ELECTRONICS": ChecklistCategory.ESSENTIALS,
    "CLOTHING": ChecklistCategory.WEATHER,
    "CLOTHES": ChecklistCategory.WEATHER,
    "TOILETRIES": ChecklistCategory.ESSENTIALS,
    "HEALTH": ChecklistCategory.SAFETY,
    "MEDICAL": ChecklistCategory.SAFETY,
    "MEDICINE": ChecklistCategory.SAFETY,
    "MISC": ChecklistCategory.ESSENTIALS,
    "OTHER": ChecklistCategory.ESSENTIALS,
    "DOCUMENTS": ChecklistCategory.DOCUMENTATION,
    "DOCUMENT": ChecklistCategory.DOCUMENTATION,
    "PAPERS": ChecklistCategory.DOCUMENTATION,
}


class ChatProvider(Protocol):
    async def chat_async(self, messages: list[dict[str, Any]], temperature: float = 1.0) -> str: ...


class PolishResult(BaseModel):
    travel_alerts: list[TravelAlert] = Field(default_factory=list)
    tourist_traps: list[TouristTrapAlert] = Field(default_factory=list)
    local_tips: list[str] = Field(default_factory=list)
    checklist: list[ChecklistItem] = Field(default_factory=list)


def map_checklist_category(category: Any) -> Optional[ChecklistCategory]:
    """Map a model-supplied category onto ChecklistCategory, or None if unknown."""
    if not isinstance(category, str):
        return None
    normalized = category.strip().upper()
    if normalized in ChecklistCategory.__members__:
        return ChecklistCategory(normalized)

    mapped = CHECKLIST_CATEGORY_ALIASES.get(normalized)
    if mapped is not None:
        logger.info(f'[CHECKLIST] Mapped invalid category "{category}" to "{mapped.value}"')
        return mapped

    logger.warning(f'[CHECKLIST] Unable to map category "{category}". Skipping item.')
    return None


def build_itinerary_context(days: Sequence[DayPlan], area: str) -> str:
    lines = [f"Itinerary for {area}:", ""]
    for day in days:
        if not day.blocks:
            continue
        lines.append(f"Day {day.day_number}:")
        for place in day.places:
            description = (place.external.address if place.external else None) or "No description"
            lines.append(
                f"- {place.name} ({place.category.value}): {description[:DESCRIPTION_PREVIEW_CHARS]}"
            )
            if place.rating:
                lines.append(f"  Rating: {place.rating}/5 ({place.popularity or 0} reviews)")
        lines.append("")
    return "\n".join(lines)


def build_polish_prompt(area: str, context: str) -> str:
    categories = ", ".join(c.value for c in ChecklistCategory)
    return (
        f"You are a local travel expert for {area}.\n"
        "Analyze this specific itinerary and provide targeted advice.\n"
        "Do NOT provide generic tips. Address these specific locations.\n\n"
        f"{context}\n\n"
        "Generate:\n"
        "1. 2-3 specific warnings relevant to THESE locations.\n"
        "2. 2-3 specific tourist traps to avoid NEAR the places listed.\n"
        '3. 3-5 "insider" local tips for these specific spots.\n'
        "4. 5-7 packing checklist items customized for this specific trip.\n"
        f"   Categories must be EXACTLY one of: {categories}.\n\n"
        "Return ONLY a JSON object, no other text:\n"
        "{\n"
        '  "warnings": [{"title": "...", "description": "..."}],\n'
        '  "tourist_traps": [{"name": "...", "reason": "..."}],\n'
        '  "local_tips": ["...", "..."],\n'
        '  "checklist": [{"category": "...", "item": "...", "reason": "..."}]\n'
        "}"
    )


def _valid_items(raw: Any, model: type[BaseModel], label: str) -> list:
    items = []
    for entry in raw if isinstance(raw, list) else []:
        try:
            items.append(model.model_validate(entry))
        except ValidationError as e:
            logger.warning(f"[POLISH] Skipping malformed {label}: {e.errors()[0]['msg']}")
    return items


def parse_polish_response(text: str) -> PolishResult:
    """
    Parse the model's JSON answer.

    Markdown code fences and text around the object are tolerated. Malformed
    entries are dropped one by one; a reply with no JSON object raises ValueError.
    """
    response_text = text.strip()
    if response_text.startswith("```"):
        lines = response_text.split("\n")
        response_text = "\n".join([line for line in lines if not line.startswith("```")])

    json_match = re.search(r"\{.*\}", response_text, re.DOTALL)
    if not json_match:
        raise ValueError("LLM response contains no JSON object")
    data = json.loads(json_match.group(0))
    if not isinstance(data, dict):
        raise ValueError("LLM response must be a JSON object")

    checklist = []
    for entry in data.get("checklist") or []:
        if not isinstance(entry, dict):
            continue
        category = map_checklist_category(entry.get("category"))
        if category is None:
            continue
        checklist.extend(
            _valid_items([{**entry, "category": category}], ChecklistItem, "checklist item")
        )

    tips = data.get("local_tips") or []
    return PolishResult(
        travel_alerts=_valid_items(data.get("warnings"), TravelAlert, "warning"),
        tourist_traps=_valid_items(data.get("tourist_traps"), TouristTrapAlert, "tourist trap"),
        local_tips=[t.strip() for t in tips if isinstance(t, str) and t.strip()],
        checklist=checklist,
    )


class ItineraryPolisher:
    def __init__(self, provider: ChatProvider, temperature: float = POLISH_TEMPERATURE):
        self.provider = provider
        self.temperature = temperature

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["ItineraryPolisher"]:
        """None when no model is configured."""
        if not settings.aisuite_model:
            return None
        from tripplanner.core.llm_provider import LLMProvider

        return cls(LLMProvider(model=settings.aisuite_model))

    async def polish(self, days: Sequence[DayPlan], area: str) -> PolishResult:
        """
        Ask the model for advice about the scheduled places.

        Raises whatever the provider or the parser raises; the caller decides
        whether a failure matters.
        """
        prompt = build_polish_prompt(area, build_itinerary_context(days, area))
        logger.info(f"[POLISH] Requesting itinerary advice for {area}...")
        response = await self.provider.chat_async(
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
        )
        result = parse_polish_response(response)
        logger.info(
            f"[POLISH] {len(result.travel_alerts)} alerts, {len(result.tourist_traps)} traps, "
            f"{len(result.local_tips)} tips, {len(result.checklist)} checklist items"
        )
        return result
