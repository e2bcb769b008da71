from __future__ import annotations

import asyncio
from typing import Any

import aisuite as ai  # type: ignore


class LLMProvider:
    """Chat completions through aisuite; ``model`` is "<provider>:<model>"."""

    def __init__(self, model: str) -> None:
        self.model = model
        try:
            self._client = ai.Client()
        except Exception as exc:  # fail fast if aisuite cannot initialize
            raise RuntimeError("Failed to initialize aisuite client") from exc

    def chat(self, messages: list[dict[str, Any]], temperature: float = 1.0) -> str:
        """messages: list of dicts with keys role (system|user|assistant) and content"""
        resp = self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
        )
        return resp.choices[0].message.content or ""

    async def chat_async(
        self, messages: list[dict[str, Any]], temperature: float = 1.0
    ) -> str:
        # aisuite is synchronous; keep the event loop free while it waits
        return await asyncio.to_thread(self.chat, messages, temperature)
