from __future__ import annotations

import logging
import re
import uuid
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from tripplanner.core.schemas import CandidatePlace, Classification, PlaceCategory, PriceLevel
from tripplanner.core.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class CandidateSource(ABC):
    """Place repository consumed by the planning engine."""

    @abstractmethod
    def fetch(
        self,
        categories: Iterable[PlaceCategory],
        country: str,
        city: Optional[str] = None,
        limit: int = 20,
        exclude_ids: Iterable[str] = (),
        price_level: Optional[PriceLevel] = None,
        exclude_tourist_traps: bool = True,
    ) -> list[CandidatePlace]:
        """
        Fetch places matching the filters, in the repository's default order
        (rating desc, then popularity desc). Callers re-sort as they need.
        """

    @abstractmethod
    def find_by_external_id(self, external_id: str) -> Optional[CandidatePlace]:
        """Look up a stored place by its external-provider identifier."""

    @abstractmethod
    def create(self, candidate: CandidatePlace) -> CandidatePlace:
        """
        Persist a place. Idempotent for places with an external identifier:
        creating the same external place twice returns the stored record.
        """


def _exact_ci(value: str) -> dict[str, str]:
    return {"$regex": f"^{re.escape(value.strip())}$", "$options": "i"}


def place_to_document(place: CandidatePlace, place_id: str) -> dict[str, Any]:
    doc = place.model_dump(mode="json", exclude={"is_external"})
    doc["id"] = place_id
    return doc


def document_to_place(doc: dict[str, Any]) -> CandidatePlace:
    doc = dict(doc)
    doc.pop("_id", None)  # Remove MongoDB ObjectId
    return CandidatePlace(**doc, is_external=False)


class MongoPlaceRepository(CandidateSource):
    def __init__(self, collection: Optional[Collection] = None, settings: Optional[Settings] = None):
        if collection is None:
            settings = settings or get_settings()
            if not settings.mongodb_uri:
                raise ValueError("MONGODB_URI environment variable is required")

            client = MongoClient(
                settings.mongodb_uri,
                serverSelectionTimeoutMS=5000,  # 5 second timeout
                connectTimeoutMS=10000,
                socketTimeoutMS=20000,
                retryWrites=True,
                retryReads=True,
            )
            collection = client[settings.database_name].places
            self._ensure_indexes(collection)

        self.collection = collection

    @staticmethod
    def _ensure_indexes(collection: Collection) -> None:
        try:
            collection.create_index("id", unique=True)
            collection.create_index("external.external_id", unique=True, sparse=True)
            collection.create_index(
                [("country", ASCENDING), ("category", ASCENDING), ("rating", DESCENDING)]
            )
        except PyMongoError as e:
            logger.warning(f"[REPO] Index creation failed (might already exist): {e}")

    def fetch(
        self,
        categories: Iterable[PlaceCategory],
        country: str,
        city: Optional[str] = None,
        limit: int = 20,
        exclude_ids: Iterable[str] = (),
        price_level: Optional[PriceLevel] = None,
        exclude_tourist_traps: bool = True,
    ) -> list[CandidatePlace]:
        if limit <= 0:
            return []

        query: dict[str, Any] = {
            "category": {"$in": [PlaceCategory(c).value for c in categories]},
            "country": _exact_ci(country),
        }
        if exclude_tourist_traps:
            query["classification"] = {"$ne": Classification.TOURIST_TRAP.value}
        if city:
            query["city"] = _exact_ci(city)
        if price_level:
            query["price_level"] = PriceLevel(price_level).value
        excluded = list(exclude_ids)
        if excluded:
            query["id"] = {"$nin": excluded}

        cursor = (
            self.collection.find(query)
            .sort([("rating", DESCENDING), ("popularity", DESCENDING)])
            .limit(limit)
        )
        return [document_to_place(doc) for doc in cursor]

    def find_by_external_id(self, external_id: str) -> Optional[CandidatePlace]:
        doc = self.collection.find_one({"external.external_id": external_id})
        return document_to_place(doc) if doc else None

    def create(self, candidate: CandidatePlace) -> CandidatePlace:
        place_id = f"plc_{uuid.uuid4().hex[:12]}"
        doc = place_to_document(candidate, place_id)

        external_id = candidate.external_id
        if not external_id:
            self.collection.insert_one(doc)
            return document_to_place(doc)

        self.collection.update_one(
            {"external.external_id": external_id},
            {"$setOnInsert": doc},
            upsert=True,
        )
        stored = self.collection.find_one({"external.external_id": external_id})
        return document_to_place(stored) if stored else document_to_place(doc)
