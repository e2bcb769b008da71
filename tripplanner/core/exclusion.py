"""
Per-request record of places already committed to a plan.
"""

from typing import Iterable, Literal

from tripplanner.core.schemas import CandidatePlace

Role = Literal["activity", "meal", "lodging"]


class ExclusionSet:
    """
    Grows monotonically while one trip is generated; there is no removal.

    Places are tracked by id and, when known, by external identifier so that a
    place fetched from the repository and the same place returned by an external
    search are recognised as one.
    """

    def __init__(self, initial_ids: Iterable[str] = ()):
        self._roles: dict[str, Role] = {place_id: "activity" for place_id in initial_ids}
        self._external_roles: dict[str, Role] = {}

    def add(self, place: CandidatePlace, role: Role = "activity") -> None:
        self._roles.setdefault(place.id, role)
        if place.external_id:
            self._external_roles.setdefault(place.external_id, role)

    def add_all(self, places: Iterable[CandidatePlace], role: Role = "activity") -> None:
        for place in places:
            self.add(place, role)

    def role_of(self, place: CandidatePlace) -> Role | None:
        role = self._roles.get(place.id)
        if role is None and place.external_id:
            role = self._external_roles.get(place.external_id)
        return role

    def conflicts(self, place: CandidatePlace, role: Role) -> bool:
        """
        True if the place may not be booked in ``role``.

        Lodging may repeat across nights; anything else may be booked once.
        """
        existing = self.role_of(place)
        if existing is None:
            return False
        return not (existing == "lodging" and role == "lodging")

    def ids(self) -> frozenset[str]:
        return frozenset(self._roles)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, CandidatePlace):
            return self.role_of(item) is not None
        return item in self._roles

    def __len__(self) -> int:
        return len(self._roles)
