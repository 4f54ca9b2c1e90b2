# evalengine/core/actor.py
from dataclasses import dataclass
from typing import Optional

LINE_MANAGER_POSITIONS = {"Leader"}
DIRECTOR_POSITION = "Director"


@dataclass(frozen=True)
class Actor:
    """Identity of whoever is calling into the engine.

    Built once per request from the authenticated user and passed
    explicitly to every service call.
    """

    id: int
    role: str = "staff"
    position: Optional[str] = None
    name: Optional[str] = None
    # None for single-store installs; everyone then shares one scope
    store_id: Optional[int] = None

    @classmethod
    def from_user(cls, user) -> "Actor":
        return cls(
            id=user.id,
            role=user.role or "staff",
            position=user.position,
            name=user.name,
            store_id=user.store_id,
        )

    def in_store(self, record) -> bool:
        return getattr(record, "store_id", None) == self.store_id

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_director(self) -> bool:
        return self.position == DIRECTOR_POSITION

    @property
    def is_line_manager(self) -> bool:
        return self.position in LINE_MANAGER_POSITIONS

    @property
    def can_create_evaluations(self) -> bool:
        return self.is_director or self.is_line_manager

    @property
    def sees_all_evaluations(self) -> bool:
        return self.is_admin or self.is_director
