# storefront/domain/attribution.py
from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class AdminActor:
    id: int
    kind = "admin"


@dataclass(frozen=True)
class UserActor:
    id: int
    kind = "user"


@dataclass(frozen=True)
class SystemActor:
    kind = "system"

    @property
    def id(self) -> None:
        return None


Actor = Union[AdminActor, UserActor, SystemActor]

SYSTEM = SystemActor()


def actor_columns(actor: Actor) -> dict:
    """History columns for an actor; at most one of them is ever set."""
    return {
        "admin_id": actor.id if isinstance(actor, AdminActor) else None,
        "user_id": actor.id if isinstance(actor, UserActor) else None,
    }


def actor_from_columns(admin_id: Optional[int], user_id: Optional[int]) -> Actor:
    if admin_id is not None and user_id is not None:
        raise ValueError("History row attributed to both an admin and a user")
    if admin_id is not None:
        return AdminActor(admin_id)
    if user_id is not None:
        return UserActor(user_id)
    return SYSTEM
