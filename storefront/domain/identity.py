# storefront/domain/identity.py
from dataclasses import dataclass
from typing import Optional

from storefront.domain.errors import ValidationError


@dataclass(frozen=True)
class Identity:
    """Who the caller is, resolved outside the core: a user or a guest session."""

    user_id: Optional[int] = None
    session_id: Optional[str] = None

    def __post_init__(self):
        if self.session_id is not None and not self.session_id.strip():
            object.__setattr__(self, "session_id", None)
        if (self.user_id is None) == (self.session_id is None):
            raise ValidationError("Exactly one of user_id or session_id is required")

    @classmethod
    def of(cls, user_id: Optional[int] = None, session_id: Optional[str] = None) -> "Identity":
        # a logged-in user wins over a stale guest session id sent alongside
        if user_id is not None:
            return cls(user_id=user_id)
        return cls(session_id=session_id)

    def __str__(self) -> str:
        return f"user {self.user_id}" if self.user_id is not None else f"session {self.session_id}"
