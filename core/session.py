from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.records import User


@dataclass
class SessionContext:
    """The signed-in user for one caller, passed explicitly to each operation."""
    user: Optional[User] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def refresh(self, user: User) -> None:
        """Swap in a newer copy of the signed-in user; other users are ignored."""
        if self.user is not None and self.user.id == user.id:
            self.user = user
