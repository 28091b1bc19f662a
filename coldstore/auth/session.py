from dataclasses import dataclass
from typing import Iterable

from coldstore.core.constants import ROLE_ADMIN, ROLE_VIEWER
from coldstore.models import User
from coldstore.services.user_service import resolve_role


@dataclass(frozen=True)
class Session:
    """Who is acting, and with which role."""

    username: str
    role: str

    @classmethod
    def for_user(cls, username: str, users: Iterable[User]) -> "Session":
        return cls(username=username, role=resolve_role(username, users))

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def can_submit(self) -> bool:
        return self.role != ROLE_VIEWER
