"""
Who is calling, and for which request.
"""

import time
from dataclasses import dataclass, field
from uuid import uuid4

AUTHENTICATED_USER = "authenticated-user"
ANY_ROLE = "any"
ANONYMOUS = "anonymous"
PRIVILEGED = "privileged"


@dataclass(frozen=True)
class Principal:
    """
    The caller a session is opened for.

    Restrictions are evaluated against this identity. Two synthetic roles are
    understood: ``authenticated-user`` is held by every non-anonymous caller
    and ``any`` by everyone. A privileged principal holds every role; it is
    used when authentication is switched off.
    """

    user_id: str = ANONYMOUS
    roles: tuple[str, ...] = ()
    privileged: bool = False

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls()

    @classmethod
    def privileged_user(cls) -> "Principal":
        return cls(user_id=PRIVILEGED, privileged=True)

    @property
    def is_authenticated(self) -> bool:
        return self.privileged or self.user_id != ANONYMOUS

    def has_role(self, role: str) -> bool:
        if self.privileged or role == ANY_ROLE:
            return True
        if role == AUTHENTICATED_USER:
            return self.is_authenticated
        return role in self.roles

    def has_any_role(self, *roles: str) -> bool:
        return any(self.has_role(role) for role in roles)


@dataclass(frozen=True)
class RunContext:
    """One tool call or resource read made by ``principal``."""

    principal: Principal
    request_id: str = field(default_factory=lambda: str(uuid4()))
    started: float = field(default_factory=time.monotonic)

    def elapsed_ms(self) -> float:
        return round((time.monotonic() - self.started) * 1000, 3)
