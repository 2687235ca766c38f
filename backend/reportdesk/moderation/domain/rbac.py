"""Access gate for filing and reviewing reports."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from reportdesk.infra.auth import AuthenticatedUser
from reportdesk.moderation.domain.exceptions import Unauthorized
from reportdesk.obs import metrics as obs_metrics

DEFAULT_REVIEWER_ROLES = ("reviewer", "moderator", "admin")


@dataclass(frozen=True)
class AccessGate:
    """Filing needs any identity; listing needs a reviewer-or-higher role.

    Both checks fail closed with the same ``Unauthorized`` error so callers
    cannot tell a missing identity from an insufficient one.
    """

    reviewer_roles: frozenset[str] = frozenset(DEFAULT_REVIEWER_ROLES)

    @classmethod
    def from_roles(cls, roles: Iterable[str]) -> "AccessGate":
        return cls(reviewer_roles=frozenset(role for role in roles if role))

    def authorize_filing(self, caller: Optional[AuthenticatedUser]) -> AuthenticatedUser:
        if caller is None or not str(caller.id or "").strip():
            obs_metrics.access_denied("file")
            raise Unauthorized()
        return caller

    def authorize_listing(self, caller: Optional[AuthenticatedUser]) -> AuthenticatedUser:
        if caller is None or not str(caller.id or "").strip():
            obs_metrics.access_denied("list")
            raise Unauthorized()
        if not any(caller.has_role(role) for role in self.reviewer_roles):
            obs_metrics.access_denied("list")
            raise Unauthorized()
        return caller
