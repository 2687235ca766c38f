"""Authentication helpers for FastAPI endpoints.

The moderation access gate decides what an identity may do, so the dependency
here only establishes *who* the caller is and yields ``None`` for anonymous or
invalid credentials instead of raising.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidTokenError

from reportdesk.infra import jwt as jwt_helper
from reportdesk.settings import settings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	roles: Tuple[str, ...] = ()
	handle: Optional[str] = None
	display_name: Optional[str] = None
	session_id: Optional[str] = None

	def has_role(self, role: str) -> bool:
		return role in self.roles


_bearer_scheme = HTTPBearer(auto_error=False)


def _parse_roles(claim: object) -> Tuple[str, ...]:
	if isinstance(claim, (list, tuple)):
		return tuple(str(r).strip() for r in claim if str(r).strip())
	if isinstance(claim, str):
		return tuple(part.strip() for part in claim.split(",") if part.strip())
	return ()


def verify_access_jwt(token: str) -> AuthenticatedUser:
	"""Decode and validate an access JWT and return an AuthenticatedUser.

	Requirements:
	- issuer="reportdesk-api", audience="reportdesk-fe"
	- required claims: sub, exp, iat
	- roles can be list[str] or comma-separated string.
	"""
	payload = jwt_helper.decode_access(token)
	handle = payload.get("handle")
	display_name = payload.get("name") or payload.get("display_name")
	session_id = payload.get("sid")
	return AuthenticatedUser(
		id=str(payload["sub"]).strip(),
		roles=_parse_roles(payload.get("roles") or payload.get("role")),
		handle=str(handle) if handle is not None else None,
		display_name=str(display_name) if display_name is not None else None,
		session_id=str(session_id).strip() if session_id is not None else None,
	)


async def get_optional_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_user_roles: Optional[str] = Header(default=None, alias="X-User-Roles"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Optional[AuthenticatedUser]:
	"""Resolve the caller, or ``None`` when no valid identity was presented.

	In development we allow simple headers. In all other environments, headers are
	ignored and a valid Bearer JWT is required.
	"""
	if credentials and credentials.scheme.lower() == "bearer":
		try:
			return verify_access_jwt(credentials.credentials)
		except InvalidTokenError as exc:
			logger.info("rejected access token", extra={"reason": str(exc)})
			return None

	if settings.is_dev() and x_user_id and x_user_id.strip():
		return AuthenticatedUser(id=x_user_id.strip(), roles=_parse_roles(x_user_roles or ""))

	return None
