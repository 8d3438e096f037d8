"""
Caller authentication seam for geography scoping.

The scoping gate only needs "who is calling": an ``Authenticator`` turns an
inbound request into a ``CallerIdentity`` or None. ``JWTAuthenticator`` is
the default and reads ``Authorization: Bearer <token>``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

import jwt as pyjwt

from efiling.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallerIdentity:
    """A verified caller: system user id plus the role claims it carried."""

    user_id: int
    role_claims: tuple[str, ...] = field(default_factory=tuple)


class Authenticator(Protocol):
    def authenticate(self, request) -> CallerIdentity | None:
        ...


class JWTAuthenticator:
    """Verify an HS256 bearer access token from the request headers."""

    def authenticate(self, request) -> CallerIdentity | None:
        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return None

        token = auth_header[7:]  # Strip "Bearer "
        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired access token presented")
            return None
        except pyjwt.InvalidTokenError as exc:
            logger.info("Invalid access token presented: %s", exc)
            return None

        try:
            user_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            return None
        return CallerIdentity(user_id=user_id, role_claims=tuple(payload.get("roles") or ()))
