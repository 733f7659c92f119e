"""
Bearer token verification.

Tokens are issued by the identity service; this API only verifies them and
turns their claims into a Principal.
"""

import logging
from typing import Any, Dict, Optional, cast

import jwt
from jwt import PyJWTError

from .core.config import Settings, get_settings
from .core.enums import RoleName
from .core.exceptions import UnauthorizedException
from .principal import Principal

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ("sub", "tenant_id", "role")


def decode_access_token(token: str, settings: Optional[Settings] = None) -> Dict[str, Any]:
    cfg = settings or get_settings()
    payload_raw = jwt.decode(
        token,
        cfg.jwt_secret.get_secret_value(),
        algorithms=[cfg.jwt_algorithm],
        options={"verify_aud": False, "require": ["sub"]},
    )
    return cast(Dict[str, Any], payload_raw)


def principal_from_token(token: str, settings: Optional[Settings] = None) -> Principal:
    """Verify ``token`` and build the caller's Principal, raising UnauthorizedException."""
    try:
        payload = decode_access_token(token, settings)
    except PyJWTError as e:
        logger.warning(f"JWT validation error: {str(e)}")
        raise UnauthorizedException("Invalid or expired token")

    missing = [claim for claim in REQUIRED_CLAIMS if not payload.get(claim)]
    if missing:
        logger.warning("Token payload missing claims", extra={"missing": missing})
        raise UnauthorizedException("Token is missing required claims")

    try:
        role = RoleName(str(payload["role"]).lower())
    except ValueError:
        raise UnauthorizedException("Token carries an unknown role")

    member_id = payload.get("member_id")
    return Principal(
        user_id=str(payload["sub"]),
        tenant_id=str(payload["tenant_id"]),
        role=role,
        member_id=str(member_id) if member_id else None,
    )
