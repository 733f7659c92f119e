"""Unit tests for bearer token verification."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from fitstudio.auth import principal_from_token
from fitstudio.core.config import get_settings
from fitstudio.core.enums import RoleName
from fitstudio.core.exceptions import UnauthorizedException
from conftest import make_token


def _encode(claims):
    settings = get_settings()
    return jwt.encode(claims, settings.jwt_secret.get_secret_value(), algorithm=settings.jwt_algorithm)


def test_member_token_becomes_member_principal():
    token = make_token(tenant_id="tenant-1", role=RoleName.MEMBER, member_id="member-1", user_id="user-1")

    principal = principal_from_token(token)

    assert principal.user_id == "user-1"
    assert principal.tenant_id == "tenant-1"
    assert principal.role is RoleName.MEMBER
    assert principal.member_id == "member-1"
    assert principal.is_member and not principal.is_staff


def test_instructor_can_run_classes_but_not_schedule():
    principal = principal_from_token(make_token(tenant_id="t", role=RoleName.INSTRUCTOR))

    assert principal.is_staff
    assert principal.can_run_classes
    assert not principal.can_schedule


def test_expired_token_is_rejected():
    token = make_token(tenant_id="t", role=RoleName.OWNER, expires_in=timedelta(seconds=-10))

    with pytest.raises(UnauthorizedException) as exc_info:
        principal_from_token(token)
    assert exc_info.value.status_code == 401


def test_wrong_signature_is_rejected():
    token = make_token(tenant_id="t", role=RoleName.OWNER, secret="not-the-configured-secret")

    with pytest.raises(UnauthorizedException, match="Invalid or expired token"):
        principal_from_token(token)


def test_missing_tenant_claim_is_rejected():
    token = _encode(
        {"sub": "u", "role": "owner", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)}
    )

    with pytest.raises(UnauthorizedException, match="missing required claims"):
        principal_from_token(token)


def test_unknown_role_is_rejected():
    token = _encode(
        {
            "sub": "u",
            "tenant_id": "t",
            "role": "janitor",
            "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
        }
    )

    with pytest.raises(UnauthorizedException, match="unknown role"):
        principal_from_token(token)
