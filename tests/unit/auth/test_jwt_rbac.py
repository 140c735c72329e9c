from __future__ import annotations

from datetime import timedelta

import pytest

from studioflow.auth.jwt import create_access_token, decode_access_token, decode_jwt, encode_jwt
from studioflow.auth.rbac import (
    FINANCIAL_PAY,
    PROJECTS_READ,
    PROJECTS_SPECIAL_STATUS_UPDATE,
    PROJECTS_STAGE_UPDATE,
    has_scopes,
    require_scopes,
)
from studioflow.core.dependencies import get_current_user
from studioflow.core.exceptions import AuthenticationError, AuthorizationError


def test_jwt_roundtrip_contains_required_claims():
    token = create_access_token(user_id=10, role="editor", secret="test-secret")
    claims = decode_jwt(token, secret="test-secret")
    assert claims["sub"] == "10"
    assert claims["role"] == "editor"
    assert claims["token_use"] == "access"
    assert "exp" in claims
    assert "iat" in claims
    assert "jti" in claims


def test_jwt_rejects_tampered_and_expired_tokens():
    token = create_access_token(user_id=10, role="viewer", secret="test-secret")
    with pytest.raises(AuthenticationError, match="signature"):
        decode_jwt(token, secret="other-secret")

    expired = encode_jwt({"sub": "10", "role": "viewer"}, secret="test-secret", ttl=timedelta(minutes=-5))
    with pytest.raises(AuthenticationError, match="expired"):
        decode_jwt(expired, secret="test-secret")

    with pytest.raises(AuthenticationError, match="format"):
        decode_jwt("not-a-token", secret="test-secret")


def test_rbac_blocks_missing_scope():
    require_scopes("viewer", [PROJECTS_READ])
    with pytest.raises(AuthorizationError):
        require_scopes("viewer", [PROJECTS_STAGE_UPDATE])


def test_only_admin_manager_and_editor_change_special_status():
    allowed = [role for role in ("admin", "manager", "editor", "viewer") if has_scopes(role, [PROJECTS_SPECIAL_STATUS_UPDATE])]
    assert allowed == ["admin", "manager", "editor"]


def test_payments_are_registered_by_managers_only():
    assert has_scopes("manager", [FINANCIAL_PAY]) is True
    assert has_scopes("editor", [FINANCIAL_PAY]) is False
    assert has_scopes("admin", [FINANCIAL_PAY]) is True


def test_current_user_resolves_from_token(config):
    token = create_access_token(user_id=3, role="Manager", secret=config.JWT_SECRET)
    user = get_current_user(token=token, settings=config)
    assert user.user_id == 3
    assert user.role == "manager"


def test_current_user_rejects_unknown_role(config):
    token = create_access_token(user_id=3, role="intern", secret=config.JWT_SECRET)
    with pytest.raises(AuthenticationError):
        get_current_user(token=token, settings=config)


def test_access_decoding_rejects_other_token_uses():
    refresh = encode_jwt({"sub": "3", "role": "editor", "token_use": "refresh"}, secret="test-secret", ttl=timedelta(days=1))
    with pytest.raises(AuthenticationError, match="API access"):
        decode_access_token(refresh, secret="test-secret")

    anonymous = encode_jwt({"role": "editor"}, secret="test-secret", ttl=timedelta(minutes=5))
    with pytest.raises(AuthenticationError, match="claims"):
        decode_access_token(anonymous, secret="test-secret")
