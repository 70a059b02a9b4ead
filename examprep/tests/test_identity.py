"""
Tests for identity resolution and bearer token validation.
"""

import pytest

from examprep.common.auth.exceptions import ExpiredTokenError, InvalidTokenError, MissingTokenError
from examprep.common.auth.identity import (
    AnonymousIdentity,
    IdentityResolver,
    UserIdentity,
    is_valid_session_token,
)
from examprep.common.auth.jwt import JWTConfig, create_access_token, validate_token

CONFIG = JWTConfig(secret_key="test-secret", token_issuer="examprep-test")


def resolver(tokens=("issued-token-0001", "issued-token-0002")):
    issued = iter(tokens)
    return IdentityResolver(CONFIG, token_factory=lambda: next(issued))


def test_anonymous_request_is_issued_a_session_token():
    resolved = resolver().resolve()

    assert resolved.identity == AnonymousIdentity("issued-token-0001")
    assert resolved.session_id == "issued-token-0001"
    assert resolved.issued is True


def test_session_header_wins_over_cookie():
    resolved = resolver().resolve(session_header="header-token-1", session_cookie="cookie-token-1")

    assert resolved.identity == AnonymousIdentity("header-token-1")
    assert resolved.issued is False


def test_session_cookie_used_without_header():
    resolved = resolver().resolve(session_cookie="cookie-token-1")
    assert resolved.identity == AnonymousIdentity("cookie-token-1")


@pytest.mark.parametrize("token", ["short", "has spaces in it", "x" * 129, "semi;colon-token"])
def test_malformed_session_token_is_replaced(token):
    resolved = resolver().resolve(session_header=token)

    assert resolved.identity == AnonymousIdentity("issued-token-0001")
    assert resolved.issued is True


def test_valid_bearer_token_resolves_user():
    token = create_access_token("user-7", config=CONFIG)

    resolved = resolver().resolve(authorization=f"Bearer {token}", session_header="header-token-1")

    assert resolved.identity == UserIdentity("user-7")
    assert resolved.session_id == "header-token-1"


@pytest.mark.parametrize("header", ["Token abc", "Bearer", "Bearer a b"])
def test_malformed_authorization_header_is_rejected(header):
    with pytest.raises(InvalidTokenError):
        resolver().resolve(authorization=header)


def test_bearer_token_signed_with_another_key_is_rejected():
    token = create_access_token("user-7", config=JWTConfig(secret_key="other", token_issuer="examprep-test"))
    with pytest.raises(InvalidTokenError):
        resolver().resolve(authorization=f"Bearer {token}")


def test_expired_token():
    token = create_access_token("user-7", expires_in=-1, config=CONFIG)
    with pytest.raises(ExpiredTokenError):
        validate_token(token, CONFIG)


def test_token_type_must_be_access():
    token = create_access_token("user-7", additional_claims={"type": "refresh"}, config=CONFIG)
    with pytest.raises(InvalidTokenError):
        validate_token(token, CONFIG)


def test_identity_keys_do_not_collide():
    assert UserIdentity("abc-12345").key != AnonymousIdentity("abc-12345").key
    assert UserIdentity("abc-12345") != AnonymousIdentity("abc-12345")


def test_session_token_pattern():
    assert is_valid_session_token("5f0c8a9e-1b2c-4d3e-8f9a-0b1c2d3e4f5a")
    assert not is_valid_session_token(None)
    assert not is_valid_session_token("")


@pytest.mark.asyncio
async def test_require_user_rejects_anonymous():
    from examprep.common.auth.dependencies import require_user

    assert await require_user(UserIdentity("user-1")) == UserIdentity("user-1")
    with pytest.raises(MissingTokenError):
        await require_user(AnonymousIdentity("issued-token-0001"))
