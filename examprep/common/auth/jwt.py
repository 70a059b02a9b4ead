"""
Bearer Token Validation

Registered users are identified by HS256 access tokens issued by the account
service. This module only checks them and extracts the subject;
``create_access_token`` signs tokens with the same key for tooling and tests.
"""

import datetime
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import jwt

from examprep.common.auth.exceptions import ExpiredTokenError, InvalidTokenError

ACCESS_TOKEN_TYPE = "access"
REQUIRED_CLAIMS = ["exp", "iat", "sub", "type"]


@dataclass
class JWTConfig:
    """
    Token verification settings.

    Attributes:
        secret_key: Shared signing key
        algorithm: Signing algorithm
        access_token_expires: Lifetime of tokens created here, in minutes
        token_issuer: Expected ``iss`` claim
    """
    secret_key: str
    algorithm: str = "HS256"
    access_token_expires: int = 60
    token_issuer: str = "examprep-api"


_jwt_config = JWTConfig(secret_key=os.environ.get("JWT_SECRET_KEY", "dev-secret-key"))


def set_jwt_config(config: JWTConfig) -> None:
    global _jwt_config
    _jwt_config = config


def get_jwt_config() -> JWTConfig:
    return _jwt_config


def create_access_token(subject: Union[str, int],
                        additional_claims: Optional[Dict[str, Any]] = None,
                        expires_in: Optional[int] = None,
                        config: Optional[JWTConfig] = None) -> str:
    """
    Sign an access token for ``subject``.

    Args:
        subject: User id placed in the ``sub`` claim
        additional_claims: Extra claims; they override the standard ones
        expires_in: Lifetime in minutes, defaults to the configured lifetime
        config: Signing settings, defaults to the process-wide settings

    Returns:
        The encoded token
    """
    config = config or _jwt_config
    issued_at = datetime.datetime.now(datetime.timezone.utc)
    lifetime = config.access_token_expires if expires_in is None else expires_in
    claims: Dict[str, Any] = {
        "sub": str(subject),
        "iss": config.token_issuer,
        "iat": issued_at,
        "exp": issued_at + datetime.timedelta(minutes=lifetime),
        "type": ACCESS_TOKEN_TYPE,
    }
    claims.update(additional_claims or {})
    return jwt.encode(claims, config.secret_key, algorithm=config.algorithm)


def validate_token(token: str, config: Optional[JWTConfig] = None) -> Dict[str, Any]:
    """
    Verify an access token and return its claims.

    Raises:
        ExpiredTokenError: If the token has expired
        InvalidTokenError: For any other signature, claim or type problem
    """
    config = config or _jwt_config
    try:
        claims = jwt.decode(
            token,
            config.secret_key,
            algorithms=[config.algorithm],
            issuer=config.token_issuer,
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError as e:
        raise ExpiredTokenError() from e
    except jwt.PyJWTError as e:
        raise InvalidTokenError(f"Invalid token: {e}") from e

    if claims["type"] != ACCESS_TOKEN_TYPE:
        raise InvalidTokenError(f"Expected an {ACCESS_TOKEN_TYPE} token, got {claims['type']}")
    if not claims["sub"]:
        raise InvalidTokenError("Token has an empty subject")
    return claims
