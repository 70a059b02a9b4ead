"""
Identity Resolution

Every request acts as exactly one identity: ``UserIdentity`` for callers with a
valid bearer token, ``AnonymousIdentity`` for everyone else. Anonymous callers
are identified by an opaque session token which they either send back
(header or cookie) or are issued here; the token must be returned to the client
so the next request resolves to the same identity.

Ownership is the only authorization concept: an exam belongs to an identity
when its stored owner has the same kind and value.
"""

import re
import uuid
from dataclasses import dataclass
from typing import Callable, Optional, Union

from examprep.common.auth.exceptions import InvalidTokenError
from examprep.common.auth.jwt import JWTConfig, get_jwt_config, validate_token
from examprep.common.logger import app_logger

logger = app_logger.getChild("auth.identity")

SESSION_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]{8,128}$")


@dataclass(frozen=True)
class UserIdentity:
    """An authenticated user."""
    user_id: str

    kind = "user"

    @property
    def key(self) -> str:
        return f"user:{self.user_id}"


@dataclass(frozen=True)
class AnonymousIdentity:
    """An anonymous caller holding a session token."""
    session_id: str

    kind = "anonymous"

    @property
    def key(self) -> str:
        return f"session:{self.session_id}"


Identity = Union[UserIdentity, AnonymousIdentity]


@dataclass(frozen=True)
class ResolvedIdentity:
    """
    Result of resolving a request.

    Attributes:
        identity: The identity the request acts as
        session_id: Session token to echo back to the client
        issued: Whether ``session_id`` was generated for this request
    """
    identity: Identity
    session_id: str
    issued: bool = False


def generate_session_token() -> str:
    return str(uuid.uuid4())


def is_valid_session_token(token: Optional[str]) -> bool:
    return bool(token) and SESSION_TOKEN_PATTERN.match(token) is not None


class IdentityResolver:
    """
    Maps request credentials to an identity.

    A bearer token that is present but invalid is rejected rather than treated
    as anonymous, so a client never silently loses access to its exams.
    Session tokens never grant anything beyond owning exams.
    """

    def __init__(self,
                 jwt_config: Optional[JWTConfig] = None,
                 token_factory: Callable[[], str] = generate_session_token):
        self._jwt_config = jwt_config
        self._token_factory = token_factory

    def resolve(self, authorization: Optional[str] = None,
                session_header: Optional[str] = None,
                session_cookie: Optional[str] = None) -> ResolvedIdentity:
        """
        Resolve a request's credentials.

        Args:
            authorization: Value of the Authorization header
            session_header: Session token sent in the session header
            session_cookie: Session token sent in the session cookie, used when
                the header is absent

        Returns:
            The resolved identity and the session token to echo back

        Raises:
            InvalidTokenError: If the Authorization header is malformed or the
                token does not validate
            ExpiredTokenError: If the bearer token has expired
        """
        issued = False
        session_token = session_header or session_cookie
        if session_token is not None and not is_valid_session_token(session_token):
            logger.warning("Ignoring malformed session token")
            session_token = None
        if not session_token:
            session_token = self._token_factory()
            issued = True

        if authorization:
            user_id = self._user_from_authorization(authorization)
            return ResolvedIdentity(UserIdentity(user_id), session_token, issued)

        return ResolvedIdentity(AnonymousIdentity(session_token), session_token, issued)

    def _user_from_authorization(self, authorization: str) -> str:
        parts = authorization.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            raise InvalidTokenError("Invalid authorization header format")
        payload = validate_token(parts[1], self._jwt_config or get_jwt_config())
        return str(payload["sub"])
