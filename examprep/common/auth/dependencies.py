"""
Authentication dependencies for the exam API.

``get_identity`` resolves every request to a user or an anonymous session and
hands the session token back to the client; ``require_user`` narrows that to
authenticated users.
"""

from typing import Optional

from fastapi import Depends, Header, Request, Response

from examprep.common.auth.exceptions import MissingTokenError
from examprep.common.auth.identity import Identity, IdentityResolver, UserIdentity
from examprep.config import Settings, get_settings


def _settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def _resolver(request: Request) -> IdentityResolver:
    resolver = getattr(request.app.state, "identity_resolver", None)
    if resolver is None:
        resolver = IdentityResolver()
        request.app.state.identity_resolver = resolver
    return resolver


async def get_identity(
    request: Request,
    response: Response,
    authorization: Optional[str] = Header(None),
) -> Identity:
    """
    Resolve the identity the request acts as.

    The session token is echoed in the session header and, for anonymous
    callers, set as a cookie so the next request resolves to the same owner.

    Raises:
        AuthError: If a bearer token is present but invalid or expired
    """
    settings = _settings(request)
    resolved = _resolver(request).resolve(
        authorization=authorization,
        session_header=request.headers.get(settings.SESSION_HEADER),
        session_cookie=request.cookies.get(settings.SESSION_COOKIE),
    )

    response.headers[settings.SESSION_HEADER] = resolved.session_id
    if resolved.identity.kind == "anonymous":
        response.set_cookie(
            settings.SESSION_COOKIE,
            resolved.session_id,
            max_age=settings.SESSION_COOKIE_MAX_AGE,
            httponly=True,
            samesite="lax",
        )

    request.state.identity = resolved.identity
    return resolved.identity


async def require_user(identity: Identity = Depends(get_identity)) -> UserIdentity:
    """
    Require an authenticated user.

    Raises:
        MissingTokenError: If the request is anonymous
    """
    if not isinstance(identity, UserIdentity):
        raise MissingTokenError("This operation requires a signed-in user")
    return identity
