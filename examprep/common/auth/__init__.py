"""
Identity and authentication.

Requests resolve to exactly one identity: an authenticated user (bearer JWT)
or an anonymous session token.
"""

from examprep.common.auth.identity import (
    AnonymousIdentity,
    Identity,
    IdentityResolver,
    ResolvedIdentity,
    UserIdentity,
)

__all__ = [
    "AnonymousIdentity",
    "Identity",
    "IdentityResolver",
    "ResolvedIdentity",
    "UserIdentity",
]
