"""
Storefront Gateway — Authentication & Authorization Stages
============================================================

What:  Attach an Identity to the request, and gate routes by role.
How:   AuthenticationStage reads `Authorization: Bearer <token>`, asks the
       Authenticator for an Identity and delegates with a descriptor that
       carries it. With `required=False` an anonymous request passes
       through untouched, but a bad token is still rejected.
       AuthorizationStage checks the identity's role against an allow-list.

Responses:
    no / invalid credential  → 401 {"error": "authentication_required", ...}
    role not allowed         → 403 {"error": "insufficient_permissions", ...}
"""

import inspect
from typing import Iterable, Optional

from gateway.exceptions import AuthenticationError, AuthorizationError
from gateway.pipeline.stage import Delegate, Stage
from gateway.services.auth import Authenticator

BEARER_PREFIX = "bearer "


def bearer_credential(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an Authorization header, or None."""
    if not authorization:
        return None
    if not authorization.lower().startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


class AuthenticationStage(Stage):
    def __init__(self, authenticator: Authenticator, required: bool = True, name: str = None):
        self.authenticator = authenticator
        self.required = required
        self._name = name

    async def enter(self, request, context):
        header = request.header("authorization")
        credential = bearer_credential(header)
        if credential is None:
            if header:
                raise AuthenticationError("Malformed authorization header")
            if self.required:
                raise AuthenticationError("Access token required")
            return None

        identity = self.authenticator.authenticate(credential)
        if inspect.isawaitable(identity):
            identity = await identity
        return Delegate(request=request.with_identity(identity))


class AuthorizationStage(Stage):
    def __init__(self, roles: Iterable[str], name: str = None):
        self.roles = frozenset(roles)
        self._name = name

    async def enter(self, request, context):
        if request.identity is None:
            raise AuthenticationError("Not authenticated")
        if self.roles and request.identity.role not in self.roles:
            raise AuthorizationError(
                "Access denied: insufficient permissions",
                context={"role": request.identity.role, "required": sorted(self.roles)},
            )
        return None
