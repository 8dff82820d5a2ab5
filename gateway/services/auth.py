"""
Storefront Gateway — Authenticator
====================================

What:  Turns a bearer credential into an Identity.
Why:   The pipeline never interprets token internals; it only needs
       "who is this and what role do they have". Swapping in a JWT or
       session backend means writing another Authenticator.
How:   StaticTokenAuthenticator looks tokens up in a configured mapping
       (settings.api_tokens), which is enough for service-to-service keys
       and for tests.

Contract:
    authenticate(credential) -> Identity
    raises AuthenticationError for an unknown or malformed credential
"""

import hmac
import logging
from abc import ABC, abstractmethod
from typing import Dict, Mapping

from gateway.exceptions import AuthenticationError
from gateway.pipeline.request import Identity

logger = logging.getLogger(__name__)


class Authenticator(ABC):
    @abstractmethod
    async def authenticate(self, credential: str) -> Identity:
        """Resolve a credential or raise AuthenticationError."""


class StaticTokenAuthenticator(Authenticator):
    """
    Looks up bearer tokens in a fixed mapping.

    Args:
        tokens: token → {"id": ..., "role": ...}; role defaults to "user"
    """

    def __init__(self, tokens: Mapping[str, Mapping[str, str]]):
        self._identities: Dict[str, Identity] = {}
        for token, record in tokens.items():
            if not token or "id" not in record:
                raise ValueError("each API token needs a non-empty token and an 'id'")
            self._identities[token] = Identity(id=str(record["id"]), role=record.get("role", "user"))
        logger.info("Static token authenticator loaded %d token(s)", len(self._identities))

    async def authenticate(self, credential: str) -> Identity:
        if not credential:
            raise AuthenticationError("Access token required")
        for token, identity in self._identities.items():
            if hmac.compare_digest(token.encode(), credential.encode()):
                return identity
        raise AuthenticationError("Invalid or expired token")
