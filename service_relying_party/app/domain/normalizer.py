"""
Turns the FIDO2 assertion/result payload into a bearer token.

The two platforms answer a successful assertion differently:

- ISVA hands back the access token directly, placed in
  ``attributes.responseData.access_token`` by the FIDO2 mediator.
- ISV returns a signed ``assertion`` that still has to be exchanged at the
  token endpoint with the JWT-bearer grant.
"""

import json
from typing import Any, Optional

from shared.errors import ResponseParseError
from shared.logging import get_logger
from ..adapters.base import TokenClient
from .models import Platform, Token


class SigninResponseNormalizer:
    """Platform-aware parser for sign-in verification responses."""

    def __init__(self, platform: Platform, auth_tokens: TokenClient):
        self.platform = platform
        self.auth_tokens = auth_tokens
        self.logger = get_logger("relying_party.normalizer")

    async def normalize(self, payload: bytes) -> Token:
        document = self._decode(payload)

        if self.platform is Platform.ISVA:
            access_token = _dig(document, "attributes", "responseData", "access_token")
            if not isinstance(access_token, str) or not access_token:
                raise ResponseParseError(
                    "Unable to parse the ISVA assertion data from the FIDO2 assertion/result response. "
                    "Check the FIDO2 mediator JavaScript."
                )
            return Token(access_token=access_token)

        if self.platform is Platform.ISV:
            assertion = _dig(document, "assertion")
            if not isinstance(assertion, str) or not assertion:
                raise ResponseParseError(
                    "Unable to parse the ISV assertion data from the FIDO2 assertion/result response."
                )
            self.logger.info("Exchanging FIDO2 assertion for token")
            return await self.auth_tokens.jwt_bearer_grant(assertion)

        raise ResponseParseError()

    def _decode(self, payload: bytes) -> Any:
        try:
            return json.loads(payload)
        except (TypeError, ValueError) as e:
            self.logger.warning("Assertion result is not JSON", error=str(e))
            raise ResponseParseError() from e


def _dig(document: Any, *path: str) -> Optional[Any]:
    """Walk nested mappings, returning None as soon as a level is missing."""
    current = document
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current
