"""
Capability token codec.

Seals a selector/token pair into an opaque, client-held token so the
verify-code-for-reset and complete-reset requests can be linked without any
server-side session. Fernet provides authenticated encryption (AES-128-CBC
with an HMAC-SHA256 tag), so a token that was altered in any way fails to
decrypt rather than yielding a different payload.

The token carries no expiry of its own; the identity provider's expiry and
one-time-use rules on the underlying pair are what bound its lifetime.
Exactly one key is active; there is no fallback to older keys.
"""

from __future__ import annotations

import json

from cryptography.fernet import Fernet, InvalidToken

from services.exceptions import CapabilityDecodeError


class CapabilityTokenCodec:
    def __init__(self, key: str | bytes) -> None:
        """
        Args:
            key: urlsafe-base64 encoded 32-byte Fernet key.

        Raises:
            ValueError: the key is not a valid Fernet key.
        """
        if isinstance(key, str):
            key = key.encode("ascii")
        self._fernet = Fernet(key)

    def encode(self, selector: str, token: str) -> str:
        payload = json.dumps(
            {"selector": selector, "token": token},
            sort_keys=True,
            separators=(",", ":"),
        )
        return self._fernet.encrypt(payload.encode("utf-8")).decode("ascii")

    def decode(self, opaque_token: str) -> tuple[str, str]:
        """Return the ``(selector, token)`` sealed in *opaque_token*.

        Raises:
            CapabilityDecodeError: authentication failed, the ciphertext is
                malformed, or the inner payload is not a selector/token pair.
        """
        try:
            plaintext = self._fernet.decrypt(opaque_token.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError, TypeError, AttributeError) as e:
            raise CapabilityDecodeError("capability token rejected") from e

        try:
            data = json.loads(plaintext.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise CapabilityDecodeError("capability payload is not JSON") from e

        if not isinstance(data, dict) or set(data) != {"selector", "token"}:
            raise CapabilityDecodeError("capability payload has the wrong shape")

        selector, token = data["selector"], data["token"]
        if not isinstance(selector, str) or not isinstance(token, str):
            raise CapabilityDecodeError("capability payload fields must be strings")
        if not selector or not token:
            raise CapabilityDecodeError("capability payload fields are empty")
        return selector, token
