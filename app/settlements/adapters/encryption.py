"""
JWE payload encryption for the payout provider.

The provider requires payout and seller-registration bodies to be sent as
compact JWE tokens encrypted directly with the merchant security key:

    alg: "dir"       (the security key is the content encryption key)
    enc: "A256GCM"   (AES-256-GCM, authenticated)

Each token's protected header also carries "iat" (ISO-8601 issue time with
the Asia/Seoul offset) and "nonce" (random UUID). The provider rejects
tokens without them, and the nonce guarantees that two encryptions of the
same payload never produce the same ciphertext.

Usage:
    from settlements.adapters.encryption import EncryptedChannel

    channel = EncryptedChannel.from_config(get_provider_config())
    token = channel.encrypt({"refPayoutId": "...", "amount": "8000.00"})
    payload = channel.decrypt(response_token)

Security:
    - The key is decoded once at construction and never logged
    - Plaintext is only logged at DEBUG, masked, and only its size
    - Decryption failures raise without returning partial data
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

from jwcrypto import jwe, jwk
from jwcrypto.common import JWException, base64url_encode, json_encode

from settlements.exceptions import ErrorKind, SettlementError

if TYPE_CHECKING:
    from settlements.conf import ProviderConfig

logger = logging.getLogger(__name__)

KEY_ENCRYPTION_ALGORITHM = "dir"
CONTENT_ENCRYPTION_ALGORITHM = "A256GCM"
KEY_LENGTH_BYTES = 32
ISSUE_TIMEZONE = ZoneInfo("Asia/Seoul")


def _encryption_error(message: str, **details: Any) -> SettlementError:
    return SettlementError(message, kind=ErrorKind.ENCRYPTION, details=details)


class EncryptedChannel:
    """
    Encrypts provider request bodies and decrypts provider responses.

    Args:
        security_key: Hex-encoded key of at least 32 bytes. Only the first
            32 bytes are used, matching AES-256.

    Raises:
        SettlementError(kind=ENCRYPTION): If the key is not valid hex or too
            short. The message never contains key material.
    """

    def __init__(self, security_key: str) -> None:
        self._key = self._load_key(security_key)

    @classmethod
    def from_config(cls, config: ProviderConfig) -> EncryptedChannel:
        return cls(config.security_key)

    @staticmethod
    def _load_key(security_key: str) -> jwk.JWK:
        if not security_key or not security_key.strip():
            raise _encryption_error("Security key is not configured")
        try:
            key_bytes = bytes.fromhex(security_key.strip())
        except ValueError:
            raise _encryption_error("Security key is not valid hex")
        if len(key_bytes) < KEY_LENGTH_BYTES:
            raise _encryption_error(
                "Security key is too short",
                length_bytes=len(key_bytes),
                required_bytes=KEY_LENGTH_BYTES,
            )
        return jwk.JWK(kty="oct", k=base64url_encode(key_bytes[:KEY_LENGTH_BYTES]))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(alg={KEY_ENCRYPTION_ALGORITHM}, enc={CONTENT_ENCRYPTION_ALGORITHM})"

    # =========================================================================
    # Encryption
    # =========================================================================

    def build_header(self) -> dict[str, str]:
        """Protected header with a fresh issue time and nonce."""
        return {
            "alg": KEY_ENCRYPTION_ALGORITHM,
            "enc": CONTENT_ENCRYPTION_ALGORITHM,
            "iat": datetime.now(ISSUE_TIMEZONE).isoformat(),
            "nonce": str(uuid.uuid4()),
        }

    def encrypt(self, payload: dict[str, Any]) -> str:
        """
        Encrypt a JSON-serialisable payload into a compact JWE token.

        Args:
            payload: Request body

        Returns:
            Compact JWE serialization (five dot-separated segments)

        Raises:
            SettlementError(kind=ENCRYPTION): If the payload is missing or
                cannot be serialised
        """
        if payload is None:
            raise _encryption_error("Payload to encrypt is missing")

        try:
            plaintext = json.dumps(payload, ensure_ascii=False, default=str)
        except (TypeError, ValueError) as e:
            raise _encryption_error("Payload is not JSON serialisable", error_type=type(e).__name__)

        try:
            token = jwe.JWE(plaintext.encode("utf-8"), protected=json_encode(self.build_header()))
            token.add_recipient(self._key)
            serialized = token.serialize(compact=True)
        except (JWException, ValueError) as e:
            logger.error(
                "JWE encryption failed",
                extra={"error_type": type(e).__name__},
            )
            raise _encryption_error("JWE encryption failed", error_type=type(e).__name__)

        logger.debug(
            "JWE encryption completed",
            extra={"plaintext_length": len(plaintext), "token_length": len(serialized)},
        )
        return serialized

    # =========================================================================
    # Decryption
    # =========================================================================

    def decrypt(self, token: str) -> dict[str, Any]:
        """
        Decrypt a compact JWE token into a JSON object.

        Args:
            token: Compact JWE serialization

        Returns:
            The decrypted JSON object

        Raises:
            SettlementError(kind=ENCRYPTION): On tampering, wrong key,
                malformed tokens or a payload that is not a JSON object
        """
        if not token or not token.strip():
            raise _encryption_error("Token to decrypt is empty")

        try:
            jwe_token = jwe.JWE()
            jwe_token.deserialize(token.strip(), key=self._key)
            plaintext = jwe_token.payload.decode("utf-8")
            payload = json.loads(plaintext)
        except (JWException, ValueError, UnicodeDecodeError) as e:
            logger.warning(
                "JWE decryption failed",
                extra={"error_type": type(e).__name__, "token_length": len(token)},
            )
            raise _encryption_error("JWE decryption failed", error_type=type(e).__name__)

        if not isinstance(payload, dict):
            raise _encryption_error(
                "Decrypted payload is not a JSON object",
                payload_type=type(payload).__name__,
            )

        logger.debug("JWE decryption completed", extra={"plaintext_length": len(plaintext)})
        return payload

    @staticmethod
    def looks_encrypted(body: str) -> bool:
        """Check if a response body has the compact JWE shape."""
        text = (body or "").strip()
        return text.count(".") == 4 and not text.startswith("{")


__all__ = ["EncryptedChannel"]
