"""Tracionar — Credential Vault.

Symmetric encryption for Meta access tokens before they touch the database.
Ciphertext is a Fernet token (version, timestamp, IV, AES-CBC payload, HMAC),
so decrypt needs nothing beyond the one shared secret configured in settings.
"""

import base64
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from app.config import settings
from app.core.errors import CredentialError
from app.core.logging import get_logger

logger = get_logger("vault")


def derive_key(secret: str, salt: str) -> bytes:
    """Derive a URL-safe base64 32-byte Fernet key from an arbitrary secret."""
    kdf = Scrypt(salt=salt.encode("utf-8"), length=32, n=2**14, r=8, p=1)
    return base64.urlsafe_b64encode(kdf.derive(secret.encode("utf-8")))


class CredentialVault:
    """Encrypt/decrypt capability for provider tokens."""

    def __init__(self, secret: str, salt: str = "tracionar-salt"):
        if not secret:
            raise CredentialError(
                "Token encryption secret is not configured. Set TOKEN_ENCRYPTION_SECRET."
            )
        self._cipher = Fernet(derive_key(secret, salt))

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            raise CredentialError("Cannot encrypt an empty token")
        ciphertext = self._cipher.encrypt(plaintext.encode("utf-8")).decode("utf-8")
        logger.info(f"Token encrypted (length={len(plaintext)})")
        return ciphertext

    def decrypt(self, ciphertext: str) -> str:
        if not ciphertext:
            raise CredentialError("No stored token to decrypt")
        try:
            return self._cipher.decrypt(ciphertext.encode("utf-8")).decode("utf-8")
        except InvalidToken as e:
            logger.error("Stored token could not be decrypted")
            raise CredentialError("Unable to decrypt stored token") from e


@lru_cache(maxsize=1)
def get_vault() -> CredentialVault:
    """Return the process-wide vault built from settings."""
    return CredentialVault(
        settings.token_encryption_secret, settings.token_encryption_salt
    )
