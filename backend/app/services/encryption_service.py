"""
Encryption at rest for secret values.
"""

import base64
import hashlib
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from loguru import logger

from app.core.config import settings
from app.utils.exceptions import CryptVaultException


class EncryptionService:
    def __init__(self):
        self._fernet = Fernet(self._get_key())

    def _get_key(self) -> bytes:
        if settings.SECRETS_ENCRYPTION_KEY:
            return settings.SECRETS_ENCRYPTION_KEY.encode("utf-8")
        # Derive a stable 32-byte key from SECRET_KEY.
        digest = hashlib.sha256(settings.SECRET_KEY.encode("utf-8")).digest()
        return base64.urlsafe_b64encode(digest)

    def encrypt(self, value: str) -> str:
        token = self._fernet.encrypt(value.encode("utf-8"))
        return token.decode("utf-8")

    def decrypt(self, token: str) -> Optional[str]:
        try:
            raw = self._fernet.decrypt(token.encode("utf-8"))
            return raw.decode("utf-8")
        except InvalidToken:
            return None

    def reveal(self, token: str) -> str:
        """Decrypt a stored value, failing loudly when the key does not match."""
        value = self.decrypt(token)
        if value is None:
            logger.error("Stored secret value could not be decrypted (encryption key mismatch?)")
            raise CryptVaultException("Stored value could not be decrypted")
        return value


# Singleton instance
encryption_service = EncryptionService()
