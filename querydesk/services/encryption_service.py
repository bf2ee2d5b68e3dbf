"""
Encryption service
Encrypts stored connection passwords at rest
"""
import os
from cryptography.fernet import Fernet, InvalidToken
from typing import Optional

from ..utils.logger import get_logger

logger = get_logger(__name__)


class EncryptionService:
    """Fernet wrapper for secrets kept in the config database"""

    def __init__(self, key: Optional[bytes] = None):
        """
        Args:
            key: urlsafe base64 Fernet key; defaults to ENCRYPTION_KEY, and a
                 throwaway key is generated if that is unset
        """
        if key is None:
            key_str = os.getenv("ENCRYPTION_KEY")
            if key_str:
                key = key_str.encode()
            else:
                key = Fernet.generate_key()
                logger.warning(
                    "ENCRYPTION_KEY is not set; generated an ephemeral key. "
                    "Stored passwords will not be readable after restart."
                )

        self.cipher = Fernet(key)

    def encrypt(self, plaintext: Optional[str]) -> str:
        if not plaintext:
            return ""

        return self.cipher.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: Optional[str]) -> str:
        """
        Raises:
            ValueError: the ciphertext is invalid or was made with another key
        """
        if not ciphertext:
            return ""

        try:
            return self.cipher.decrypt(ciphertext.encode()).decode()
        except InvalidToken as e:
            raise ValueError("Unable to decrypt stored secret") from e

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode()


_encryption_service = None


def get_encryption_service() -> EncryptionService:
    """Process-wide encryption service"""
    global _encryption_service
    if _encryption_service is None:
        _encryption_service = EncryptionService()
    return _encryption_service
