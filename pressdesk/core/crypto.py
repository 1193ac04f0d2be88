# pressdesk/core/crypto.py
"""
Secret encryption for PressDesk.
WordPress admin passwords, application passwords and per-user site passwords
are stored encrypted and only decrypted when a WordPress call needs them.

Approach:
1. Environment-based master key (ENCRYPTION_KEY)
2. Fernet symmetric encryption for the application layer
3. Passphrase keys are stretched with PBKDF2-HMAC-SHA256
4. A temporary key is generated (with a warning) when nothing is configured

Usage:
    crypto = CryptoManager(settings.encryption_key)
    stored = crypto.encrypt_secret("xxxx xxxx xxxx xxxx")
    original = crypto.decrypt_secret(stored)
"""

import base64
import logging
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

logger = logging.getLogger(__name__)

__all__ = [
    'CryptoManager',
    'SecretDecryptionError',
]

KDF_SALT = b'pressdesk_wp_secrets_v1'
KDF_ITERATIONS = 100000


class SecretDecryptionError(RuntimeError):
    """Stored secret could not be decrypted with the configured key."""


class CryptoManager:
    """Fernet encryption manager for stored WordPress secrets"""

    def __init__(self, master_key: Optional[str] = None):
        self._cipher: Optional[Fernet] = None
        self._key_source: Optional[str] = None
        self._initialize_encryption(master_key)

    def _initialize_encryption(self, master_key: Optional[str]) -> None:
        """Initialize Fernet cipher from the configured master key"""
        if master_key:
            if len(master_key) == 44 and self._is_valid_fernet_key(master_key):
                self._cipher = Fernet(master_key.encode())
                self._key_source = 'environment_direct'
                logger.info("🔐 Encryption initialized with direct Fernet key")
            else:
                self._cipher = self._derive_key_from_passphrase(master_key)
                self._key_source = 'environment_derived'
                logger.info("🔐 Encryption initialized with derived key")
            return

        # Stored secrets become unreadable after a restart with a temporary key
        logger.warning("⚠️ No ENCRYPTION_KEY found - generating temporary key")
        logger.warning("⚠️ Stored WordPress passwords will not survive a restart")
        self._cipher = Fernet(Fernet.generate_key())
        self._key_source = 'temporary'

    @staticmethod
    def _is_valid_fernet_key(key: str) -> bool:
        """Validate if a string is a valid Fernet key"""
        try:
            Fernet(key.encode())
            return True
        except (ValueError, TypeError):
            return False

    @staticmethod
    def _derive_key_from_passphrase(passphrase: str) -> Fernet:
        """Derive Fernet key from passphrase using PBKDF2"""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=KDF_SALT,
            iterations=KDF_ITERATIONS,
        )
        key = base64.urlsafe_b64encode(kdf.derive(passphrase.encode()))
        return Fernet(key)

    def encrypt_secret(self, secret: str) -> str:
        """
        Encrypt a password or token for storage.

        Args:
            secret: Plaintext secret

        Returns:
            Fernet token as text, safe for a TEXT column
        """
        if not secret:
            raise ValueError("Cannot encrypt empty secret")
        return self._cipher.encrypt(secret.encode()).decode()

    def decrypt_secret(self, stored: str) -> str:
        """
        Decrypt a stored secret.

        Raises:
            SecretDecryptionError: if the token was written with a different key
        """
        if not stored:
            raise ValueError("Cannot decrypt empty secret")
        try:
            return self._cipher.decrypt(stored.encode()).decode()
        except InvalidToken as e:
            logger.error("❌ Stored secret could not be decrypted (ENCRYPTION_KEY changed?)")
            raise SecretDecryptionError("Stored secret could not be decrypted") from e

    def encrypt_optional(self, secret: Optional[str]) -> Optional[str]:
        return self.encrypt_secret(secret) if secret else None

    def decrypt_optional(self, stored: Optional[str]) -> Optional[str]:
        return self.decrypt_secret(stored) if stored else None

    def get_encryption_info(self) -> Dict[str, Any]:
        """
        Get information about encryption setup (for health checks)
        """
        return {
            'initialized': self._cipher is not None,
            'key_source': self._key_source,
            'secure_setup': self._key_source in ['environment_direct', 'environment_derived'],
            'algorithm': 'Fernet (AES 128)',
            'key_derivation': 'PBKDF2-HMAC-SHA256' if self._key_source == 'environment_derived' else None
        }
