"""Credential encryption for tokens stored with migration records."""

from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from loguru import logger

from ..exceptions import DecryptionError


class CredentialUnwrapper:
    """Encrypts tokens at intake and decrypts them for one transfer.

    The key is passed in explicitly; nothing here caches plaintext.
    """

    def __init__(self, encryption_key: Optional[str]):
        """Initialize credential unwrapper.

        Args:
            encryption_key: URL-safe base64 Fernet key, or None if unavailable
        """
        self._cipher: Optional[Fernet] = None

        if encryption_key:
            try:
                self._cipher = Fernet(encryption_key.encode())
            except (ValueError, TypeError) as e:
                # Reported at use time so the failure lands on the migration record
                logger.error(f'Invalid credential encryption key: {e}')

    @staticmethod
    def generate_key() -> str:
        """Generate a new Fernet key."""
        return Fernet.generate_key().decode()

    @property
    def available(self) -> bool:
        return self._cipher is not None

    def _require_cipher(self) -> Fernet:
        if self._cipher is None:
            raise DecryptionError('Credential encryption key is unavailable')
        return self._cipher

    def encrypt(self, secret: str) -> str:
        """Encrypt a plaintext token for storage."""
        if not secret:
            raise ValueError('Cannot encrypt an empty credential')
        return self._require_cipher().encrypt(secret.encode()).decode('utf-8')

    def unwrap(self, opaque_credential: str) -> str:
        """Decrypt a stored credential.

        Raises:
            DecryptionError: If the value is malformed or the key is unavailable
        """
        cipher = self._require_cipher()
        if not opaque_credential:
            raise DecryptionError('Stored credential is empty')
        try:
            plaintext = cipher.decrypt(opaque_credential.encode()).decode('utf-8')
        except (InvalidToken, UnicodeDecodeError):
            raise DecryptionError('Stored credential could not be decrypted') from None
        if not plaintext:
            raise DecryptionError('Stored credential is empty')
        return plaintext
