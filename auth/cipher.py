"""
auth/cipher.py -- Symmetric encryption for stored client secrets.

Role.sec is stored as a Fernet token (AES-128-CBC + HMAC-SHA256). The Fernet
key is derived from AES_SECRET with PBKDF2-SHA256 once per process; the salt
is fixed because the key material already comes from configuration and the
derived key must be identical across workers and restarts.

Changing AES_SECRET makes every stored client secret undecryptable. Rotate by
re-saving each role's secret through PUT /role/{id}.
"""

from __future__ import annotations

import base64
import hmac
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from core.config import get_settings

_SALT = b"accountsvc.role.client-secret"
_ITERATIONS = 200_000


class SecretCipher:
    """Encrypt / decrypt / compare client secrets.

    Usage:
        cipher = SecretCipher(settings.aes_secret)
        stored = cipher.encrypt("s3cr3t")
        cipher.matches(stored, "s3cr3t")   # True
    """

    def __init__(self, passphrase: str) -> None:
        kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=_SALT, iterations=_ITERATIONS)
        self._fernet = Fernet(base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8"))))

    def encrypt(self, plain: str) -> str:
        return self._fernet.encrypt(plain.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        """Raises cryptography.fernet.InvalidToken if token was not produced with this key."""
        return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")

    def matches(self, stored: str, supplied: str) -> bool:
        """Constant-time comparison of the decrypted stored secret with supplied.

        An undecryptable stored value is a mismatch, not an error.
        """
        try:
            plain = self.decrypt(stored)
        except (InvalidToken, UnicodeError):
            return False
        return hmac.compare_digest(plain.encode("utf-8"), supplied.encode("utf-8"))


@lru_cache
def get_cipher() -> SecretCipher:
    """Process-wide cipher built from AES_SECRET (key derivation runs once)."""
    return SecretCipher(get_settings().aes_secret)
