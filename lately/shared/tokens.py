"""Encryption for stored platform OAuth tokens"""

import base64
import hashlib

from cryptography.fernet import Fernet

from ..config import SECRET_KEY, TOKEN_ENCRYPTION_KEY


def _build_cipher() -> Fernet:
    if TOKEN_ENCRYPTION_KEY:
        return Fernet(TOKEN_ENCRYPTION_KEY.encode())
    # Fernet needs 32 url-safe base64 bytes; derive them from SECRET_KEY
    derived = base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest())
    return Fernet(derived)


cipher_suite = _build_cipher()


def encrypt_token(token: str) -> str:
    """Encrypt a token for storage"""
    return cipher_suite.encrypt(token.encode()).decode()


def decrypt_token(encrypted_token: str) -> str:
    """Decrypt a stored token"""
    return cipher_suite.decrypt(encrypted_token.encode()).decode()
