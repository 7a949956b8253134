# joeyjob/utils/encryption.py
"""
Encryption of stored SimPro tokens.

ENCRYPTION_KEY holds one Fernet key, or several separated by commas for
rotation: the first key encrypts, every key is tried when decrypting.
"""
from typing import List, Optional

from cryptography.fernet import Fernet, MultiFernet
from joeyjob.config.settings import get_settings


def generate_encryption_key() -> str:
    """New key for the ENCRYPTION_KEY setting"""
    return Fernet.generate_key().decode()


def _configured_keys() -> List[str]:
    raw = get_settings().ENCRYPTION_KEY or ""
    return [key.strip() for key in raw.split(",") if key.strip()]


def get_cipher() -> MultiFernet:
    keys = _configured_keys()
    if not keys:
        raise ValueError("ENCRYPTION_KEY is not configured")
    return MultiFernet([Fernet(key.encode()) for key in keys])


def encrypt_token(token: Optional[str]) -> Optional[bytes]:
    if not token:
        return None
    return get_cipher().encrypt(token.encode())


def decrypt_token(encrypted_token: Optional[bytes]) -> Optional[str]:
    """Raises cryptography.fernet.InvalidToken when no configured key matches"""
    if not encrypted_token:
        return None
    return get_cipher().decrypt(encrypted_token).decode()

