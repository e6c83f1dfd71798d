import os

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

PBKDF2_ITERATIONS = 600_000
KEY_LENGTH = 32
SALT_LENGTH = 16
SALT_LENGTHS = (16, 32)


def derive_key(passphrase: str, salt: bytes) -> bytes:
    """Key = PBKDF2-HMAC-SHA256(passphrase, salt, 600k) -> 32 bytes"""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
        backend=default_backend(),
    )
    return kdf.derive(passphrase.encode("utf-8"))


def random_salt(length: int = SALT_LENGTH) -> bytes:
    if length not in SALT_LENGTHS:
        raise ValueError(f"Salt length must be one of {SALT_LENGTHS}, got {length}")
    return os.urandom(length)
