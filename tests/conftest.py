"""
Shared pytest fixtures.

PBKDF2 runs 600k iterations in production; every test except those marked
``real_kdf`` runs with a much smaller count so the suite stays fast.
"""

import json

import pytest

from legacylink.crypto import kdf
from legacylink.crypto.aead import aead_encrypt
from legacylink.crypto.envelope import EncryptedEnvelope, encode_envelope
from legacylink.storage.vault import MemoryVaultStorage
from legacylink.utils.session import VaultSession


def pytest_configure(config):
    config.addinivalue_line("markers", "real_kdf: run with the production PBKDF2 iteration count")


@pytest.fixture(autouse=True)
def _fast_kdf(request, monkeypatch):
    if request.node.get_closest_marker("real_kdf") is None:
        monkeypatch.setattr(kdf, "PBKDF2_ITERATIONS", 1000)


@pytest.fixture
def seal_raw():
    """Seal an arbitrary JSON-able object exactly as the codec would, bypassing the payload model."""

    def _seal(obj, passphrase, salt_length=16):
        salt = kdf.random_salt(salt_length)
        key = kdf.derive_key(passphrase, salt)
        plaintext = obj if isinstance(obj, bytes) else json.dumps(obj).encode("utf-8")
        nonce, ct = aead_encrypt(key, plaintext)
        return encode_envelope(EncryptedEnvelope(version=1, salt=salt, nonce=nonce, ciphertext=ct))

    return _seal


@pytest.fixture
def storage():
    return MemoryVaultStorage()


@pytest.fixture
def session(storage):
    s = VaultSession(storage)
    s.create("key1")
    return s
