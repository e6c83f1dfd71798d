"""Transport envelope for a sealed vault.

The envelope is a small JSON object; every binary field is standard base64::

    {
      "version": 1,            # envelope format tag
      "salt": "<base64>",      # PBKDF2 salt, 16 or 32 bytes
      "iv": "<base64>",        # AES-GCM nonce, 12 bytes
      "ciphertext": "<base64>" # AES-256-GCM(ciphertext || 16-byte tag)
    }

Nothing about the vault is readable without the passphrase. Decoding
failures are all reported as a bare FormatError so that a probing caller
learns nothing about which check failed.
"""
import base64
import binascii
import json
import logging

from dataclasses import dataclass
from typing import Any

from legacylink.crypto.aead import NONCE_LENGTH, TAG_LENGTH
from legacylink.utils.dataModels import ENVELOPE_VERSION, MAX_VAULT_FILE_BYTES
from legacylink.utils.errors import FormatError, UnsupportedFormatError, VaultTooLargeError

logger = logging.getLogger(__name__)

MIN_SALT_LENGTH = 16
MAX_SALT_LENGTH = 32


@dataclass(frozen=True)
class EncryptedEnvelope:
    version: int
    salt: bytes
    nonce: bytes
    ciphertext: bytes


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_base64(text: Any) -> bytes:
    if not isinstance(text, str):
        raise FormatError("base64 field is not a string")
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        raise FormatError("invalid base64") from None


def check_size(data: bytes) -> None:
    if len(data) > MAX_VAULT_FILE_BYTES:
        logger.warning("Rejected vault input of %d bytes (limit %d)", len(data), MAX_VAULT_FILE_BYTES)
        raise VaultTooLargeError()


def encode_envelope(env: EncryptedEnvelope) -> bytes:
    stored = {
        "version": env.version,
        "salt": encode_base64(env.salt),
        "iv": encode_base64(env.nonce),
        "ciphertext": encode_base64(env.ciphertext),
    }
    return json.dumps(stored, indent=2).encode("utf-8")


def decode_envelope(data: bytes) -> EncryptedEnvelope:
    check_size(data)
    try:
        obj = json.loads(data)
    except (ValueError, RecursionError):
        raise FormatError("envelope is not JSON") from None
    if not isinstance(obj, dict):
        raise FormatError("envelope is not an object")
    for key in ("version", "salt", "iv", "ciphertext"):
        if key not in obj:
            raise FormatError("envelope field missing")

    version = obj["version"]
    if not isinstance(version, int) or isinstance(version, bool) or version < 1:
        raise FormatError("envelope version is not a recorded integer")
    if version > ENVELOPE_VERSION:
        raise UnsupportedFormatError("envelope version", version, ENVELOPE_VERSION)

    salt = decode_base64(obj["salt"])
    nonce = decode_base64(obj["iv"])
    ciphertext = decode_base64(obj["ciphertext"])
    if not MIN_SALT_LENGTH <= len(salt) <= MAX_SALT_LENGTH:
        raise FormatError("salt length out of range")
    if len(nonce) != NONCE_LENGTH:
        raise FormatError("nonce length mismatch")
    if len(ciphertext) < TAG_LENGTH:
        raise FormatError("ciphertext shorter than tag")
    return EncryptedEnvelope(version=version, salt=salt, nonce=nonce, ciphertext=ciphertext)
