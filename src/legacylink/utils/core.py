import argparse
import json
import logging
import sys

from dataclasses import replace
from pathlib import Path
from typing import Optional, Tuple

from legacylink.crypto.aead import NONCE_LENGTH, TAG_LENGTH, aead_decrypt, aead_encrypt
from legacylink.crypto.envelope import EncryptedEnvelope, decode_envelope, encode_envelope
from legacylink.crypto.kdf import SALT_LENGTH, derive_key, random_salt
from legacylink.storage.vault import FileVaultStorage
from legacylink.utils.dataModels import (
    ENVELOPE_VERSION,
    MAX_VERSION_HISTORY_LIMIT,
    HistoryAction,
    VaultPayload,
    VaultState,
)
from legacylink.utils.errors import AuthenticationError, FormatError, InvalidVaultError
from legacylink.utils.helper import (
    append_history,
    create_empty_entry,
    create_initial_state,
    resolve_passphrase,
    vault_path,
)
from legacylink.utils.migrate import parse_plaintext
from legacylink.utils.retention import build_next_payload

logger = logging.getLogger(__name__)

_DUMMY_SALT = bytes(SALT_LENGTH)
_DUMMY_NONCE = bytes(NONCE_LENGTH)
_DUMMY_CIPHERTEXT = bytes(TAG_LENGTH)


def _equalize_failure_cost(passphrase: str) -> None:
    # Same KDF + AEAD work as a real attempt, so malformed input fails as slowly as a wrong key.
    key = derive_key(passphrase, _DUMMY_SALT)
    try:
        aead_decrypt(key, _DUMMY_NONCE, _DUMMY_CIPHERTEXT)
    except AuthenticationError:
        pass


def open_vault(data: bytes, passphrase: str) -> VaultPayload:
    """Decrypt and normalize a sealed vault.

    Raises InvalidVaultError for a wrong passphrase and for any malformed or
    tampered input alike, VaultTooLargeError above the size ceiling, and
    UnsupportedFormatError for files written by a newer format.
    """
    try:
        env = decode_envelope(data)
    except FormatError as e:
        logger.debug("Envelope rejected: %s", e)
        _equalize_failure_cost(passphrase)
        raise InvalidVaultError() from None

    try:
        key = derive_key(passphrase, env.salt)
        plaintext = aead_decrypt(key, env.nonce, env.ciphertext)
    except AuthenticationError:
        logger.debug("Authentication failed for vault envelope")
        raise InvalidVaultError() from None

    try:
        return parse_plaintext(json.loads(plaintext))
    except (FormatError, ValueError, RecursionError) as e:
        logger.warning("Authenticated vault plaintext is malformed: %s", type(e).__name__)
        raise InvalidVaultError() from None


def seal_payload(payload: VaultPayload, passphrase: str, salt_length: Optional[int] = None) -> bytes:
    """Encrypt a complete payload under a fresh salt and nonce."""
    salt = random_salt(salt_length or payload.current.salt_length)
    key = derive_key(passphrase, salt)
    nonce, ct = aead_encrypt(key, payload.to_bytes())
    return encode_envelope(EncryptedEnvelope(version=ENVELOPE_VERSION, salt=salt, nonce=nonce, ciphertext=ct))


def seal_vault(
    state: VaultState,
    passphrase: str,
    previous: Optional[VaultPayload] = None,
    salt_length: Optional[int] = None,
) -> bytes:
    """Seal ``state`` as the new current, pushing ``previous.current`` onto the snapshot ring."""
    return seal_payload(build_next_payload(previous, state), passphrase, salt_length)


def unlock(repo: Path, passphrase: str) -> Tuple[VaultPayload, FileVaultStorage]:
    storage = FileVaultStorage(vault_path(repo))
    data = storage.read()
    if data is None:
        raise FileNotFoundError(f"No vault at {storage.path}")
    return open_vault(data, passphrase), storage


def cmd_init(args: argparse.Namespace) -> None:
    storage = FileVaultStorage(vault_path(Path(args.repo)))
    if storage.exists() and not args.force:
        print(f"[!] {storage.path} exists. Use --force to overwrite.")
        sys.exit(1)

    if not 0 <= args.limit <= MAX_VERSION_HISTORY_LIMIT:
        print(f"[!] --limit must be between 0 and {MAX_VERSION_HISTORY_LIMIT}")
        sys.exit(1)

    current = replace(create_initial_state(), salt_length=args.salt_length, version_history_limit=args.limit)
    storage.write(seal_vault(current, resolve_passphrase(args.passphrase)))
    print(f"[+] Initialized vault at {storage.path}")


def cmd_add(args: argparse.Namespace) -> None:
    passphrase = resolve_passphrase(args.passphrase)
    payload, storage = unlock(Path(args.repo), passphrase)
    state = payload.current

    entry = create_empty_entry(args.template, args.title, args.category)
    for item in args.field or []:
        key, eq, value = item.partition("=")
        section_id, _, field_id = key.partition(".")
        if not eq or not section_id or not field_id:
            print(f"[!] Bad --field {item!r}, expected section.field=value")
            sys.exit(1)
        entry.sections.setdefault(section_id, {})[field_id] = value

    state = replace(
        state,
        entries=[*state.entries, entry],
        history=append_history(state.history, HistoryAction.ENTRY_CREATED, entry.id, entry.title),
    )
    storage.write(seal_vault(state, passphrase, previous=payload))
    print(f"[+] Added {entry.title} as id={entry.id}")


def cmd_ls(args: argparse.Namespace) -> None:
    payload, _ = unlock(Path(args.repo), resolve_passphrase(args.passphrase))
    state = payload.current
    if not state.entries:
        print("(empty)")
        return
    names = {c.id: c.name for c in state.categories}
    for e in state.entries:
        category = names.get(e.category_id, "Uncategorized") if e.category_id else "Uncategorized"
        print(f"{e.id}\t{e.title}\t{category}\t{e.updated_at}")
