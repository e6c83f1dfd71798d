"""Unlocked-vault session.

A session owns one storage collaborator and, while unlocked, the passphrase
and the last payload it wrote. Every save hands that payload to the
retention engine as ``previous`` so the snapshot ring grows correctly;
saves are serialized by a per-session lock. The codec itself keeps no state.
"""
import base64
import copy
import logging
import threading

from dataclasses import replace
from enum import Enum
from typing import Callable, Dict, List, Optional

from legacylink.crypto.kdf import SALT_LENGTHS
from legacylink.utils.core import open_vault, seal_payload
from legacylink.utils.dataModels import (
    MAX_VERSION_HISTORY_LIMIT,
    Category,
    Entry,
    HistoryAction,
    KeyType,
    SectionData,
    UploadedKey,
    VaultPayload,
    VaultState,
)
from legacylink.utils.errors import VaultError, VaultLockedError, VaultNotFoundError
from legacylink.utils.helper import (
    append_history,
    create_empty_entry,
    create_initial_state,
    new_id,
    rel_time_iso,
)
from legacylink.utils.retention import build_next_payload, effective_limit

logger = logging.getLogger(__name__)

_UNSET = object()


class SessionStatus(str, Enum):
    LOCKED = "locked"
    UNLOCKING = "unlocking"
    UNLOCKED = "unlocked"


class VaultSession:
    def __init__(self, storage):
        self.storage = storage
        self.status = SessionStatus.LOCKED
        self._passphrase: Optional[str] = None
        self._payload: Optional[VaultPayload] = None
        self._save_lock = threading.Lock()

    # -- lifecycle -----------------------------------------------------------

    @property
    def is_unlocked(self) -> bool:
        return self.status is SessionStatus.UNLOCKED

    @property
    def state(self) -> VaultState:
        return self._require_unlocked().current

    @property
    def payload(self) -> VaultPayload:
        return self._require_unlocked()

    def exists(self) -> bool:
        return self.storage.exists()

    def create(self, passphrase: str, salt_length: Optional[int] = None) -> VaultState:
        """Write a fresh, empty vault and leave the session unlocked on it."""
        if salt_length is not None and salt_length not in SALT_LENGTHS:
            raise ValueError(f"Salt length must be one of {SALT_LENGTHS}, got {salt_length}")
        current = create_initial_state()
        if salt_length is not None:
            current = replace(current, salt_length=salt_length)
        with self._save_lock:
            payload = build_next_payload(None, current)
            self.storage.write(seal_payload(payload, passphrase))
            self._set_unlocked(passphrase, payload)
        logger.info("Created new vault")
        return payload.current

    def unlock(self, passphrase: str) -> VaultState:
        data = self.storage.read()
        if data is None:
            raise VaultNotFoundError()
        self.status = SessionStatus.UNLOCKING
        try:
            payload = open_vault(data, passphrase)
        except VaultError:
            self.status = SessionStatus.LOCKED
            logger.info("Unlock failed")
            raise
        self._set_unlocked(passphrase, payload)
        return payload.current

    def unlock_with(self, recover: Callable[[], str]) -> VaultState:
        """Unlock with a passphrase recovered by an external collaborator (e.g. a passkey)."""
        return self.unlock(recover())

    def lock(self) -> None:
        self._passphrase = None
        self._payload = None
        self.status = SessionStatus.LOCKED

    def _set_unlocked(self, passphrase: str, payload: VaultPayload) -> None:
        self._passphrase = passphrase
        self._payload = payload
        self.status = SessionStatus.UNLOCKED

    def _require_unlocked(self) -> VaultPayload:
        if self.status is not SessionStatus.UNLOCKED or self._payload is None:
            raise VaultLockedError()
        return self._payload

    # -- saving --------------------------------------------------------------

    def update(self, updater: Callable[[VaultState], VaultState]) -> VaultState:
        """Apply ``updater`` to a private copy of the current state and save the result."""
        with self._save_lock:
            previous = self._require_unlocked()
            new_state = updater(copy.deepcopy(previous.current))
            payload = build_next_payload(previous, new_state)
            self.storage.write(seal_payload(payload, self._passphrase))
            self._payload = payload
            return payload.current

    def export(self) -> bytes:
        """Current state sealed on its own, without the snapshot ring."""
        current = self.state
        payload = VaultPayload(current=current, versions=[], version_history_limit=effective_limit(None, current))
        return seal_payload(payload, self._passphrase)

    def import_vault(self, data: bytes, passphrase: Optional[str] = None) -> VaultState:
        """Replace the current state with the one inside ``data``.

        The replaced state is kept as the newest snapshot, so an import can be undone.
        """
        self._require_unlocked()
        imported = open_vault(data, passphrase or self._passphrase).current

        def apply(state: VaultState) -> VaultState:
            return replace(
                imported,
                version_history_limit=state.version_history_limit,
                history=append_history(imported.history, HistoryAction.VAULT_IMPORTED),
            )

        return self.update(apply)

    # -- entries -------------------------------------------------------------

    def get_entry(self, entry_id: str) -> Optional[Entry]:
        return next((e for e in self.state.entries if e.id == entry_id), None)

    def add_entry(
        self,
        template_id: str,
        title: str,
        category_id: Optional[str] = None,
        sections: Optional[Dict[str, SectionData]] = None,
    ) -> Entry:
        entry = create_empty_entry(template_id, title, category_id)
        if sections:
            entry.sections = copy.deepcopy(sections)

        def apply(state: VaultState) -> VaultState:
            state.entries.append(entry)
            state.history = append_history(state.history, HistoryAction.ENTRY_CREATED, entry.id, entry.title)
            return state

        self.update(apply)
        return entry

    def update_entry(
        self,
        entry_id: str,
        title: Optional[str] = None,
        sections: Optional[Dict[str, SectionData]] = None,
        category_id=_UNSET,
    ) -> Entry:
        if self.get_entry(entry_id) is None:
            raise ValueError(f"No such id: {entry_id}")

        def apply(state: VaultState) -> VaultState:
            match = next(e for e in state.entries if e.id == entry_id)
            if title is not None:
                match.title = title or "Untitled"
            if sections is not None:
                match.sections = copy.deepcopy(sections)
            if category_id is not _UNSET:
                match.category_id = category_id or None
            match.updated_at = rel_time_iso()
            state.history = append_history(state.history, HistoryAction.ENTRY_UPDATED, match.id, match.title)
            return state

        state = self.update(apply)
        return next(e for e in state.entries if e.id == entry_id)

    def delete_entry(self, entry_id: str) -> bool:
        match = self.get_entry(entry_id)
        if match is None:
            return False

        def apply(state: VaultState) -> VaultState:
            state.entries = [e for e in state.entries if e.id != entry_id]
            state.history = append_history(state.history, HistoryAction.ENTRY_DELETED, entry_id, match.title)
            return state

        self.update(apply)
        return True

    # -- categories ----------------------------------------------------------

    def add_category(self, name: str) -> Category:
        category = Category(id=new_id(), name=name)

        def apply(state: VaultState) -> VaultState:
            state.categories.append(category)
            return state

        self.update(apply)
        return category

    def rename_category(self, category_id: str, name: str) -> Category:
        if not any(c.id == category_id for c in self.state.categories):
            raise ValueError(f"No such category: {category_id}")

        def apply(state: VaultState) -> VaultState:
            state.categories = [
                Category(id=c.id, name=name) if c.id == category_id else c for c in state.categories
            ]
            return state

        self.update(apply)
        return Category(id=category_id, name=name)

    def delete_category(self, category_id: str) -> bool:
        """Delete an unused category. Returns False, without saving, if any entry still uses it."""
        state = self.state
        if not any(c.id == category_id for c in state.categories):
            raise ValueError(f"No such category: {category_id}")
        in_use = [e.id for e in state.entries if e.category_id == category_id]
        if in_use:
            logger.warning("Category %s is used by %d entries; not deleted", category_id, len(in_use))
            return False

        def apply(state: VaultState) -> VaultState:
            state.categories = [c for c in state.categories if c.id != category_id]
            return state

        self.update(apply)
        return True

    # -- guide, keys, settings -----------------------------------------------

    def set_successor_guide(self, text: str) -> None:
        self.update(lambda state: replace(state, successor_guide=text))

    def set_user_aka(self, aka: str) -> None:
        self.update(lambda state: replace(state, user_aka=aka))

    def set_version_history_limit(self, limit: int) -> None:
        if not 0 <= limit <= MAX_VERSION_HISTORY_LIMIT:
            raise ValueError(f"versionHistoryLimit must be between 0 and {MAX_VERSION_HISTORY_LIMIT}")
        self.update(lambda state: replace(state, version_history_limit=limit))

    def set_auto_lock_minutes(self, minutes: int) -> None:
        if minutes < 0:
            raise ValueError("autoLockMinutes must not be negative")
        self.update(lambda state: replace(state, auto_lock_minutes=minutes))

    def set_salt_length(self, length: int) -> None:
        if length not in SALT_LENGTHS:
            raise ValueError(f"Salt length must be one of {SALT_LENGTHS}, got {length}")
        self.update(lambda state: replace(state, salt_length=length))

    def add_uploaded_key(
        self,
        name: str,
        key_type: KeyType,
        content: bytes,
        mime_type: Optional[str] = None,
    ) -> UploadedKey:
        key = UploadedKey(
            id=new_id(),
            name=name,
            type=KeyType(key_type),
            content_base64=base64.b64encode(content).decode("ascii"),
            uploaded_at=rel_time_iso(),
            mime_type=mime_type,
        )

        def apply(state: VaultState) -> VaultState:
            state.uploaded_keys.append(key)
            return state

        self.update(apply)
        return key

    def remove_uploaded_key(self, key_id: str) -> bool:
        if not any(k.id == key_id for k in self.state.uploaded_keys):
            return False

        def apply(state: VaultState) -> VaultState:
            state.uploaded_keys = [k for k in state.uploaded_keys if k.id != key_id]
            return state

        self.update(apply)
        return True

    # -- snapshots -----------------------------------------------------------

    def versions(self) -> List[VaultState]:
        return list(self.payload.versions)

    def restore_version(self, index: int) -> VaultState:
        """Make snapshot ``index`` (0 = newest) current again; retention settings are kept."""
        versions = self.payload.versions
        if not 0 <= index < len(versions):
            raise IndexError(f"No snapshot at index {index}")
        snapshot = versions[index]

        def apply(state: VaultState) -> VaultState:
            return replace(
                copy.deepcopy(snapshot),
                version_history_limit=state.version_history_limit,
                salt_length=state.salt_length,
            )

        logger.info("Restoring snapshot %d", index)
        return self.update(apply)
