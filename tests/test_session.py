"""Tests for VaultSession and the storage collaborators."""

import base64
import threading

import pytest

from legacylink.storage.vault import FileVaultStorage, MemoryVaultStorage
from legacylink.utils.core import open_vault
from legacylink.utils.dataModels import HISTORY_CAP, MAX_VAULT_FILE_BYTES, HistoryAction, KeyType
from legacylink.utils.errors import (
    InvalidVaultError,
    VaultLockedError,
    VaultNotFoundError,
    VaultTooLargeError,
)
from legacylink.utils.session import SessionStatus, VaultSession


# ── Lifecycle ───────────────────────────────────────────────────────


class TestLifecycle:

    def test_create_unlocks(self, session, storage):
        assert session.status is SessionStatus.UNLOCKED
        assert storage.exists()
        assert session.state.history[0].action is HistoryAction.STORE_CREATED

    def test_unlock_after_lock(self, session, storage):
        session.lock()
        assert session.status is SessionStatus.LOCKED
        with pytest.raises(VaultLockedError):
            session.state
        fresh = VaultSession(storage)
        fresh.unlock("key1")
        assert fresh.is_unlocked

    def test_wrong_passphrase_returns_to_locked(self, session, storage):
        fresh = VaultSession(storage)
        with pytest.raises(InvalidVaultError):
            fresh.unlock("nope")
        assert fresh.status is SessionStatus.LOCKED

    def test_unlock_missing_vault(self):
        with pytest.raises(VaultNotFoundError):
            VaultSession(MemoryVaultStorage()).unlock("key1")

    def test_unlock_with_recovered_passphrase(self, session, storage):
        fresh = VaultSession(storage)
        fresh.unlock_with(lambda: "key1")
        assert fresh.is_unlocked

    def test_create_with_long_salt(self, storage):
        session = VaultSession(storage)
        session.create("pass", salt_length=32)
        assert session.state.salt_length == 32

    def test_create_rejects_bad_salt(self, storage):
        with pytest.raises(ValueError):
            VaultSession(storage).create("pass", salt_length=20)

    def test_operations_require_unlock(self, storage):
        with pytest.raises(VaultLockedError):
            VaultSession(storage).add_entry("t", "x")


# ── Entries and history ─────────────────────────────────────────────


class TestEntries:

    def test_add_update_delete(self, session, storage):
        entry = session.add_entry("legacy-system", "Router", sections={"net": {"ip": "10.0.0.1"}})
        updated = session.update_entry(entry.id, title="Core router", sections={"net": {"ip": "10.0.0.2"}})
        assert updated.title == "Core router"
        assert updated.sections == {"net": {"ip": "10.0.0.2"}}

        reopened = open_vault(storage.read(), "key1").current
        assert reopened.entries[0].title == "Core router"

        assert session.delete_entry(entry.id)
        assert session.state.entries == []
        assert not session.delete_entry(entry.id)

    def test_history_records_actions_newest_first(self, session):
        entry = session.add_entry("t", "A")
        session.update_entry(entry.id, title="B")
        session.delete_entry(entry.id)
        actions = [h.action for h in session.state.history]
        assert actions == [
            HistoryAction.ENTRY_DELETED,
            HistoryAction.ENTRY_UPDATED,
            HistoryAction.ENTRY_CREATED,
            HistoryAction.STORE_CREATED,
        ]
        assert session.state.history[0].entry_title == "B"

    def test_history_is_capped(self, session):
        state = session.state
        state_history = [state.history[0]] * (HISTORY_CAP + 20)

        def fill(s):
            s.history = state_history
            return s

        session.update(fill)
        session.add_entry("t", "latest")
        assert len(session.state.history) == HISTORY_CAP
        assert session.state.history[0].entry_title == "latest"

    def test_blank_title_becomes_untitled(self, session):
        assert session.add_entry("t", "").title == "Untitled"

    def test_update_unknown_entry(self, session):
        with pytest.raises(ValueError):
            session.update_entry("missing", title="x")

    def test_updater_cannot_mutate_saved_snapshot(self, session):
        session.add_entry("t", "first")
        session.add_entry("t", "second")
        assert [e.title for e in session.versions()[0].entries] == ["first"]


# ── Categories ──────────────────────────────────────────────────────


class TestCategories:

    def test_add_rename_delete(self, session):
        cat = session.add_category("Banking")
        session.rename_category(cat.id, "Finance")
        assert session.state.categories[0].name == "Finance"
        assert session.delete_category(cat.id)
        assert session.state.categories == []

    def test_delete_in_use_is_a_noop(self, session):
        cat = session.add_category("Banking")
        session.add_entry("t", "Bank", category_id=cat.id)
        saves = len(session.versions())
        assert session.delete_category(cat.id) is False
        assert session.state.categories == [cat]
        assert len(session.versions()) == saves

    def test_clearing_category_frees_it(self, session):
        cat = session.add_category("Banking")
        entry = session.add_entry("t", "Bank", category_id=cat.id)
        session.update_entry(entry.id, category_id=None)
        assert session.get_entry(entry.id).category_id is None
        assert session.delete_category(cat.id)

    def test_unknown_category(self, session):
        with pytest.raises(ValueError):
            session.delete_category("missing")


# ── Guide, keys, settings ───────────────────────────────────────────


class TestSettings:

    def test_guide_and_aka(self, session, storage):
        session.set_successor_guide("Open the safe first.")
        session.set_user_aka("Gran")
        reopened = open_vault(storage.read(), "key1").current
        assert reopened.successor_guide == "Open the safe first."
        assert reopened.user_aka == "Gran"

    def test_uploaded_keys(self, session):
        key = session.add_uploaded_key("id_ed25519", KeyType.SSH, b"ssh-ed25519 AAAA")
        assert base64.b64decode(key.content_base64) == b"ssh-ed25519 AAAA"
        cert = session.add_uploaded_key("ca.pem", "cert", b"-----BEGIN", mime_type="application/x-pem-file")
        assert cert.type is KeyType.CERT
        assert session.remove_uploaded_key(key.id)
        assert [k.id for k in session.state.uploaded_keys] == [cert.id]
        assert not session.remove_uploaded_key(key.id)

    def test_history_limit_bounds(self, session):
        with pytest.raises(ValueError):
            session.set_version_history_limit(101)
        with pytest.raises(ValueError):
            session.set_version_history_limit(-1)

    def test_auto_lock_and_salt_length(self, session, storage):
        session.set_auto_lock_minutes(5)
        session.set_salt_length(32)
        reopened = open_vault(storage.read(), "key1").current
        assert reopened.auto_lock_minutes == 5
        assert reopened.salt_length == 32


# ── Snapshots ───────────────────────────────────────────────────────


class TestSnapshots:

    def test_ring_grows_to_limit(self, session):
        session.set_version_history_limit(3)
        for i in range(6):
            session.add_entry("t", f"e{i}")
        assert len(session.versions()) == 3
        assert len(open_vault(session.storage.read(), "key1").versions) == 3

    def test_zero_limit(self, session):
        session.set_version_history_limit(0)
        session.add_entry("t", "x")
        assert session.versions() == []

    def test_restore(self, session):
        session.add_entry("t", "keep")
        entry = session.add_entry("t", "oops")
        session.delete_entry(entry.id)
        session.restore_version(0)
        assert [e.title for e in session.state.entries] == ["keep", "oops"]
        assert [e.title for e in session.versions()[0].entries] == ["keep"]

    def test_restore_bad_index(self, session):
        with pytest.raises(IndexError):
            session.restore_version(42)

    def test_concurrent_saves_lose_no_snapshot(self, session):
        session.set_version_history_limit(100)
        before = len(session.versions())
        threads = [threading.Thread(target=session.add_entry, args=("t", f"t{i}")) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(session.state.entries) == 8
        assert len(session.versions()) == before + 8


# ── Import / export ─────────────────────────────────────────────────


class TestImportExport:

    def test_export_then_import(self, session):
        session.add_entry("t", "exported")
        data = session.export()
        assert open_vault(data, "key1").versions == []

        other = VaultSession(MemoryVaultStorage())
        other.create("other-pass")
        other.import_vault(data, "key1")
        assert [e.title for e in other.state.entries] == ["exported"]
        assert other.state.history[0].action is HistoryAction.VAULT_IMPORTED
        assert other.versions()[0].entries == []

    def test_import_with_wrong_key(self, session):
        data = session.export()
        with pytest.raises(InvalidVaultError):
            session.import_vault(data, "wrong")


# ── Storage ─────────────────────────────────────────────────────────


class TestFileStorage:

    def test_missing_file_reads_none(self, tmp_path):
        assert FileVaultStorage(tmp_path / "vault.llk").read() is None

    def test_write_is_atomic_and_readable(self, tmp_path):
        storage = FileVaultStorage(tmp_path / "sub" / "vault.llk")
        storage.write(b"one")
        storage.write(b"two")
        assert storage.read() == b"two"
        assert not (tmp_path / "sub" / "vault.llk.tmp").exists()

    def test_clear(self, tmp_path):
        storage = FileVaultStorage(tmp_path / "vault.llk")
        storage.write(b"x")
        storage.clear()
        assert not storage.exists()
        storage.clear()

    def test_refuses_oversized_file(self, tmp_path):
        path = tmp_path / "vault.llk"
        with path.open("wb") as f:
            f.truncate(MAX_VAULT_FILE_BYTES + 1)
        with pytest.raises(VaultTooLargeError):
            FileVaultStorage(path).read()

    def test_session_on_file(self, tmp_path):
        storage = FileVaultStorage(tmp_path / "vault.llk")
        VaultSession(storage).create("pw")
        session = VaultSession(storage)
        session.unlock("pw")
        session.add_entry("t", "on disk")
        assert open_vault(storage.read(), "pw").current.entries[0].title == "on disk"
