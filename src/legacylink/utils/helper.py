import datetime as _dt
import os
import uuid

from pathlib import Path
from typing import List, Optional

from legacylink.utils.dataModels import (
    DEFAULT_VERSION_HISTORY_LIMIT,
    HISTORY_CAP,
    VAULT_VERSION,
    Entry,
    HistoryAction,
    HistoryEntry,
    VaultPayload,
    VaultState,
)

VAULT_FILENAME = "vault.llk"


def vault_path(repo: Path) -> Path:
    """Accept either the vault file itself or a directory holding it."""
    repo = Path(repo)
    if repo.is_dir():
        return repo / VAULT_FILENAME
    return repo


def rel_time_iso(ts: float | None = None) -> str:
    if ts is None:
        now = _dt.datetime.now(_dt.timezone.utc)
    else:
        now = _dt.datetime.fromtimestamp(ts, _dt.timezone.utc)
    return now.replace(tzinfo=None).isoformat(timespec="milliseconds") + "Z"


def resolve_passphrase(passphrase: str | None) -> str:
    if passphrase:
        return passphrase
    env = os.environ.get("LLK_PASSPHRASE")
    if env:
        return env
    raise SystemExit("[!] No passphrase: pass --passphrase or set LLK_PASSPHRASE")


def new_id() -> str:
    return str(uuid.uuid4())


def append_history(
    history: List[HistoryEntry] | None,
    action: HistoryAction,
    entry_id: Optional[str] = None,
    entry_title: Optional[str] = None,
    summary: Optional[str] = None,
) -> List[HistoryEntry]:
    """Newest-first log, capped at HISTORY_CAP (oldest dropped)."""
    item = HistoryEntry(
        at=rel_time_iso(),
        action=action,
        entry_id=entry_id,
        entry_title=entry_title,
        summary=summary,
    )
    return [item, *(history or [])][:HISTORY_CAP]


def create_empty_entry(template_id: str, title: str, category_id: Optional[str] = None) -> Entry:
    return Entry(
        id=new_id(),
        template_id=template_id,
        title=title or "Untitled",
        updated_at=rel_time_iso(),
        sections={},
        category_id=category_id or None,
    )


def create_initial_state() -> VaultState:
    return VaultState(
        format_version=VAULT_VERSION,
        history=append_history([], HistoryAction.STORE_CREATED),
        version_history_limit=DEFAULT_VERSION_HISTORY_LIMIT,
    )


def create_initial_payload() -> VaultPayload:
    return VaultPayload(
        current=create_initial_state(),
        versions=[],
        version_history_limit=DEFAULT_VERSION_HISTORY_LIMIT,
    )
