"""Vault state migrations and plaintext shape detection.

Each migration upgrades a raw (JSON-decoded) state from version N to N+1.
Migrations only add fields with safe defaults; they never remove or
reinterpret stored data. Once released a migration is never edited: new
format versions append a new function to MIGRATIONS and bump VAULT_VERSION.
"""
import logging

from typing import Any, Callable, Dict

from legacylink.utils.dataModels import (
    DEFAULT_VERSION_HISTORY_LIMIT,
    PAYLOAD_FORMAT,
    VAULT_VERSION,
    VaultPayload,
    VaultState,
    clamp_history_limit,
)
from legacylink.utils.errors import FormatError, UnsupportedFormatError

logger = logging.getLogger(__name__)

RawState = Dict[str, Any]


def _v1_to_v2(raw: RawState) -> RawState:
    # Entries written before categories existed are uncategorized: categoryId stays absent.
    out = dict(raw)
    out["version"] = 2
    out.setdefault("categories", [])
    entries = out.get("entries") or []
    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        raise FormatError("entries is not a list of objects")
    out["entries"] = [dict(e) for e in entries]
    return out


def _v2_to_v3(raw: RawState) -> RawState:
    out = dict(raw)
    out["version"] = 3
    out.setdefault("successorGuide", "")
    out.setdefault("history", [])
    out.setdefault("uploadedKeys", [])
    return out


def _v3_to_v4(raw: RawState) -> RawState:
    out = dict(raw)
    out["version"] = 4
    out.setdefault("userAka", "")
    return out


MIGRATIONS: Dict[int, Callable[[RawState], RawState]] = {
    1: _v1_to_v2,
    2: _v2_to_v3,
    3: _v3_to_v4,
}


def state_version(raw: Any) -> int:
    if not isinstance(raw, dict):
        raise FormatError("vault state is not an object")
    version = raw.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        raise FormatError("vault state has no integer version")
    return version


def migrate_state(raw: RawState) -> RawState:
    """Apply migrations until the raw state is at VAULT_VERSION. Input is not modified."""
    version = state_version(raw)
    if version > VAULT_VERSION:
        raise UnsupportedFormatError("vault version", version, VAULT_VERSION)
    out = dict(raw)
    # Pre-release files carried version 0; they share the version 1 shape.
    version = max(version, 1)
    start = version
    while version < VAULT_VERSION:
        out = MIGRATIONS[version](out)
        version = out["version"]
    if start < VAULT_VERSION:
        logger.debug("Migrated vault state from version %d to %d", start, VAULT_VERSION)
    if out.get("versionHistoryLimit") is None:
        out["versionHistoryLimit"] = DEFAULT_VERSION_HISTORY_LIMIT
    return out


def normalize(state: RawState | VaultState) -> VaultState:
    """Migrate a stored state of any known version and parse it as a current VaultState."""
    raw = state.to_dict() if isinstance(state, VaultState) else state
    return VaultState.from_dict(migrate_state(raw))


def _is_file_payload(obj: Any) -> bool:
    return isinstance(obj, dict) and "format" in obj


def _is_bare_state(obj: Any) -> bool:
    if not isinstance(obj, dict) or "format" in obj:
        return False
    version = obj.get("version")
    return (
        isinstance(version, int)
        and not isinstance(version, bool)
        and isinstance(obj.get("entries", None), list)
    )


def _parse_file_payload(obj: Dict[str, Any]) -> VaultPayload:
    fmt = obj["format"]
    if not isinstance(fmt, int) or isinstance(fmt, bool):
        raise FormatError("payload format is not an integer")
    if fmt > PAYLOAD_FORMAT:
        raise UnsupportedFormatError("payload format", fmt, PAYLOAD_FORMAT)
    if fmt != PAYLOAD_FORMAT:
        raise FormatError(f"unknown payload format {fmt}")

    current = obj.get("current")
    versions = obj.get("versions")
    limit = obj.get("versionHistoryLimit")
    if not isinstance(current, dict) or not isinstance(versions, list):
        raise FormatError("payload is missing current state or versions")
    if not isinstance(limit, int) or isinstance(limit, bool):
        raise FormatError("payload versionHistoryLimit is not an integer")
    limit = clamp_history_limit(limit)

    if current.get("versionHistoryLimit") is None:
        current = {**current, "versionHistoryLimit": limit}
    return VaultPayload(
        current=normalize(current),
        versions=[normalize(v) for v in versions],
        version_history_limit=limit,
    )


def parse_plaintext(obj: Any) -> VaultPayload:
    """Decode decrypted JSON into a payload.

    Two shapes are accepted: the file payload (``{"format": 2, "current": ...}``)
    and, for files written before snapshots existed, a bare vault state, which
    is wrapped with an empty snapshot ring. Anything else is a FormatError.
    """
    if _is_file_payload(obj):
        return _parse_file_payload(obj)
    if _is_bare_state(obj):
        current = normalize(obj)
        logger.info("Read legacy bare vault state (version %d)", obj["version"])
        limit = current.version_history_limit
        return VaultPayload(
            current=current,
            versions=[],
            version_history_limit=DEFAULT_VERSION_HISTORY_LIMIT if limit is None else limit,
        )
    raise FormatError("plaintext matches neither payload nor legacy state")
