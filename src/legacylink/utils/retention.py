from dataclasses import replace
from typing import Optional

from legacylink.utils.dataModels import (
    DEFAULT_VERSION_HISTORY_LIMIT,
    VaultPayload,
    VaultState,
    clamp_history_limit,
)


def effective_limit(previous: Optional[VaultPayload], new_current: VaultState) -> int:
    if new_current.version_history_limit is not None:
        return clamp_history_limit(new_current.version_history_limit)
    if previous is not None:
        return clamp_history_limit(previous.version_history_limit)
    return DEFAULT_VERSION_HISTORY_LIMIT


def build_next_payload(previous: Optional[VaultPayload], new_current: VaultState) -> VaultPayload:
    """Payload to write on save: the outgoing current is pushed onto the
    front of the snapshot ring and the ring is trimmed to the limit."""
    limit = effective_limit(previous, new_current)
    current = replace(new_current, version_history_limit=limit)
    if previous is None:
        return VaultPayload(current=current, versions=[], version_history_limit=limit)
    versions = [previous.current, *previous.versions][:limit]
    return VaultPayload(current=current, versions=versions, version_history_limit=limit)
