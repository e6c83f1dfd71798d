import json

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional

from legacylink.utils.errors import FormatError

ENVELOPE_VERSION = 1         # "version" of the outer JSON envelope
PAYLOAD_FORMAT = 2           # "format" of the decrypted file payload
VAULT_VERSION = 4            # "version" of a VaultState
DEFAULT_VERSION_HISTORY_LIMIT = 10
MAX_VERSION_HISTORY_LIMIT = 100
HISTORY_CAP = 500
DEFAULT_SALT_LENGTH = 16
MAX_VAULT_FILE_BYTES = 50 * 1024 * 1024  # 50 MB

ScalarValue = str | int | float | bool
SectionData = Dict[str, ScalarValue]


class HistoryAction(str, Enum):
    STORE_CREATED = "store_created"
    VAULT_IMPORTED = "vault_imported"
    ENTRY_CREATED = "entry_created"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_DELETED = "entry_deleted"


class KeyType(str, Enum):
    SSH = "ssh"
    CERT = "cert"


def _field(obj: Dict[str, Any], key: str, kind: type | tuple, optional: bool = False) -> Any:
    if key not in obj or obj[key] is None:
        if optional:
            return None
        raise FormatError(f"missing field {key!r}")
    value = obj[key]
    if kind is int and isinstance(value, bool):
        raise FormatError(f"field {key!r} has wrong type")
    if not isinstance(value, kind):
        raise FormatError(f"field {key!r} has wrong type")
    return value


def _object(value: Any, what: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise FormatError(f"{what} is not an object")
    return value


def _enum(enum_cls: type[Enum], value: str, what: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        raise FormatError(f"unknown {what} {value!r}") from None


def clamp_history_limit(limit: int) -> int:
    return max(0, min(MAX_VERSION_HISTORY_LIMIT, limit))


@dataclass
class Entry:
    id: str
    template_id: str
    title: str
    updated_at: str
    sections: Dict[str, SectionData] = field(default_factory=dict)
    category_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "templateId": self.template_id,
            "title": self.title,
            "updatedAt": self.updated_at,
            "sections": {sid: dict(fields) for sid, fields in self.sections.items()},
        }
        if self.category_id is not None:
            d["categoryId"] = self.category_id
        return d

    @staticmethod
    def from_dict(obj: Any) -> "Entry":
        obj = _object(obj, "entry")
        sections: Dict[str, SectionData] = {}
        for sid, fields in _field(obj, "sections", dict).items():
            fields = _object(fields, "section")
            for fid, value in fields.items():
                if not isinstance(value, (str, int, float, bool)):
                    raise FormatError(f"field {fid!r} is not a scalar")
            sections[sid] = dict(fields)
        return Entry(
            id=_field(obj, "id", str),
            template_id=_field(obj, "templateId", str),
            title=_field(obj, "title", str),
            updated_at=_field(obj, "updatedAt", str),
            sections=sections,
            category_id=_field(obj, "categoryId", str, optional=True),
        )


@dataclass
class Category:
    id: str
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}

    @staticmethod
    def from_dict(obj: Any) -> "Category":
        obj = _object(obj, "category")
        return Category(id=_field(obj, "id", str), name=_field(obj, "name", str))


@dataclass
class HistoryEntry:
    at: str
    action: HistoryAction
    entry_id: Optional[str] = None
    entry_title: Optional[str] = None
    summary: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"at": self.at, "action": self.action.value}
        if self.entry_id is not None:
            d["entryId"] = self.entry_id
        if self.entry_title is not None:
            d["entryTitle"] = self.entry_title
        if self.summary is not None:
            d["summary"] = self.summary
        return d

    @staticmethod
    def from_dict(obj: Any) -> "HistoryEntry":
        obj = _object(obj, "history entry")
        return HistoryEntry(
            at=_field(obj, "at", str),
            action=_enum(HistoryAction, _field(obj, "action", str), "history action"),
            entry_id=_field(obj, "entryId", str, optional=True),
            entry_title=_field(obj, "entryTitle", str, optional=True),
            summary=_field(obj, "summary", str, optional=True),
        )


@dataclass
class UploadedKey:
    id: str
    name: str
    type: KeyType
    content_base64: str
    uploaded_at: str
    mime_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "contentBase64": self.content_base64,
            "uploadedAt": self.uploaded_at,
        }
        if self.mime_type is not None:
            d["mimeType"] = self.mime_type
        return d

    @staticmethod
    def from_dict(obj: Any) -> "UploadedKey":
        obj = _object(obj, "uploaded key")
        return UploadedKey(
            id=_field(obj, "id", str),
            name=_field(obj, "name", str),
            type=_enum(KeyType, _field(obj, "type", str), "key type"),
            content_base64=_field(obj, "contentBase64", str),
            uploaded_at=_field(obj, "uploadedAt", str),
            mime_type=_field(obj, "mimeType", str, optional=True),
        )


_STATE_KEYS = {
    "version", "entries", "categories", "successorGuide", "history", "uploadedKeys",
    "userAka", "versionHistoryLimit", "autoLockMinutes", "saltLength",
}


@dataclass
class VaultState:
    """Current (format 4) in-memory vault. Unknown stored keys ride along in ``extra``."""
    format_version: int = VAULT_VERSION
    entries: List[Entry] = field(default_factory=list)
    categories: List[Category] = field(default_factory=list)
    successor_guide: str = ""
    history: List[HistoryEntry] = field(default_factory=list)
    uploaded_keys: List[UploadedKey] = field(default_factory=list)
    user_aka: str = ""
    version_history_limit: Optional[int] = DEFAULT_VERSION_HISTORY_LIMIT
    auto_lock_minutes: int = 0
    salt_length: int = DEFAULT_SALT_LENGTH
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = dict(self.extra)
        d.update({
            "version": self.format_version,
            "entries": [e.to_dict() for e in self.entries],
            "categories": [c.to_dict() for c in self.categories],
            "successorGuide": self.successor_guide,
            "history": [h.to_dict() for h in self.history],
            "uploadedKeys": [k.to_dict() for k in self.uploaded_keys],
            "userAka": self.user_aka,
            "autoLockMinutes": self.auto_lock_minutes,
            "saltLength": self.salt_length,
        })
        if self.version_history_limit is not None:
            d["versionHistoryLimit"] = self.version_history_limit
        return d

    @staticmethod
    def from_dict(obj: Any) -> "VaultState":
        """Strict parse of a state already migrated to VAULT_VERSION."""
        obj = _object(obj, "vault state")
        limit = _field(obj, "versionHistoryLimit", int, optional=True)
        auto_lock = _field(obj, "autoLockMinutes", int, optional=True)
        salt_length = _field(obj, "saltLength", int, optional=True)
        return VaultState(
            format_version=_field(obj, "version", int),
            entries=[Entry.from_dict(e) for e in _field(obj, "entries", list)],
            categories=[Category.from_dict(c) for c in _field(obj, "categories", list)],
            successor_guide=_field(obj, "successorGuide", str),
            history=[HistoryEntry.from_dict(h) for h in _field(obj, "history", list)],
            uploaded_keys=[UploadedKey.from_dict(k) for k in _field(obj, "uploadedKeys", list)],
            user_aka=_field(obj, "userAka", str),
            version_history_limit=None if limit is None else clamp_history_limit(limit),
            auto_lock_minutes=max(0, auto_lock or 0),
            salt_length=salt_length if salt_length in (16, 32) else DEFAULT_SALT_LENGTH,
            extra={k: v for k, v in obj.items() if k not in _STATE_KEYS},
        )


@dataclass
class VaultPayload:
    current: VaultState
    versions: List[VaultState] = field(default_factory=list)
    version_history_limit: int = DEFAULT_VERSION_HISTORY_LIMIT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format": PAYLOAD_FORMAT,
            "current": self.current.to_dict(),
            "versions": [v.to_dict() for v in self.versions],
            "versionHistoryLimit": self.version_history_limit,
        }

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":")).encode("utf-8")
