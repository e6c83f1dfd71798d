import logging
import os

from pathlib import Path
from typing import Optional

from legacylink.utils.dataModels import MAX_VAULT_FILE_BYTES
from legacylink.utils.errors import VaultTooLargeError

logger = logging.getLogger(__name__)


class FileVaultStorage:
    """Single encrypted file on disk. The file holds only the sealed envelope."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> Optional[bytes]:
        if not self.path.is_file():
            return None
        size = self.path.stat().st_size
        if size > MAX_VAULT_FILE_BYTES:
            logger.warning("Refusing to read %s: %d bytes exceeds limit", self.path, size)
            raise VaultTooLargeError()
        return self.path.read_bytes()

    def write(self, data: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.path)
        logger.debug("Wrote %d bytes to %s", len(data), self.path)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class MemoryVaultStorage:
    """Key-value backing kept in process memory (one record per instance)."""

    def __init__(self, data: Optional[bytes] = None):
        self._data = data

    def exists(self) -> bool:
        return self._data is not None

    def read(self) -> Optional[bytes]:
        return self._data

    def write(self, data: bytes) -> None:
        self._data = bytes(data)

    def clear(self) -> None:
        self._data = None
