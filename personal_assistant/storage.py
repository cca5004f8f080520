"""
Key-value storage backends

Values are opaque serialized text. Each key is written atomically; there are
no transactions across keys.
"""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_.:-]*$')


class StorageError(Exception):
    """Raised for keys a backend cannot store"""


def validate_key(key: str) -> str:
    if not isinstance(key, str) or not _KEY_PATTERN.match(key) or '..' in key:
        raise StorageError(f"Invalid storage key: {key!r}")
    return key


class MemoryStorage:
    """Process-local storage, lost on restart"""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(validate_key(key))

    def set(self, key: str, value: str) -> None:
        self._data[validate_key(key)] = value

    def delete(self, key: str) -> None:
        self._data.pop(validate_key(key), None)

    def list(self, prefix: str = '') -> List[str]:
        return sorted(key for key in self._data if key.startswith(prefix))


class FileStorage:
    """
    One file per key under a directory

    Writes go to a temporary file in the same directory which is then renamed
    over the target, so a reader never sees a half-written value.
    """

    SUFFIX = '.json'

    def __init__(self, root):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.root / f"{validate_key(key)}{self.SUFFIX}"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding='utf-8')

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        temp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                'w', dir=self.root, delete=False, suffix='.tmp', encoding='utf-8'
            ) as f:
                temp_path = Path(f.name)
                f.write(value)
            os.replace(temp_path, path)
        except Exception:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()

    def list(self, prefix: str = '') -> List[str]:
        keys = [
            path.name[:-len(self.SUFFIX)]
            for path in self.root.glob(f"*{self.SUFFIX}")
        ]
        return sorted(key for key in keys if key.startswith(prefix))


def storage_from_config(storage_dir: Optional[str]):
    """File storage when a directory is configured, memory otherwise"""
    if storage_dir:
        logger.info("Using file storage at %s", storage_dir)
        return FileStorage(storage_dir)
    logger.info("STORAGE_DIR not set, using in-memory storage")
    return MemoryStorage()
