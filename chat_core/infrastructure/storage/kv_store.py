"""基于文件的键值存储。

每个键对应 ``{root}/kv/{key}.txt`` 中的一段文本。写入先落到临时文件，
再用 os.replace 原子替换，保证单个槽位不会被写坏；多个槽位之间没有事务。
"""

import os
import re
from pathlib import Path
from typing import List, Optional, Protocol
from uuid import uuid4

from chat_core.config.settings import settings
from chat_core.domain.exceptions import StorageError


_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class FileKeyValueStore(KeyValueStorage):
    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._kv_root = self._root / "kv"
        self._kv_root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(code="STORE_READ_ERROR", message=str(e), key=key)

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = self._kv_root / f"{key}.{uuid4().hex}.tmp"
        try:
            tmp_path.write_text(value, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise StorageError(code="STORE_WRITE_ERROR", message=str(e), key=key)

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(code="STORE_DELETE_ERROR", message=str(e), key=key)

    def keys(self) -> List[str]:
        return sorted(p.stem for p in self._kv_root.glob("*.txt"))

    def clear(self) -> None:
        for key in self.keys():
            self.delete(key)

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise StorageError(code="INVALID_KEY", message=f"Invalid storage key: {key!r}")
        return self._kv_root / f"{key}.txt"
