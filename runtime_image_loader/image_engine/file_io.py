"""File system accessor used by the import pipeline.

All four operations can fail; callers map each failure to its own error
message so a missing file, an unreadable file and a failed size query are
distinguishable.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol


class FileSystem(Protocol):
    def exists(self, path: str) -> bool: ...

    def size(self, path: str) -> int: ...

    def modification_time(self, path: str) -> datetime: ...

    def read_bytes(self, path: str) -> bytes: ...


class LocalFileSystem:
    def exists(self, path: str) -> bool:
        return Path(path).is_file()

    def size(self, path: str) -> int:
        return int(os.stat(path).st_size)

    def modification_time(self, path: str) -> datetime:
        """Latest of creation and modification time, in UTC."""
        stat = os.stat(path)
        created = getattr(stat, "st_birthtime", stat.st_ctime)
        return datetime.fromtimestamp(max(created, stat.st_mtime), tz=timezone.utc)

    def read_bytes(self, path: str) -> bytes:
        return Path(path).read_bytes()
