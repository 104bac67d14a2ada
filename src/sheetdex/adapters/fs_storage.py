from os import stat_result
from pathlib import Path
from typing import Iterable

from ..core.errors import DecodeError
from ..core.ports import StorageStrategy


class FsStorage(StorageStrategy):
    def __init__(self, root: Path, pattern: str = "**/*.md"):
        self.root = root
        self.pattern = pattern

    def path(self, id: str) -> Path:
        return self.root / id

    def read_raw(self, id: str) -> str | None:
        p = self.path(id)
        if not p.is_file():
            return None
        try:
            return p.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(
                f"not valid UTF-8 (byte {e.start}: {e.reason})", path=id
            ) from e

    def stat(self, id: str) -> stat_result | None:
        p = self.path(id)
        return p.stat() if p.is_file() else None

    def _skip(self, rel: Path) -> bool:
        return any(part.startswith(".") for part in rel.parts)

    def list_all_ids(self) -> Iterable[str]:
        if not self.root.exists():
            return []
        ids = []
        for p in self.root.glob(self.pattern):
            rel = p.relative_to(self.root)
            if p.is_file() and not self._skip(rel):
                ids.append(rel.as_posix())
        return sorted(ids)
