from os import stat_result
from pathlib import Path
from typing import Any, Iterable, Protocol

from .model import DocId, Document


class StorageStrategy(Protocol):
    """
    Read-only view of a directory tree of Markdown files, addressed by
    POSIX paths relative to the root.
    """

    def read_raw(self, id: DocId) -> str | None:
        """Raises DecodeError when the file is not valid UTF-8."""
        pass

    def list_all_ids(self) -> Iterable[DocId]:
        pass

    def path(self, id: DocId) -> Path:
        pass

    def stat(self, id: DocId) -> stat_result | None:
        pass


class ParserStrategy(Protocol):
    """
    Parse Markdown into sections and code blocks. Raises ParseError on an
    unterminated fence and performs no other validation.
    """

    def parse(self, text: str, path: DocId = "") -> Document:
        pass


class FrontmatterCodec(Protocol):
    """
    Lift optional frontmatter without enforcing schema.
    """

    def decode(self, text: str) -> tuple[dict[str, Any], str]:
        pass
