import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from .errors import DocumentError
from .model import DocId, Document
from .ports import ParserStrategy, StorageStrategy

logger = logging.getLogger(__name__)


@dataclass
class LoadResult:
    documents: list[Document] = field(default_factory=list)
    failures: dict[DocId, DocumentError] = field(default_factory=dict)


class Corpus:
    def __init__(self, storage: StorageStrategy, parser: ParserStrategy):
        self.storage = storage
        self.parser = parser

    def get(self, id: DocId) -> Document | None:
        """Parse one document. Raises ParseError or DecodeError if it is malformed."""
        raw = self.storage.read_raw(id)
        if raw is None:
            return None
        return self.parser.parse(raw, id)

    def list_ids(self) -> Iterable[DocId]:
        return self.storage.list_all_ids()

    def select(self, paths: Iterable[str]) -> list[DocId]:
        """
        Resolve user-supplied paths to document ids.

        Each path may be an id relative to the corpus root, or a file or
        directory on disk inside the root. Directories select every document
        beneath them. An empty selection means the whole corpus.
        """
        paths = list(paths)
        all_ids = list(self.list_ids())
        if not paths:
            return all_ids

        root = self.storage.path("").resolve()
        selected: list[DocId] = []
        for raw_path in paths:
            candidate = Path(raw_path)
            if not candidate.is_absolute() and not candidate.exists():
                candidate = root / raw_path
            try:
                rel = candidate.resolve().relative_to(root).as_posix()
            except ValueError:
                raise FileNotFoundError(
                    f"{raw_path} is outside the corpus root {root}"
                ) from None

            if rel == ".":
                matches = all_ids
            else:
                matches = [i for i in all_ids if i == rel or i.startswith(rel + "/")]
            if not matches:
                raise FileNotFoundError(f"No documents match {raw_path}")
            for id in matches:
                if id not in selected:
                    selected.append(id)
        return selected

    def load_all(self, ids: Iterable[DocId] | None = None) -> LoadResult:
        """Parse many documents; a malformed one never stops the rest."""
        result = LoadResult()
        for id in self.list_ids() if ids is None else ids:
            try:
                doc = self.get(id)
            except DocumentError as e:
                logger.warning("Skipping %s: %s", id, e.message)
                result.failures[id] = e
                continue
            if doc is not None:
                result.documents.append(doc)
        return result
