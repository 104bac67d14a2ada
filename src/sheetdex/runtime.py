"""Runtime wiring helper for CLI applications."""

from dataclasses import dataclass
from pathlib import Path

from .adapters.fs_storage import FsStorage
from .adapters.markdown_parser import MarkdownParser
from .adapters.sqlite_index import SQLiteIndex
from .config import SheetdexConfig, load_config
from .core.corpus import Corpus
from .lint import LintRule, default_rules


@dataclass
class Runtime:
    """Container for all wired components."""
    corpus: Corpus
    storage: FsStorage
    index: SQLiteIndex
    rules: list[LintRule]
    config: SheetdexConfig


def build_runtime(
    root_path: Path | None = None,
    db_path: Path | None = None,
    config_path: Path | None = None,
) -> Runtime:
    """Build and wire all components for a corpus."""
    config = load_config(config_path=config_path, root_path=root_path)

    # load_config already applied --root; --db still wins over the config
    root_path = config.corpus.root
    if db_path is None:
        db_path = config.corpus.db

    storage = FsStorage(root_path, pattern=config.corpus.glob)
    corpus = Corpus(storage, MarkdownParser())
    index = SQLiteIndex(db_path=db_path, root=root_path, corpus=corpus)
    rules = default_rules(
        disable=config.lint.disable,
        snippet_languages=config.lint.snippet_languages,
    )

    return Runtime(
        corpus=corpus,
        storage=storage,
        index=index,
        rules=rules,
        config=config,
    )
