"""Configuration loader for sheetdex.toml."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

CONFIG_NAME = "sheetdex.toml"


@dataclass
class CorpusConfig:
    """Where the Markdown files live and where the index is cached."""
    root: Path
    glob: str
    db: Path


@dataclass
class LintConfig:
    """Validation rule selection."""
    disable: list[str] = field(default_factory=list)
    severity: dict[str, str] = field(default_factory=dict)
    snippet_languages: list[str] | None = None


@dataclass
class TocConfig:
    """Table of contents rendering."""
    max_level: int = 6


@dataclass
class SheetdexConfig:
    """Complete sheetdex configuration."""
    corpus: CorpusConfig
    lint: LintConfig
    toc: TocConfig


def load_config(config_path: Path | None = None, root_path: Path | None = None) -> SheetdexConfig:
    """
    Load configuration from sheetdex.toml.

    Search order:
    1. config_path (if provided)
    2. cwd/sheetdex.toml
    3. root_path/sheetdex.toml

    Args:
        config_path: Explicit path to config file
        root_path: Corpus root; overrides [corpus] root and is searched for a config

    Returns:
        SheetdexConfig with resolved settings

    Raises:
        FileNotFoundError: config_path was given but does not exist
        ValueError: a setting has the wrong type or value
    """
    toml_data: dict[str, Any] = {}

    if config_path and not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    search_paths = []
    if config_path:
        search_paths.append(config_path)
    search_paths.append(Path.cwd() / CONFIG_NAME)
    if root_path:
        search_paths.append(root_path / CONFIG_NAME)

    for path in search_paths:
        if path.exists():
            with open(path, "rb") as f:
                toml_data = tomllib.load(f)
            break

    corpus_data = toml_data.get("corpus", {})
    # An explicit root (--root) wins, and the default db follows it
    root = Path(root_path) if root_path else Path(corpus_data.get("root", "."))
    corpus_config = CorpusConfig(
        root=root,
        glob=corpus_data.get("glob", "**/*.md"),
        db=Path(corpus_data.get("db", root / ".sheetdex" / "index.sqlite")),
    )

    lint_data = toml_data.get("lint", {})
    severity = dict(lint_data.get("severity", {}))
    for rule_id, level in severity.items():
        if level not in ("info", "warn", "error"):
            raise ValueError(f"Invalid severity {level!r} for lint rule {rule_id}")
    languages = lint_data.get("snippet_languages")
    lint_config = LintConfig(
        disable=list(lint_data.get("disable", [])),
        severity=severity,
        snippet_languages=list(languages) if languages is not None else None,
    )

    toc_data = toml_data.get("toc", {})
    max_level = toc_data.get("max_level", 6)
    if not isinstance(max_level, int) or not 1 <= max_level <= 6:
        raise ValueError(f"toc.max_level must be between 1 and 6, got {max_level!r}")
    toc_config = TocConfig(max_level=max_level)

    return SheetdexConfig(
        corpus=corpus_config,
        lint=lint_config,
        toc=toc_config,
    )
