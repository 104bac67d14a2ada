"""Tests for configuration loading."""

import os
import tempfile
from pathlib import Path

import pytest

from sheetdex.config import load_config


def test_load_config_defaults():
    """Test loading config with defaults when no file exists."""
    with tempfile.TemporaryDirectory() as tmpdir:
        orig_cwd = os.getcwd()
        try:
            os.chdir(tmpdir)
            config = load_config()
        finally:
            os.chdir(orig_cwd)

    assert config.corpus.root == Path(".")
    assert config.corpus.glob == "**/*.md"
    assert config.corpus.db == Path(".") / ".sheetdex" / "index.sqlite"
    assert config.lint.disable == []
    assert config.lint.snippet_languages is None
    assert config.toc.max_level == 6


def test_load_config_from_file():
    """Test loading config from a file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "sheetdex.toml"
        config_path.write_text("""
[corpus]
root = "notes"
glob = "sheets/*.md"
db = "cache.db"

[lint]
disable = ["fence-lang"]
snippet_languages = ["json"]

[lint.severity]
heading-skip = "error"

[toc]
max_level = 2
""")

        config = load_config(config_path=config_path)

        assert config.corpus.root == Path("notes")
        assert config.corpus.glob == "sheets/*.md"
        assert config.corpus.db == Path("cache.db")
        assert config.lint.disable == ["fence-lang"]
        assert config.lint.snippet_languages == ["json"]
        assert config.lint.severity == {"heading-skip": "error"}
        assert config.toc.max_level == 2


def test_load_config_search_root():
    """Test config search in the corpus root."""
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir) / "notes"
        root.mkdir()
        (root / "sheetdex.toml").write_text("""
[toc]
max_level = 3
""")

        config = load_config(root_path=root)
        assert config.toc.max_level == 3
        assert config.corpus.root == root
        assert config.corpus.db == root / ".sheetdex" / "index.sqlite"


def test_explicit_root_overrides_config_root():
    """--root wins over [corpus] root, and the default db follows it."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "sheetdex.toml"
        config_path.write_text('[corpus]\nroot = "elsewhere"\n')
        root = Path(tmpdir) / "notes"
        root.mkdir()

        config = load_config(config_path=config_path, root_path=root)
        assert config.corpus.root == root
        assert config.corpus.db == root / ".sheetdex" / "index.sqlite"

        config_path.write_text('[corpus]\nroot = "elsewhere"\ndb = "cache.db"\n')
        config = load_config(config_path=config_path, root_path=root)
        assert config.corpus.db == Path("cache.db")


def test_load_config_missing_explicit_file():
    with pytest.raises(FileNotFoundError):
        load_config(config_path=Path("/nonexistent/sheetdex.toml"))


def test_load_config_rejects_bad_values():
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "sheetdex.toml"

        config_path.write_text('[lint.severity]\nfence-lang = "fatal"\n')
        with pytest.raises(ValueError):
            load_config(config_path=config_path)

        config_path.write_text("[toc]\nmax_level = 9\n")
        with pytest.raises(ValueError):
            load_config(config_path=config_path)
