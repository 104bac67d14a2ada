"""Tests for the SQLite section index."""

import os
import tempfile
from pathlib import Path

import pytest

from sheetdex.adapters.fs_storage import FsStorage
from sheetdex.adapters.markdown_parser import MarkdownParser
from sheetdex.adapters.sqlite_index import SQLiteIndex
from sheetdex.core.corpus import Corpus

KEYS = """# Keys

## Composite keys

```csharp
modelBuilder.Entity<Car>().HasKey(c => new { c.State, c.LicensePlate });
```

## Alternate keys

Use HasAlternateKey for unique constraints.
"""

TRACKING = """# Change tracking

## No-tracking queries

```csharp
var blogs = context.Blogs.AsNoTracking().ToList();
```

```sql
SELECT * FROM Blogs;
```
"""


@pytest.fixture
def temp_corpus():
    """Create a temporary corpus and index for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir) / "notes"
        root.mkdir()
        (root / "keys.md").write_text(KEYS)
        (root / "tracking.md").write_text(TRACKING)

        corpus = Corpus(FsStorage(root), MarkdownParser())
        index = SQLiteIndex(db_path=Path(tmpdir) / "test.db", root=root, corpus=corpus)

        yield index, root


def _touch(path: Path, text: str) -> None:
    """Write and bump mtime so the change is always detected."""
    path.write_text(text)
    st = path.stat()
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + 1_000_000_000))


def test_index_build_basic(temp_corpus):
    index, _root = temp_corpus

    counts = index.rebuild(full=True)

    assert counts == {
        "scanned": 2,
        "dirty": 2,
        "inserted": 2,
        "updated": 0,
        "removed": 0,
        "failed": 0,
    }

    conn = index._conn()
    try:
        rows = conn.execute(
            "SELECT slug, level, start_line, block_count FROM sections "
            "WHERE doc_id = ? ORDER BY ord",
            ("keys.md",)
        ).fetchall()
        assert rows == [
            ("keys", 1, 0, 0),
            ("composite-keys", 2, 2, 1),
            ("alternate-keys", 2, 8, 0),
        ]
        title = conn.execute(
            "SELECT title FROM documents WHERE id = ?", ("tracking.md",)
        ).fetchone()[0]
        assert title == "Change tracking"
    finally:
        conn.close()


def test_incremental_rebuild_skips_clean(temp_corpus):
    index, root = temp_corpus
    index.rebuild()

    counts = index.rebuild()
    assert counts["dirty"] == 0

    _touch(root / "keys.md", KEYS + "\n## Shadow keys\n")
    counts = index.rebuild()
    assert counts["dirty"] == 1
    assert counts["updated"] == 1

    hits = index.search("shadow")
    assert [(h.doc_id, h.slug) for h in hits] == [("keys.md", "shadow-keys")]


def test_rebuild_removes_deleted(temp_corpus):
    index, root = temp_corpus
    index.rebuild()

    (root / "tracking.md").unlink()
    counts = index.rebuild()

    assert counts["removed"] == 1
    assert index.search("AsNoTracking") == []


def test_search_sections(temp_corpus):
    index, _root = temp_corpus
    index.rebuild()

    hits = index.search("AsNoTracking")
    assert len(hits) == 1
    hit = hits[0]
    assert hit.doc_id == "tracking.md"
    assert hit.slug == "no-tracking-queries"
    assert hit.level == 2
    assert hit.line == 3

    snippet = index.snippet(hit, "AsNoTracking")
    assert snippet is not None
    assert "[AsNoTracking]" in snippet


def test_search_matches_titles(temp_corpus):
    index, _root = temp_corpus
    index.rebuild()

    hits = index.search("composite")
    assert [h.title for h in hits] == ["Composite keys"]


def test_parse_failures_are_recorded(temp_corpus):
    index, root = temp_corpus
    (root / "broken.md").write_text("# Broken\n\n```csharp\nvar x = 1;\n")

    counts = index.rebuild()

    assert counts["inserted"] == 2
    assert counts["failed"] == 1
    failures = index.failures()
    assert list(failures) == ["broken.md"]
    assert "unterminated" in failures["broken.md"]


def test_languages(temp_corpus):
    index, _root = temp_corpus
    index.rebuild()

    assert index.languages() == {"csharp": 2, "sql": 1}


def test_update_documents(temp_corpus):
    index, root = temp_corpus
    index.rebuild()

    (root / "joins.md").write_text("# Joins\n\nGroupJoin works like a left join.\n")
    counts = index.update_documents(changed={"joins.md"}, deleted={"keys.md"})

    assert counts == {"inserted": 1, "updated": 0, "removed": 1, "failed": 0}
    assert [h.doc_id for h in index.search("GroupJoin")] == ["joins.md"]
    assert index.search("composite") == []


def test_corrupt_db_is_replaced(temp_corpus):
    index, _root = temp_corpus
    index.db_path.write_bytes(b"this is not a sqlite database" * 100)

    counts = index.rebuild()

    assert counts["inserted"] == 2
    backups = list(index.db_path.parent.glob("test.bad-*.sqlite"))
    assert len(backups) == 1


def test_undecodable_files_are_recorded(temp_corpus):
    index, root = temp_corpus
    (root / "cafe.md").write_bytes(b"# Caf\xe9\n\nCr\xe8me br\xfbl\xe9e\n")

    counts = index.rebuild()

    assert counts["inserted"] == 2
    assert counts["failed"] == 1
    failures = index.failures()
    assert list(failures) == ["cafe.md"]
    assert "UTF-8" in failures["cafe.md"]
    assert [h.doc_id for h in index.search("composite")] == ["keys.md"]
