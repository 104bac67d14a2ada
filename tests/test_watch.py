"""Tests for watch mode event batching and re-validation."""

import tempfile
import threading
from pathlib import Path

from watchdog.events import (
    DirCreatedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from sheetdex.runtime import build_runtime
from sheetdex.watch import DebounceHandler, check_changed


def _handler(root: Path, batches: list):
    return DebounceHandler(root, lambda changed, deleted: batches.append((changed, deleted)), 0)


def test_handler_batches_markdown_changes():
    root = Path("/corpus")
    batches: list = []
    handler = _handler(root, batches)

    handler.on_created(FileCreatedEvent("/corpus/ef/keys.md"))
    handler.on_modified(FileModifiedEvent("/corpus/linq.md"))
    handler.on_deleted(FileDeletedEvent("/corpus/old.md"))
    handler.flush()

    assert batches == [({"ef/keys.md", "linq.md"}, {"old.md"})]


def test_handler_skips_noise():
    root = Path("/corpus")
    batches: list = []
    handler = _handler(root, batches)

    handler.on_created(DirCreatedEvent("/corpus/newdir"))
    handler.on_modified(FileModifiedEvent("/corpus/notes.txt"))
    handler.on_modified(FileModifiedEvent("/corpus/.keys.md.swp"))
    handler.on_modified(FileModifiedEvent("/corpus/keys.md~"))
    handler.on_modified(FileModifiedEvent("/corpus/.sheetdex/index.md"))
    handler.on_modified(FileModifiedEvent("/elsewhere/keys.md"))
    handler.flush()

    assert batches == []


def test_handler_move_and_delete_cancel_changes():
    root = Path("/corpus")
    batches: list = []
    handler = _handler(root, batches)

    handler.on_modified(FileModifiedEvent("/corpus/a.md"))
    handler.on_deleted(FileDeletedEvent("/corpus/a.md"))
    handler.on_moved(FileMovedEvent("/corpus/b.md", "/corpus/c.md"))
    handler.check_and_flush()

    assert batches == [({"c.md"}, {"a.md", "b.md"})]
    assert not handler.changed and not handler.deleted


def test_check_and_flush_waits_for_debounce():
    root = Path("/corpus")
    batches: list = []
    handler = DebounceHandler(root, lambda c, d: batches.append((c, d)), debounce_ms=60_000)

    handler.on_modified(FileModifiedEvent("/corpus/a.md"))
    handler.check_and_flush()
    assert batches == []

    handler.flush()
    assert batches == [({"a.md"}, set())]


def test_events_during_batch_go_to_next_batch():
    root = Path("/corpus")
    batches: list = []

    def on_batch(changed, deleted):
        batches.append((changed, deleted))
        if len(batches) == 1:
            handler.on_modified(FileModifiedEvent("/corpus/late.md"))

    handler = DebounceHandler(root, on_batch, 0)
    handler.on_modified(FileModifiedEvent("/corpus/a.md"))
    handler.flush()
    handler.flush()

    assert batches == [({"a.md"}, set()), ({"late.md"}, set())]


def test_concurrent_events_are_never_dropped():
    root = Path("/corpus")
    batches: list = []
    handler = _handler(root, batches)
    expected = {f"n{i}.md" for i in range(2000)}

    def produce():
        for doc_id in sorted(expected):
            handler.on_modified(FileModifiedEvent(f"/corpus/{doc_id}"))

    producer = threading.Thread(target=produce)
    producer.start()
    while producer.is_alive():
        handler.flush()
    producer.join()
    handler.flush()

    seen = set()
    for changed, _deleted in batches:
        seen |= changed
    assert seen == expected


def test_check_changed_revalidates():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "ok.md").write_text("# Ok\n\n```sql\nSELECT 1;\n```\n")
        (root / "dupes.md").write_text("# Same\n\n# Same\n")
        (root / "broken.md").write_text("# Broken\n```\n")

        rt = build_runtime(root_path=root)
        results = check_changed(rt, {"ok.md", "dupes.md", "broken.md", "gone.md"})

        assert list(results) == ["broken.md", "dupes.md", "ok.md"]
        assert results["ok.md"] == []
        assert results["dupes.md"][0].rule == "duplicate-headings"
        assert results["broken.md"][0].rule == "parse"
        assert results["broken.md"][0].line == 2


def test_check_changed_reports_undecodable_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "cafe.md").write_bytes(b"# Caf\xe9\n")

        rt = build_runtime(root_path=root)
        results = check_changed(rt, {"cafe.md"})

        assert [f.rule for f in results["cafe.md"]] == ["encoding"]
        assert results["cafe.md"][0].severity == "error"
