"""Watch mode - file watcher with incremental reindexing and re-validation."""

import json
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Any, Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .core.errors import DocumentError
from .lint import Finding, validate_document


class DebounceHandler(FileSystemEventHandler):
    """File system event handler with debouncing."""

    def __init__(
        self,
        root: Path,
        on_batch: Callable[[set[str], set[str]], None],
        debounce_ms: int = 150,
    ):
        super().__init__()
        self.root = root
        self.on_batch = on_batch
        self.debounce_ms = debounce_ms

        # Pending changes by document id
        self.changed: set[str] = set()
        self.deleted: set[str] = set()
        self.last_event_time = 0.0
        self._lock = threading.Lock()

    def _extract_id(self, path: Path) -> str | None:
        """Document id for a path, or None if it should be ignored."""
        try:
            rel = path.relative_to(self.root)
        except ValueError:
            return None

        name = rel.name
        if any(part.startswith(".") for part in rel.parts):
            return None
        # Temp/swap files
        if name.endswith("~") or name.endswith(".swp") or name.startswith(".#"):
            return None
        if not name.endswith(".md"):
            return None

        return rel.as_posix()

    def _record(self, path: str, deleted: bool) -> None:
        doc_id = self._extract_id(Path(path))
        if not doc_id:
            return
        with self._lock:
            if deleted:
                self.changed.discard(doc_id)
                self.deleted.add(doc_id)
            else:
                self.deleted.discard(doc_id)
                self.changed.add(doc_id)
            self.last_event_time = time.time()

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record(str(event.src_path), deleted=False)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record(str(event.src_path), deleted=False)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record(str(event.src_path), deleted=True)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record(str(event.src_path), deleted=True)
            self._record(str(event.dest_path), deleted=False)

    def check_and_flush(self) -> None:
        """Flush if the debounce period has elapsed since the last event."""
        with self._lock:
            if not (self.changed or self.deleted):
                return
            elapsed = (time.time() - self.last_event_time) * 1000
        if elapsed >= self.debounce_ms:
            self.flush()

    def flush(self) -> None:
        """Process accumulated events."""
        # Swap under the lock; events arriving during on_batch go to the next batch
        with self._lock:
            changed, self.changed = self.changed, set()
            deleted, self.deleted = self.deleted, set()

        if not (changed or deleted):
            return
        if self.on_batch:
            self.on_batch(changed, deleted)


def check_changed(rt: Any, changed: set[str]) -> dict[str, list[Finding]]:
    """Re-validate changed documents; a load failure becomes an error finding."""
    results: dict[str, list[Finding]] = {}
    for doc_id in sorted(changed):
        try:
            doc = rt.corpus.get(doc_id)
        except DocumentError as e:
            results[doc_id] = [Finding("error", e.message, e.line, e.rule)]
            continue
        if doc is None:
            continue
        results[doc_id] = validate_document(doc, rt.rules, rt.config.lint.severity)
    return results


def watch_corpus(
    rt: Any,
    debounce_ms: int = 150,
    quiet: bool = False,
    json_output: bool = False,
) -> int:
    """
    Watch the corpus root for changes, reindex and re-validate.

    Args:
        rt: Runtime instance
        debounce_ms: Debounce window in milliseconds
        quiet: Suppress output
        json_output: Output JSON events instead of human-readable

    Returns:
        Exit code
    """
    root = rt.index.root
    if not root.exists():
        print(f"Error: Corpus root not found: {root}", file=sys.stderr)
        return 1

    counts = rt.index.rebuild()
    if not quiet and not json_output:
        print(f"Initial index: +{counts['inserted']} ~{counts['updated']} -{counts['removed']}")

    running = True

    def handle_batch(changed: set[str], deleted: set[str]) -> None:
        start_time = time.time()

        try:
            counts = rt.index.update_documents(changed, deleted)
            findings = check_changed(rt, changed)
        except Exception as e:
            if json_output:
                print(json.dumps({"type": "error", "message": str(e)}), flush=True)
            else:
                print(f"Error: {e}", file=sys.stderr, flush=True)
            return

        duration_ms = int((time.time() - start_time) * 1000)

        if json_output:
            event = {
                "type": "batch",
                "changed": sorted(changed),
                "deleted": sorted(deleted),
                "counts": counts,
                "findings": {
                    doc_id: [
                        {"severity": f.severity, "rule": f.rule, "message": f.message, "line": f.line}
                        for f in fs
                    ]
                    for doc_id, fs in findings.items()
                },
                "duration_ms": duration_ms,
            }
            print(json.dumps(event), flush=True)
        elif not quiet:
            print(
                f"Indexed: +{counts['inserted']} ~{counts['updated']} "
                f"-{counts['removed']} ({duration_ms}ms)",
                flush=True,
            )
            for doc_id, fs in findings.items():
                for f in fs:
                    where = f"{doc_id}:{f.line}" if f.line else doc_id
                    print(f"  {where}: [{f.severity}] {f.message}", flush=True)

    def signal_handler(signum: int, frame: Any) -> None:
        nonlocal running
        running = False
        if not quiet and not json_output:
            print("\nShutting down...", flush=True)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    handler = DebounceHandler(root.resolve(), handle_batch, debounce_ms)
    observer = Observer()
    observer.schedule(handler, str(root.resolve()), recursive=True)

    if not quiet and not json_output:
        print(f"Watching {root} (debounce: {debounce_ms}ms)", flush=True)
        print("Press Ctrl+C to stop", flush=True)

    observer.start()

    try:
        while running:
            time.sleep(0.1)
            handler.check_and_flush()
    finally:
        handler.flush()
        observer.stop()
        observer.join()

    if not quiet and not json_output:
        print("Watch stopped", flush=True)

    return 0
