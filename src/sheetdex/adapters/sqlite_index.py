"""SQLite-backed section index with FTS5 search and incremental updates."""

import hashlib
import logging
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path

from ..core.corpus import Corpus
from ..core.errors import DocumentError
from ..core.model import DocId

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1"


@dataclass(frozen=True)
class SectionHit:
    doc_id: DocId
    ord: int  # section position within the document
    slug: str
    title: str
    level: int
    line: int  # 1-based heading line


@dataclass
class SQLiteIndex:
    """
    Searchable table of contents for a corpus.

    The DB is a cache that can be rebuilt; Markdown files remain the source
    of truth.
    """

    db_path: Path
    root: Path
    corpus: Corpus

    def _conn(self) -> sqlite3.Connection:
        """Get a connection to the SQLite database."""
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA temp_store=MEMORY")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _init_schema(self) -> None:
        """Create tables if they don't exist."""
        conn = self._conn()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    mtime_ns INTEGER NOT NULL,
                    size_bytes INTEGER NOT NULL,
                    hash TEXT,
                    title TEXT,
                    parse_error TEXT
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS sections (
                    doc_id TEXT NOT NULL,
                    ord INTEGER NOT NULL,
                    level INTEGER NOT NULL,
                    slug TEXT NOT NULL,
                    title TEXT NOT NULL,
                    start_line INTEGER NOT NULL,
                    end_line INTEGER NOT NULL,
                    block_count INTEGER NOT NULL,
                    PRIMARY KEY (doc_id, ord),
                    FOREIGN KEY (doc_id) REFERENCES documents(id) ON DELETE CASCADE
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS code_blocks (
                    doc_id TEXT NOT NULL,
                    ord INTEGER NOT NULL,
                    section_ord INTEGER NOT NULL,
                    lang TEXT NOT NULL,
                    start_line INTEGER NOT NULL,
                    end_line INTEGER NOT NULL,
                    PRIMARY KEY (doc_id, ord),
                    FOREIGN KEY (doc_id) REFERENCES documents(id) ON DELETE CASCADE
                )
            """)

            conn.execute("""
                CREATE VIRTUAL TABLE IF NOT EXISTS fts USING fts5(
                    doc_id UNINDEXED,
                    ord UNINDEXED,
                    slug UNINDEXED,
                    title,
                    body,
                    tokenize = "unicode61 remove_diacritics 2"
                )
            """)

            conn.execute("CREATE INDEX IF NOT EXISTS sections_slug_idx ON sections(doc_id, slug)")
            conn.execute("CREATE INDEX IF NOT EXISTS code_blocks_lang_idx ON code_blocks(lang)")

            conn.execute("""
                INSERT INTO meta(key, value) VALUES('schema_version', ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
            """, (SCHEMA_VERSION,))

            conn.commit()
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        """Ensure DB exists and schema is initialized."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        if self.db_path.exists():
            try:
                conn = self._conn()
                try:
                    conn.execute("SELECT 1").fetchone()
                finally:
                    conn.close()
            except sqlite3.DatabaseError:
                # Corrupt DB, move it aside and recreate
                timestamp = int(time.time())
                backup_path = self.db_path.with_suffix(f".bad-{timestamp}.sqlite")
                self.db_path.rename(backup_path)
                logger.warning("Corrupt index DB backed up to %s", backup_path)

        self._init_schema()

    def _get_file_stats(self, doc_id: DocId) -> tuple[int, int] | None:
        """Get mtime_ns and size_bytes for a document, or None if not found."""
        stat = self.corpus.storage.stat(doc_id)
        if stat is None:
            return None
        return (stat.st_mtime_ns, stat.st_size)

    def _compute_hash(self, doc_id: DocId) -> str | None:
        """Compute SHA256 hash of a document."""
        file_path = self.corpus.storage.path(doc_id)
        if not file_path.is_file():
            return None
        return hashlib.sha256(file_path.read_bytes()).hexdigest()

    def _is_dirty(self, doc_id: DocId, use_hash: bool, conn: sqlite3.Connection) -> bool:
        """Check if a document needs reindexing."""
        stats = self._get_file_stats(doc_id)
        if stats is None:
            return False

        mtime_ns, size_bytes = stats
        row = conn.execute(
            "SELECT mtime_ns, size_bytes, hash FROM documents WHERE id = ?",
            (doc_id,)
        ).fetchone()

        if row is None:
            return True

        db_mtime, db_size, db_hash = row
        if db_mtime != mtime_ns or db_size != size_bytes:
            return True

        if use_hash and self._compute_hash(doc_id) != db_hash:
            return True

        return False

    def _delete_document(self, doc_id: DocId, conn: sqlite3.Connection) -> None:
        conn.execute("DELETE FROM sections WHERE doc_id = ?", (doc_id,))
        conn.execute("DELETE FROM code_blocks WHERE doc_id = ?", (doc_id,))
        conn.execute("DELETE FROM fts WHERE doc_id = ?", (doc_id,))
        conn.execute("DELETE FROM documents WHERE id = ?", (doc_id,))

    def _index_document(self, doc_id: DocId, use_hash: bool, conn: sqlite3.Connection) -> bool:
        """
        Index a single document. Returns True on success, False if the file
        is gone or fails to load; a load failure is still recorded.
        """
        stats = self._get_file_stats(doc_id)
        if stats is None:
            return False
        mtime_ns, size_bytes = stats
        file_hash = self._compute_hash(doc_id) if use_hash else None

        try:
            doc = self.corpus.get(doc_id)
        except DocumentError as e:
            logger.warning("Failed to load %s: %s", doc_id, e)
            with conn:
                self._delete_document(doc_id, conn)
                conn.execute("""
                    INSERT INTO documents (id, mtime_ns, size_bytes, hash, title, parse_error)
                    VALUES (?, ?, ?, ?, NULL, ?)
                """, (doc_id, mtime_ns, size_bytes, file_hash, str(e)))
            return False
        if doc is None:
            return False

        lines = doc.lines
        try:
            with conn:
                self._delete_document(doc_id, conn)
                conn.execute("""
                    INSERT INTO documents (id, mtime_ns, size_bytes, hash, title, parse_error)
                    VALUES (?, ?, ?, ?, ?, NULL)
                """, (doc_id, mtime_ns, size_bytes, file_hash, doc.title))

                block_ord = 0
                for ord_, section in enumerate(doc.sections):
                    conn.execute("""
                        INSERT INTO sections
                            (doc_id, ord, level, slug, title, start_line, end_line, block_count)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """, (
                        doc_id,
                        ord_,
                        section.level,
                        section.slug,
                        section.title,
                        section.start_line,
                        section.end_line,
                        len(section.blocks),
                    ))

                    for block in section.blocks:
                        conn.execute("""
                            INSERT INTO code_blocks
                                (doc_id, ord, section_ord, lang, start_line, end_line)
                            VALUES (?, ?, ?, ?, ?, ?)
                        """, (
                            doc_id,
                            block_ord,
                            ord_,
                            block.lang,
                            block.start_line,
                            block.end_line,
                        ))
                        block_ord += 1

                    if section.is_preamble:
                        continue
                    body = "".join(lines[section.start_line + 1 : section.end_line])
                    conn.execute(
                        "INSERT INTO fts (doc_id, ord, slug, title, body) VALUES (?, ?, ?, ?, ?)",
                        (doc_id, ord_, section.slug, section.title, body)
                    )
            return True
        except sqlite3.Error as e:
            logger.warning("Failed to index %s: %s", doc_id, e)
            return False

    def rebuild(self, full: bool = False, use_hash: bool = False) -> dict[str, int]:
        """
        Rebuild or update the index.

        Args:
            full: If True, force full rebuild. Otherwise incremental.
            use_hash: If True, use SHA256 hash for change detection.

        Returns:
            Dictionary with counts: scanned, dirty, inserted, updated, removed, failed
        """
        self._ensure_schema()
        conn = self._conn()

        try:
            counts = {
                "scanned": 0,
                "dirty": 0,
                "inserted": 0,
                "updated": 0,
                "removed": 0,
                "failed": 0,
            }

            file_ids = set(self.corpus.list_ids())
            counts["scanned"] = len(file_ids)

            db_ids = set(
                row[0] for row in conn.execute("SELECT id FROM documents").fetchall()
            )

            with conn:
                for doc_id in db_ids - file_ids:
                    self._delete_document(doc_id, conn)
                    counts["removed"] += 1

            for doc_id in sorted(file_ids):
                is_new = doc_id not in db_ids
                if full or self._is_dirty(doc_id, use_hash, conn):
                    counts["dirty"] += 1
                    if self._index_document(doc_id, use_hash, conn):
                        if is_new:
                            counts["inserted"] += 1
                        else:
                            counts["updated"] += 1
                    else:
                        counts["failed"] += 1

            if full:
                conn.execute("VACUUM")
                conn.execute("ANALYZE")

            return counts

        finally:
            conn.close()

    def update_documents(self, changed: set[DocId], deleted: set[DocId]) -> dict[str, int]:
        """
        Incrementally update specific documents in the index.

        Args:
            changed: Document ids that were created or modified
            deleted: Document ids that were deleted

        Returns:
            Dictionary with counts: inserted, updated, removed, failed
        """
        self._ensure_schema()
        conn = self._conn()
        conn.execute("PRAGMA busy_timeout=3000")

        try:
            counts = {
                "inserted": 0,
                "updated": 0,
                "removed": 0,
                "failed": 0,
            }

            with conn:
                for doc_id in deleted:
                    self._delete_document(doc_id, conn)
                    counts["removed"] += 1

            db_ids = set(
                row[0] for row in conn.execute(
                    "SELECT id FROM documents WHERE id IN ({})".format(
                        ",".join("?" * len(changed))
                    ),
                    tuple(changed)
                ).fetchall()
            ) if changed else set()

            for doc_id in sorted(changed):
                if self._index_document(doc_id, False, conn):
                    if doc_id in db_ids:
                        counts["updated"] += 1
                    else:
                        counts["inserted"] += 1
                else:
                    counts["failed"] += 1

            return counts

        finally:
            conn.close()

    def search(self, query: str, limit: int = 50) -> list[SectionHit]:
        """Search section titles and bodies using FTS5."""
        self._ensure_schema()
        conn = self._conn()
        try:
            rows = conn.execute("""
                SELECT doc_id, ord FROM fts
                WHERE fts MATCH ?
                ORDER BY rank
                LIMIT ?
            """, (query, limit)).fetchall()

            hits = []
            for doc_id, ord_ in rows:
                row = conn.execute("""
                    SELECT slug, title, level, start_line FROM sections
                    WHERE doc_id = ? AND ord = ?
                """, (doc_id, ord_)).fetchone()
                if row is None:
                    continue
                slug, title, level, start_line = row
                hits.append(
                    SectionHit(
                        doc_id=doc_id,
                        ord=ord_,
                        slug=slug,
                        title=title,
                        level=level,
                        line=start_line + 1,
                    )
                )
            return hits
        finally:
            conn.close()

    def snippet(self, hit: SectionHit, query: str) -> str | None:
        """Get a snippet of a section body with highlighted matches."""
        conn = self._conn()
        try:
            row = conn.execute("""
                SELECT snippet(fts, 4, '[', ']', ' … ', 16)
                FROM fts
                WHERE fts MATCH ? AND doc_id = ? AND ord = ?
            """, (query, hit.doc_id, hit.ord)).fetchone()

            return row[0] if row else None
        finally:
            conn.close()

    def failures(self) -> dict[DocId, str]:
        """Documents whose last indexing attempt failed to load."""
        self._ensure_schema()
        conn = self._conn()
        try:
            rows = conn.execute("""
                SELECT id, parse_error FROM documents
                WHERE parse_error IS NOT NULL
                ORDER BY id
            """).fetchall()
            return {row[0]: row[1] for row in rows}
        finally:
            conn.close()

    def languages(self) -> dict[str, int]:
        """Code block counts per language tag ("" for untagged)."""
        self._ensure_schema()
        conn = self._conn()
        try:
            rows = conn.execute("""
                SELECT lang, COUNT(*) FROM code_blocks
                GROUP BY lang
                ORDER BY COUNT(*) DESC, lang
            """).fetchall()
            return {row[0]: row[1] for row in rows}
        finally:
            conn.close()
