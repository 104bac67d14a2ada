"""CLI for sheetdex - parse, validate and index Markdown cheat sheets."""

import argparse
import json
import logging
import platform
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .core.slicer import parse_ref, slice_by_anchor
from .indexer import CorpusToc, render_toc
from .lint import validate_corpus
from .locate import format_tsv, locate_ref
from .runtime import build_runtime


def cmd_toc(args: argparse.Namespace, rt: Any) -> int:
    """Print a table of contents."""
    ids = rt.corpus.select(args.paths)
    loaded = rt.corpus.load_all(ids)

    toc = CorpusToc.build(loaded.documents)
    fmt = "json" if args.json else args.format
    max_level = args.max_level or rt.config.toc.max_level
    print(render_toc(toc, fmt=fmt, max_level=max_level), end="")

    if not args.quiet and fmt != "json":
        for path, dup in toc.warnings():
            print(f"Warning: {path}: {dup}", file=sys.stderr)

    return 1 if loaded.failures else 0


def cmd_check(args: argparse.Namespace, rt: Any) -> int:
    """Validate fences and headings."""
    ids = rt.corpus.select(args.paths)
    report = validate_corpus(rt.corpus, rt.rules, ids, rt.config.lint.severity)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        if not args.quiet:
            for path, findings in report.findings.items():
                for f in findings:
                    where = f"{path}:{f.line}" if f.line else path
                    print(f"{where}: [{f.severity}] {f.message} ({f.rule})")
        status = "PASS" if report.passed else "FAIL"
        print(
            f"{status}: {report.checked} documents, "
            f"{report.errors} errors, {report.warnings} warnings"
        )

    return 0 if report.passed else 1


def cmd_blocks(args: argparse.Namespace, rt: Any) -> int:
    """List code blocks."""
    ids = rt.corpus.select(args.paths)
    loaded = rt.corpus.load_all(ids)

    rows = []
    for doc in loaded.documents:
        for number, block in enumerate(doc.code_blocks, start=1):
            if args.lang and block.lang.lower() != args.lang.lower():
                continue
            section = doc.section_of(block)
            rows.append({
                "ref": f"{doc.path}#{number}",
                "lang": block.lang,
                "line": block.start_line + 1,
                "lines": block.end_line - block.start_line - 2,
                "section": section.title,
            })

    if args.json:
        print(json.dumps(rows, indent=2))
    else:
        for row in rows:
            lang = row["lang"] or "-"
            print(f"{row['ref']}\t{lang}\t:{row['line']}\t{row['section']}")

    return 1 if loaded.failures else 0


def cmd_yank(args: argparse.Namespace, rt: Any) -> int:
    """Print a section or code block."""
    doc_id, anchor = parse_ref(args.ref)

    doc = rt.corpus.get(doc_id)
    if doc is None:
        print(f"Document {doc_id} not found", file=sys.stderr)
        return 1

    start, end = slice_by_anchor(doc, anchor)
    if start == end:
        if anchor:
            print(f"Anchor #{anchor.value} not found in {doc_id}", file=sys.stderr)
            return 1
        return 0

    lines = doc.lines[start:end]

    # Drop the fences of a single code block
    if args.plain and anchor and anchor.kind == "block":
        lines = lines[1:-1]

    print("".join(lines), end="")
    return 0


def cmd_locate(args: argparse.Namespace, rt: Any) -> int:
    """Print the position of a document, section or code block."""
    doc_id, anchor = parse_ref(args.ref)

    doc = rt.corpus.get(doc_id)
    if doc is None:
        print(f"Document {doc_id} not found", file=sys.stderr)
        return 1

    location = locate_ref(doc, anchor)
    if not location:
        print(f"Anchor #{anchor.value} not found in {doc_id}", file=sys.stderr)
        return 1

    abs_path = str(rt.storage.path(doc_id).absolute())
    if args.format == "tsv":
        print(format_tsv(location, abs_path))
    else:
        location["abs_path"] = abs_path
        print(json.dumps(location, indent=2))
    return 0


def cmd_reindex(args: argparse.Namespace, rt: Any) -> int:
    """Build or repair the SQLite index."""
    if not args.quiet and not args.json:
        print(f"Reindexing corpus... (full={args.full}, hash={args.hash})")

    counts = rt.index.rebuild(full=args.full, use_hash=args.hash)

    if args.json:
        print(json.dumps(counts, indent=2))
    elif not args.quiet:
        print(f"Scanned: {counts['scanned']}")
        print(f"Dirty: {counts['dirty']}")
        print(f"Inserted: {counts['inserted']}")
        print(f"Updated: {counts['updated']}")
        print(f"Removed: {counts['removed']}")
        if counts["failed"] > 0:
            print(f"Failed: {counts['failed']}")
            for message in rt.index.failures().values():
                print(f"  {message}")

    return 0


def cmd_find(args: argparse.Namespace, rt: Any) -> int:
    """Full-text search over sections."""
    rt.index.rebuild()
    hits = rt.index.search(args.query, limit=args.limit)

    if args.json:
        output = []
        for hit in hits:
            item = {
                "ref": f"{hit.doc_id}#{hit.slug}",
                "title": hit.title,
                "level": hit.level,
                "line": hit.line,
            }
            if args.snippets:
                item["snippet"] = rt.index.snippet(hit, args.query)
            output.append(item)
        print(json.dumps(output, indent=2))
        return 0

    for hit in hits:
        print(f"{hit.doc_id}#{hit.slug}\t:{hit.line}\t{hit.title}")
        if args.snippets:
            snippet = rt.index.snippet(hit, args.query)
            if snippet:
                print(f"    {' '.join(snippet.split())}")

    return 0


def cmd_watch(args: argparse.Namespace, rt: Any) -> int:
    """Watch the corpus, reindex and re-validate on change."""
    from .watch import watch_corpus

    return watch_corpus(
        rt,
        debounce_ms=args.debounce_ms,
        quiet=args.quiet,
        json_output=args.json,
    )


def version_string() -> str:
    return (
        f"sheetdex {__version__} "
        f"(python {platform.python_version()}, platform {platform.platform()})"
    )


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="sheetdex", description="Parse, validate and index Markdown cheat sheets"
    )
    parser.add_argument(
        "--version", action="version", version=version_string()
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config file (default: search cwd/sheetdex.toml, root/sheetdex.toml)",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Corpus root directory (overrides config)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Path to SQLite index DB (overrides config)",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Minimize output"
    )
    parser.add_argument(
        "--json", action="store_true", help="Machine-readable output"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Debug logging"
    )

    subparsers = parser.add_subparsers(dest="cmd", required=True)

    # toc command
    parser_toc = subparsers.add_parser("toc", help="Print a table of contents")
    parser_toc.add_argument("paths", nargs="*", help="Documents or directories (default: all)")
    parser_toc.add_argument(
        "--format", choices=["text", "markdown", "json"], default="text",
        help="Output format (default: text)"
    )
    parser_toc.add_argument(
        "--max-level", dest="max_level", type=int, choices=range(1, 7), default=None,
        help="Deepest heading level to include (default: from config)"
    )

    # check command
    parser_check = subparsers.add_parser("check", help="Validate fences and headings")
    parser_check.add_argument("paths", nargs="*", help="Documents or directories (default: all)")

    # blocks command
    parser_blocks = subparsers.add_parser("blocks", help="List code blocks")
    parser_blocks.add_argument("paths", nargs="*", help="Documents or directories (default: all)")
    parser_blocks.add_argument("--lang", help="Only blocks with this language tag")

    # yank command
    parser_yank = subparsers.add_parser("yank", help="Print a section or code block")
    parser_yank.add_argument("ref", help="Reference: <path>, <path>#<slug> or <path>#<n>")
    parser_yank.add_argument(
        "--plain", action="store_true", help="Strip the fences of a code block"
    )

    # locate command
    parser_locate = subparsers.add_parser("locate", help="Get line position of a reference")
    parser_locate.add_argument("ref", help="Reference: <path>, <path>#<slug> or <path>#<n>")
    parser_locate.add_argument(
        "--format", choices=["json", "tsv"], default="json",
        help="Output format (default: json)"
    )

    # reindex command
    parser_reindex = subparsers.add_parser("reindex", help="Build or repair SQLite index")
    parser_reindex.add_argument(
        "--full", action="store_true", help="Force full rebuild"
    )
    parser_reindex.add_argument(
        "--hash", action="store_true", help="Use SHA256 hash for change detection"
    )

    # find command
    parser_find = subparsers.add_parser("find", help="Full-text search over sections")
    parser_find.add_argument("query", help="FTS5 query")
    parser_find.add_argument(
        "--limit", type=int, default=50, help="Maximum results (default: 50)"
    )
    parser_find.add_argument(
        "--snippets", action="store_true", help="Show snippets with highlights"
    )

    # watch command
    parser_watch = subparsers.add_parser("watch", help="Watch corpus for changes")
    parser_watch.add_argument(
        "--debounce-ms", type=int, default=150,
        help="Debounce window in milliseconds (default: 150)"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    if args.quiet:
        logging.getLogger("sheetdex").setLevel(logging.ERROR)

    handlers = {
        "toc": cmd_toc,
        "check": cmd_check,
        "blocks": cmd_blocks,
        "yank": cmd_yank,
        "locate": cmd_locate,
        "reindex": cmd_reindex,
        "find": cmd_find,
        "watch": cmd_watch,
    }

    handler = handlers.get(args.cmd)
    if handler is None:
        print(f"Unknown command: {args.cmd}", file=sys.stderr)
        sys.exit(1)

    try:
        rt = build_runtime(
            root_path=args.root,
            db_path=args.db,
            config_path=args.config,
        )
        exit_code = handler(args, rt)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
