"""Locate documents, sections and code blocks by line position."""

from typing import Any

from .core.model import Anchor, Document
from .core.slicer import slice_by_anchor


def locate_ref(doc: Document, anchor: Anchor | None) -> dict[str, Any]:
    """
    Get location information for a document or anchor.

    Returns an empty dict when the anchor does not resolve. `range` holds
    0-based half-open line offsets, `lines` the 1-based inclusive lines an
    editor would show.
    """
    start, end = slice_by_anchor(doc, anchor)
    if start == end and anchor is not None:
        return {}

    result: dict[str, Any] = {
        "path": doc.path,
        "range": {"start": start, "end": end},
        "lines": {"start": start + 1, "end": max(start + 1, end)},
    }
    if anchor:
        result["anchor"] = {"kind": anchor.kind, "value": anchor.value}
    return result


def format_tsv(location: dict[str, Any], abs_path: str) -> str:
    """id, path, start, end, start_line, end_line"""
    return "\t".join([
        location["path"],
        abs_path,
        str(location["range"]["start"]),
        str(location["range"]["end"]),
        str(location["lines"]["start"]),
        str(location["lines"]["end"]),
    ])
