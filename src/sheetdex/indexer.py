"""Table-of-contents index over parsed sections."""

import json
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from .core.model import DocId, Document, Section
from .core.utils import slugify


@dataclass(frozen=True)
class DuplicateTitle:
    """A heading whose normalized title was already taken."""
    slug: str
    title: str
    first_line: int  # 0-based line of the heading that kept the key
    duplicate_line: int

    def __str__(self) -> str:
        return (
            f"Duplicate heading '{self.title}' (#{self.slug}) on line "
            f"{self.duplicate_line + 1}, first used on line {self.first_line + 1}"
        )


@dataclass
class TocIndex:
    """Normalized heading title -> Section; the first occurrence wins."""
    by_slug: dict[str, Section] = field(default_factory=dict)
    warnings: list[DuplicateTitle] = field(default_factory=list)

    def lookup(self, title: str) -> Section | None:
        return self.by_slug.get(slugify(title))

    def entries(self) -> list[Section]:
        return sorted(self.by_slug.values(), key=lambda s: s.start_line)

    def __contains__(self, title: str) -> bool:
        return slugify(title) in self.by_slug

    def __len__(self) -> int:
        return len(self.by_slug)


def build_index(sections: Iterable[Section]) -> TocIndex:
    """
    Build the heading index for one document.

    The preamble and headings whose title normalizes to nothing are not
    indexed. Duplicates are recorded as warnings, never raised.
    """
    index = TocIndex()
    for section in sections:
        if section.is_preamble or not section.slug:
            continue
        first = index.by_slug.get(section.slug)
        if first is not None:
            index.warnings.append(
                DuplicateTitle(
                    slug=section.slug,
                    title=section.title,
                    first_line=first.start_line,
                    duplicate_line=section.start_line,
                )
            )
            continue
        index.by_slug[section.slug] = section
    return index


@dataclass
class CorpusToc:
    """Table of contents across documents, keyed by (path, slug)."""
    documents: list[tuple[Document, TocIndex]] = field(default_factory=list)

    @classmethod
    def build(cls, documents: Iterable[Document]) -> "CorpusToc":
        toc = cls()
        for doc in documents:
            toc.documents.append((doc, build_index(doc.sections)))
        return toc

    def get(self, path: DocId, slug: str) -> Section | None:
        for doc, index in self.documents:
            if doc.path == path:
                return index.by_slug.get(slug)
        return None

    def warnings(self) -> list[tuple[DocId, DuplicateTitle]]:
        return [(doc.path, w) for doc, index in self.documents for w in index.warnings]

    def to_dict(self, max_level: int = 6) -> list[dict]:
        out = []
        for doc, index in self.documents:
            out.append({
                "path": doc.path,
                "title": doc.title,
                "sections": [
                    {
                        "title": s.title,
                        "slug": s.slug,
                        "level": s.level,
                        "line": s.start_line + 1,
                        "code_blocks": len(s.blocks),
                    }
                    for s in index.entries()
                    if s.level <= max_level
                ],
            })
        return out


def _render_text(toc: CorpusToc, max_level: int) -> str:
    lines = []
    for doc, index in toc.documents:
        lines.append(f"{doc.path}  ({doc.title})")
        for s in index.entries():
            if s.level > max_level:
                continue
            indent = "  " * s.level
            lines.append(f"{indent}{s.title}  :{s.start_line + 1}")
    return "\n".join(lines) + ("\n" if lines else "")


def _render_markdown(toc: CorpusToc, max_level: int) -> str:
    lines = []
    for doc, index in toc.documents:
        lines.append(f"- [{doc.title}]({doc.path})")
        entries = [s for s in index.entries() if s.level <= max_level]
        if not entries:
            continue
        base = min(s.level for s in entries)
        for s in entries:
            indent = "  " * (s.level - base + 1)
            lines.append(f"{indent}- [{s.title}]({doc.path}#{s.slug})")
    return "\n".join(lines) + ("\n" if lines else "")


def render_toc(toc: CorpusToc, fmt: str = "text", max_level: int = 6) -> str:
    """Render a corpus table of contents as text, markdown or json."""
    if fmt == "json":
        return json.dumps(toc.to_dict(max_level), indent=2) + "\n"
    if fmt == "markdown":
        return _render_markdown(toc, max_level)
    if fmt == "text":
        return _render_text(toc, max_level)
    raise ValueError(f"Unknown TOC format: {fmt}")


def duplicate_titles(sections: Sequence[Section]) -> list[DuplicateTitle]:
    """Shorthand for the duplicate warnings of a section sequence."""
    return build_index(sections).warnings
