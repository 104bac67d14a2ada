from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from types import MappingProxyType
from typing import Any, Mapping

DocId = str  # POSIX path relative to the corpus root, e.g. "ef/keys.md"


@dataclass(frozen=True)
class Anchor:
    kind: str  # "heading" or "block"
    value: str  # heading slug, or 1-based code block number


@dataclass(frozen=True)
class CodeBlock:
    lang: str  # first word of the info string, "" when untagged
    info: str
    body: str
    start_line: int  # opening fence line (0-based)
    end_line: int  # one past the closing fence line
    section_index: int


@dataclass(frozen=True)
class Section:
    title: str  # "" for the preamble
    level: int  # 1-6, 0 for the preamble
    slug: str
    start_line: int
    end_line: int  # exclusive; next heading of any level or EOF
    blocks: tuple[CodeBlock, ...] = ()

    @property
    def is_preamble(self) -> bool:
        return self.level == 0


@dataclass(frozen=True)
class Document:
    path: DocId
    raw: str
    meta: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)
    sections: tuple[Section, ...] = ()
    body_start: int = 0  # first line after frontmatter

    def __post_init__(self) -> None:
        # Frontmatter is read-only once parsed
        object.__setattr__(self, "meta", MappingProxyType(dict(self.meta)))

    @property
    def lines(self) -> list[str]:
        return self.raw.splitlines(keepends=True)

    @property
    def code_blocks(self) -> list[CodeBlock]:
        return [b for s in self.sections for b in s.blocks]

    @property
    def headings(self) -> list[Section]:
        return [s for s in self.sections if not s.is_preamble]

    @property
    def title(self) -> str:
        title = self.meta.get("title")
        if isinstance(title, str) and title.strip():
            return title.strip()
        for section in self.headings:
            if section.title:
                return section.title
        return PurePosixPath(self.path).stem if self.path else ""

    def section_of(self, block: CodeBlock) -> Section:
        return self.sections[block.section_index]
