import re
from bisect import bisect_right

from ..core.errors import ParseError
from ..core.model import CodeBlock, DocId, Document, Section
from ..core.ports import FrontmatterCodec, ParserStrategy
from ..core.utils import slugify
from .yaml_codec import YamlFrontmatter

HEADING_RE = re.compile(r"^ {0,3}(#{1,6})[ \t]+(.+?)[ \t]*$")
CLOSING_HASHES_RE = re.compile(r"(?:^|[ \t]+)#+$")
FENCE_RE = re.compile(r"^ {0,3}(`{3,})(.*)$")


def _heading_title(text: str) -> str:
    return CLOSING_HASHES_RE.sub("", text).strip()


class MarkdownParser(ParserStrategy):
    def __init__(self, frontmatter: FrontmatterCodec | None = None):
        self.frontmatter = frontmatter or YamlFrontmatter()

    def parse(self, text: str, path: DocId = "") -> Document:
        meta, body = self.frontmatter.decode(text)
        header = text[: len(text) - len(body)]
        body_start = len(header.splitlines())

        lines = text.splitlines(keepends=True)

        # (line, level, title) for every heading outside a fence
        headings: list[tuple[int, int, str]] = []
        # (start, end, info, body) for every closed fence
        fences: list[tuple[int, int, str, str]] = []

        in_fence = False
        fence_start = 0
        fence_info = ""

        for i in range(body_start, len(lines)):
            ln = lines[i].rstrip("\r\n")

            fence_match = FENCE_RE.match(ln)
            if fence_match:
                if not in_fence:
                    in_fence = True
                    fence_start = i
                    fence_info = fence_match.group(2).strip()
                else:
                    in_fence = False
                    fences.append(
                        (fence_start, i + 1, fence_info, "".join(lines[fence_start + 1 : i]))
                    )
                continue

            if in_fence:
                continue

            heading_match = HEADING_RE.match(ln)
            if heading_match:
                level = len(heading_match.group(1))
                headings.append((i, level, _heading_title(heading_match.group(2))))

        if in_fence:
            raise ParseError(
                f"unterminated code fence opened with {fence_info or 'no language'!r}",
                path=path,
                line=fence_start + 1,
            )

        # Section boundaries: an optional preamble, then one per heading
        bounds: list[tuple[int, int, str]] = []
        if lines and (not headings or headings[0][0] > 0):
            bounds.append((0, 0, ""))
        bounds.extend(headings)

        starts = [start for start, _level, _title in bounds]
        blocks_by_section: list[list[CodeBlock]] = [[] for _ in bounds]
        for start, end, info, fence_body in fences:
            idx = bisect_right(starts, start) - 1
            blocks_by_section[idx].append(
                CodeBlock(
                    lang=info.split()[0] if info else "",
                    info=info,
                    body=fence_body,
                    start_line=start,
                    end_line=end,
                    section_index=idx,
                )
            )

        sections = []
        for idx, (start, level, title) in enumerate(bounds):
            end = starts[idx + 1] if idx + 1 < len(starts) else len(lines)
            sections.append(
                Section(
                    title=title,
                    level=level,
                    slug=slugify(title) if title else "",
                    start_line=start,
                    end_line=end,
                    blocks=tuple(blocks_by_section[idx]),
                )
            )

        return Document(
            path=path,
            raw=text,
            meta=meta,
            sections=tuple(sections),
            body_start=body_start,
        )
