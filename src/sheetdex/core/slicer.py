"""Slicing engine for extracting line spans of documents based on anchors."""

from .model import Anchor, CodeBlock, Document, Section


def find_section_by_slug(doc: Document, slug: str) -> Section | None:
    """Find the first heading section with the given slug."""
    for section in doc.headings:
        if section.slug == slug:
            return section
    return None


def find_block(doc: Document, number: int) -> CodeBlock | None:
    """Find the nth code block (1-based, document order)."""
    blocks = doc.code_blocks
    if 1 <= number <= len(blocks):
        return blocks[number - 1]
    return None


def section_extent(doc: Document, section: Section) -> tuple[int, int]:
    """
    Get the nested line span of a section.

    Runs from the heading to the next heading of the same or higher level
    (or EOF), so it includes any subsections. The preamble has no children.
    """
    if section.is_preamble:
        return (section.start_line, section.end_line)

    found_current = False
    for other in doc.sections:
        if other == section:
            found_current = True
            continue
        if found_current and other.level <= section.level:
            return (section.start_line, other.start_line)

    return (section.start_line, len(doc.lines))


def slice_by_anchor(doc: Document, anchor: Anchor | None) -> tuple[int, int]:
    """
    Get the line span selected by an anchor.

    - No anchor: the whole body, skipping frontmatter
    - Heading anchor (slug): the nested section extent
    - Block anchor (number): the fenced block including its fences

    Returns (start_line, end_line); (0, 0) when the anchor does not resolve.
    """
    if anchor is None:
        return (doc.body_start, len(doc.lines))

    if anchor.kind == "heading":
        section = find_section_by_slug(doc, anchor.value)
        if section is None:
            return (0, 0)
        return section_extent(doc, section)

    if anchor.kind == "block":
        if not anchor.value.isdigit():
            return (0, 0)
        block = find_block(doc, int(anchor.value))
        if block is None:
            return (0, 0)
        return (block.start_line, block.end_line)

    return (0, 0)


def parse_ref(ref: str) -> tuple[str, Anchor | None]:
    """Split `path#slug` or `path#3` into a document id and optional anchor."""
    if "#" not in ref:
        return ref, None
    path, anchor_str = ref.split("#", 1)
    if anchor_str.isdigit():
        return path, Anchor(kind="block", value=anchor_str)
    return path, Anchor(kind="heading", value=anchor_str)
