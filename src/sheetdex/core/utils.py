"""Utility functions for sheetdex."""

import re
import unicodedata

_DASHES = str.maketrans({"–": "-", "—": "-", "−": "-"})
_NOT_SLUG_RE = re.compile(r"[^\w\s-]")
_SEPARATOR_RE = re.compile(r"[\s-]+")


def slugify(text: str) -> str:
    """
    Normalize a heading title into an anchor slug.

    Accents are folded away, punctuation other than hyphens is dropped, and
    runs of whitespace and hyphens become a single `-`.

        >>> slugify("Eager loading")
        'eager-loading'
        >>> slugify("One–to–many relationships")
        'one-to-many-relationships'
        >>> slugify("Café: `SELECT *`")
        'cafe-select'
    """
    folded = unicodedata.normalize("NFKD", text.lower().translate(_DASHES))
    folded = "".join(c for c in folded if not unicodedata.combining(c))
    return _SEPARATOR_RE.sub("-", _NOT_SLUG_RE.sub("", folded)).strip("-")
