class SheetdexError(Exception):
    """Base class for sheetdex errors."""


class DocumentError(SheetdexError):
    """A single document could not be loaded. Batches record it and move on."""

    rule = "document"

    def __init__(self, message: str, path: str = "", line: int | None = None):
        self.message = message
        self.path = path
        self.line = line  # 1-based, when the failure has a position
        super().__init__(str(self))

    def __str__(self) -> str:
        where = self.path or "<input>"
        if self.line is not None:
            where = f"{where}:{self.line}"
        return f"{where}: {self.message}"


class ParseError(DocumentError):
    """A fenced code block was opened but never closed."""

    rule = "parse"


class DecodeError(DocumentError):
    """A file is not valid UTF-8."""

    rule = "encoding"
