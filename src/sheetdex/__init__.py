"""sheetdex - parse, validate and index Markdown cheat sheets."""

__version__ = "0.1.0"
