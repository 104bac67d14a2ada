import ast
import json
import textwrap
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

import yaml

from .core.corpus import Corpus
from .core.model import CodeBlock, DocId, Document
from .indexer import duplicate_titles


@dataclass
class Finding:
    severity: str  # "info" | "warn" | "error"
    message: str
    line: int | None = None  # 1-based
    rule: str = ""


class LintRule(Protocol):
    id: str

    def check(self, doc: Document) -> list[Finding]:
        pass


class DuplicateHeadingsRule:
    id = "duplicate-headings"

    def check(self, doc: Document) -> list[Finding]:
        return [
            Finding("error", str(dup), dup.duplicate_line + 1, self.id)
            for dup in duplicate_titles(doc.sections)
        ]


class FenceLangRule:
    id = "fence-lang"

    def check(self, doc: Document) -> list[Finding]:
        return [
            Finding("warn", "Code fence has no language tag", b.start_line + 1, self.id)
            for b in doc.code_blocks
            if not b.lang
        ]


class EmptyFenceRule:
    id = "empty-fence"

    def check(self, doc: Document) -> list[Finding]:
        return [
            Finding("warn", "Code fence is empty", b.start_line + 1, self.id)
            for b in doc.code_blocks
            if not b.body.strip()
        ]


class HeadingSkipRule:
    id = "heading-skip"

    def check(self, doc: Document) -> list[Finding]:
        out: list[Finding] = []
        prev = 0
        for s in doc.headings:
            if prev and s.level > prev + 1:
                out.append(
                    Finding(
                        "warn",
                        f"Heading '{s.title}' jumps from level {prev} to {s.level}",
                        s.start_line + 1,
                        self.id,
                    )
                )
            prev = s.level
        return out


def _check_json(body: str) -> str | None:
    try:
        json.loads(body)
    except json.JSONDecodeError as e:
        return f"{e.msg} (snippet line {e.lineno})"
    return None


def _check_yaml(body: str) -> str | None:
    try:
        list(yaml.safe_load_all(body))
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        problem = getattr(e, "problem", None) or str(e)
        if mark is not None:
            return f"{problem} (snippet line {mark.line + 1})"
        return problem
    return None


def _check_python(body: str) -> str | None:
    try:
        ast.parse(textwrap.dedent(body))
    except SyntaxError as e:
        return f"{e.msg} (snippet line {e.lineno})"
    except ValueError as e:
        return str(e)
    return None


SNIPPET_CHECKERS = {
    "json": _check_json,
    "yaml": _check_yaml,
    "yml": _check_yaml,
    "python": _check_python,
    "py": _check_python,
}


class SnippetSyntaxRule:
    id = "snippet-syntax"

    def __init__(self, languages: Iterable[str] | None = None):
        self.languages = set(languages) if languages is not None else set(SNIPPET_CHECKERS)

    def _check_block(self, block: CodeBlock) -> str | None:
        lang = block.lang.lower()
        if lang not in self.languages or lang not in SNIPPET_CHECKERS:
            return None
        if not block.body.strip():
            return None
        return SNIPPET_CHECKERS[lang](block.body)

    def check(self, doc: Document) -> list[Finding]:
        out: list[Finding] = []
        for block in doc.code_blocks:
            problem = self._check_block(block)
            if problem:
                out.append(
                    Finding(
                        "error",
                        f"Invalid {block.lang} snippet: {problem}",
                        block.start_line + 1,
                        self.id,
                    )
                )
        return out


def default_rules(
    disable: Iterable[str] = (),
    snippet_languages: Iterable[str] | None = None,
) -> list[LintRule]:
    rules: list[LintRule] = [
        DuplicateHeadingsRule(),
        FenceLangRule(),
        EmptyFenceRule(),
        HeadingSkipRule(),
        SnippetSyntaxRule(snippet_languages),
    ]
    disabled = set(disable)
    return [r for r in rules if r.id not in disabled]


def validate_document(
    doc: Document,
    rules: Iterable[LintRule],
    severity: dict[str, str] | None = None,
) -> list[Finding]:
    """Run every rule over one document, applying severity overrides."""
    severity = severity or {}
    findings: list[Finding] = []
    for rule in rules:
        for f in rule.check(doc):
            if rule.id in severity:
                f.severity = severity[rule.id]
            findings.append(f)
    findings.sort(key=lambda f: (f.line or 0, f.rule))
    return findings


@dataclass
class Report:
    findings: dict[DocId, list[Finding]] = field(default_factory=dict)
    checked: int = 0

    def add(self, path: DocId, findings: list[Finding]) -> None:
        self.checked += 1
        if findings:
            self.findings[path] = findings

    @property
    def errors(self) -> int:
        return sum(1 for fs in self.findings.values() for f in fs if f.severity == "error")

    @property
    def warnings(self) -> int:
        return sum(1 for fs in self.findings.values() for f in fs if f.severity == "warn")

    @property
    def passed(self) -> bool:
        return self.errors == 0

    def to_dict(self) -> dict:
        return {
            "passed": self.passed,
            "checked": self.checked,
            "errors": self.errors,
            "warnings": self.warnings,
            "findings": [
                {
                    "path": path,
                    "severity": f.severity,
                    "rule": f.rule,
                    "message": f.message,
                    "line": f.line,
                }
                for path, fs in self.findings.items()
                for f in fs
            ],
        }


def validate_corpus(
    corpus: Corpus,
    rules: Iterable[LintRule],
    ids: Iterable[DocId] | None = None,
    severity: dict[str, str] | None = None,
) -> Report:
    """
    Validate many documents. A document that fails to load (ParseError or
    DecodeError) becomes an error finding and the rest are still checked.
    """
    rules = list(rules)
    loaded = corpus.load_all(ids)
    report = Report()

    for path, err in loaded.failures.items():
        report.add(path, [Finding("error", err.message, err.line, err.rule)])
    for doc in loaded.documents:
        report.add(doc.path, validate_document(doc, rules, severity))

    report.findings = dict(sorted(report.findings.items()))
    return report
