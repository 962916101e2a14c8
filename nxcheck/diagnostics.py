"""
Diagnostic records produced by the analysis passes.

Every pass emits ``Diagnostic`` instances; the aggregator collects them into
an ``AnalysisResult``.  Positions are zero-based (line, column) pairs, the
same convention editors use for their diagnostic ranges.
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict

# Source tags, one per pass
SOURCE_SYNTAX = "syntax-checker"
SOURCE_STYLE = "style-checker"
SOURCE_BALANCE = "balance-checker"
SOURCE_SEMANTIC = "semantic-analyzer"
SOURCE_GRAMMAR = "grammar-check"
SOURCE_INTERNAL = "nxcheck"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    HINT = "hint"


class SourcePosition(BaseModel):
    model_config = ConfigDict(frozen=True)

    line: int
    column: int


class SourceRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: SourcePosition
    end: SourcePosition


class Diagnostic(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    severity: Severity
    position: SourcePosition
    range: SourceRange
    source: str
    length: int = 1

    @classmethod
    def at(
        cls,
        message: str,
        severity: Severity,
        line: int,
        column: int,
        length: int = 1,
        source: str = SOURCE_SEMANTIC,
    ) -> "Diagnostic":
        """Build a diagnostic spanning ``length`` characters on one line."""
        line = max(0, line)
        column = max(0, column)
        length = max(1, length)
        start = SourcePosition(line=line, column=column)
        return cls(
            message=message,
            severity=severity,
            position=start,
            range=SourceRange(
                start=start,
                end=SourcePosition(line=line, column=column + length),
            ),
            source=source,
            length=length,
        )

    @property
    def line(self) -> int:
        return self.position.line

    @property
    def column(self) -> int:
        return self.position.column


class AnalysisResult(BaseModel):
    """Outcome of one ``analyze()`` call.

    ``diagnostics`` keeps the aggregator's fixed stream order (syntax errors,
    syntax warnings, bracket errors, semantic errors, semantic warnings,
    advisory hints); ``errors`` and ``warnings`` split it by severity.
    """

    is_valid: bool
    errors: List[Diagnostic] = []
    warnings: List[Diagnostic] = []
    diagnostics: List[Diagnostic] = []


def position_from_offset(text: str, offset: int) -> SourcePosition:
    """Convert a character offset into a zero-based (line, column)."""
    offset = max(0, min(offset, len(text)))
    line = text.count("\n", 0, offset)
    line_start = text.rfind("\n", 0, offset) + 1
    return SourcePosition(line=line, column=offset - line_start)
