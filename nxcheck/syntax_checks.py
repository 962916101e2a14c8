"""
Line-pattern syntax and style checks.

Cheap per-line heuristics that run before the semantic pass:

  • Unterminated string / character literals (reported by the scrubber scan)
  • "Missing semicolon" on lines that clearly end a statement without one
  • ``= =`` typed instead of ``==`` or ``=``
  • Style: over-long lines and mixed tab/space indentation

Every check except the literal check is a warning; none of them blocks
validity on its own.  Pattern checks look at the scrubbed line so that text
inside comments and strings never triggers them.
"""

import re
import logging
from typing import List, Optional, Tuple

from .config import AnalyzerConfig
from .diagnostics import Diagnostic, Severity, SOURCE_STYLE, SOURCE_SYNTAX
from .scrubber import STRING, ScrubResult

logger = logging.getLogger(__name__)

_CONTROL_RE = re.compile(r"^(?:if|while|for|until|repeat|switch)\s*\(")
_HEADER_RE = re.compile(
    r"^(?:(?:inline|safecall|static)\s+)*"
    r"(?:task|sub|void|int|float|bool|byte|char|string|long|short|unsigned)\s+\w+\s*\([^)]*\)\s*\{?$"
)
_DECLARATION_RE = re.compile(r"^(?:const\s+)?(?:int|float|bool|byte|char|string|long|short|unsigned|mutex)\s+\w+")
_ASSIGNMENT_RE = re.compile(r"^\w+\s*(?:\[[^\]]*\]\s*)*[-+*/%&|^]?=(?!=)")
_CALL_RE = re.compile(r"^\w+\s*\([^)]*\)$")
_JUMP_RE = re.compile(r"^(?:return|break|continue)\b")
_CONTINUATION_END = (",", "\\", "+", "-", "*", "/", "%", "&", "|", "^", "=", "<", ">", "?", ":", "(", "[", "!")
_DOUBLE_EQ_RE = re.compile(r"=\s=")


def needs_semicolon(code: str) -> bool:
    """Heuristic: does this (scrubbed, stripped) line end a statement without ``;``?"""
    if not code or code.startswith("#"):
        return False
    if code.endswith((";", "{", "}")):
        return False
    if code.endswith(_CONTINUATION_END):
        return False
    if code.count("(") > code.count(")"):
        return False
    if re.match(r"^\}\s*else\b", code) or code == "else" or code == "do":
        return False
    if _CONTROL_RE.match(code) or code.startswith("case ") or code.startswith("default"):
        return False
    if _HEADER_RE.match(code):
        return False

    if _DECLARATION_RE.match(code):
        return True
    if _ASSIGNMENT_RE.match(code):
        return True
    if _CALL_RE.match(code):
        return True
    if _JUMP_RE.match(code):
        return True
    return False


class SyntaxChecker:
    """Runs the line-pattern checks over one source buffer."""

    def __init__(self, config: Optional[AnalyzerConfig] = None):
        self.config = config or AnalyzerConfig()

    def check(self, source: str, scan: ScrubResult) -> Tuple[List[Diagnostic], List[Diagnostic]]:
        """Return ``(errors, warnings)`` for ``source`` and its scrub ``scan``."""
        errors: List[Diagnostic] = []
        warnings: List[Diagnostic] = []

        for lit in scan.unterminated:
            kind = "string" if lit.kind == STRING else "character"
            errors.append(Diagnostic.at(
                f"Unterminated {kind} literal", Severity.ERROR,
                lit.line, lit.column, source=SOURCE_SYNTAX,
            ))

        raw_lines = source.split("\n")
        code_lines = scan.text.split("\n")
        continued = False
        paren_depth = 0

        for idx, (raw, code) in enumerate(zip(raw_lines, code_lines)):
            raw = raw.rstrip("\r")
            code = code.rstrip("\r")
            in_macro_body = continued
            continued = code.rstrip().endswith("\\")
            # inside a ( opened on an earlier line, e.g. a wrapped parameter list
            in_parens = paren_depth > 0
            paren_depth = max(0, paren_depth + code.count("(") - code.count(")"))

            if self.config.check_style:
                self._check_style(raw, idx, warnings)

            stripped = code.strip()
            if not stripped:
                continue

            m = _DOUBLE_EQ_RE.search(code)
            if m:
                warnings.append(Diagnostic.at(
                    'Invalid assignment operator "= =", did you mean "==" or "="?',
                    Severity.WARNING, idx, m.start(), 3, SOURCE_SYNTAX,
                ))

            if (self.config.require_semicolons and not in_macro_body and not in_parens
                    and needs_semicolon(stripped)):
                warnings.append(Diagnostic.at(
                    "Missing semicolon", Severity.WARNING,
                    idx, len(code.rstrip()), source=SOURCE_SYNTAX,
                ))

        logger.debug("Syntax checks: %d errors, %d warnings", len(errors), len(warnings))
        return errors, warnings

    def _check_style(self, raw: str, idx: int, warnings: List[Diagnostic]):
        limit = self.config.max_line_length
        if len(raw) > limit:
            warnings.append(Diagnostic.at(
                f"Line too long (>{limit} characters)", Severity.WARNING,
                idx, limit, len(raw) - limit, SOURCE_STYLE,
            ))

        indent = raw[:len(raw) - len(raw.lstrip(" \t"))]
        if "\t" in indent and " " in indent:
            warnings.append(Diagnostic.at(
                "Mixed tabs and spaces for indentation", Severity.WARNING,
                idx, 0, len(indent), SOURCE_STYLE,
            ))
