"""
Bracket Balance Checker

Walks scrubbed text once with a single stack shared by ``(``, ``{`` and
``[``, so interleavings such as ``([)]`` are caught.  The first mismatched
closer is reported and the scan stops there, because one bad bracket
otherwise cascades into a wall of noise.  If the scan reaches the end with
openers left, only the innermost one is reported.
"""

import logging
from typing import List, NamedTuple

from .diagnostics import Diagnostic, Severity, SOURCE_BALANCE

logger = logging.getLogger(__name__)

_OPENER_FOR = {")": "(", "]": "[", "}": "{"}
_CLOSER_FOR = {v: k for k, v in _OPENER_FOR.items()}
_NAMES = {
    "(": "parenthesis",
    ")": "parenthesis",
    "[": "bracket",
    "]": "bracket",
    "{": "brace",
    "}": "brace",
}


class _Opener(NamedTuple):
    char: str
    line: int
    column: int


def check_balance(scrubbed: str) -> List[Diagnostic]:
    """Return at most one bracket diagnostic for ``scrubbed`` text."""
    stack: List[_Opener] = []
    line = 0
    column = 0

    for ch in scrubbed:
        if ch == "\n":
            line += 1
            column = 0
            continue

        if ch in _CLOSER_FOR:
            stack.append(_Opener(ch, line, column))
        elif ch in _OPENER_FOR:
            if not stack:
                logger.debug("Unmatched closer %r at %d:%d", ch, line, column)
                return [Diagnostic.at(
                    f"Closing {_NAMES[ch]} '{ch}' without matching opening '{_OPENER_FOR[ch]}'",
                    Severity.ERROR, line, column, source=SOURCE_BALANCE,
                )]
            top = stack[-1]
            if top.char != _OPENER_FOR[ch]:
                logger.debug("Mismatched closer %r at %d:%d (open %r)", ch, line, column, top.char)
                return [Diagnostic.at(
                    f"Mismatched '{ch}': expected '{_CLOSER_FOR[top.char]}' to close "
                    f"'{top.char}' opened at line {top.line + 1}",
                    Severity.ERROR, line, column, source=SOURCE_BALANCE,
                )]
            stack.pop()

        column += 1

    if stack:
        top = stack[-1]
        return [Diagnostic.at(
            f"Unclosed '{top.char}': opening {_NAMES[top.char]} without matching '{_CLOSER_FOR[top.char]}'",
            Severity.ERROR, top.line, top.column, source=SOURCE_BALANCE,
        )]
    return []
