"""
Lexical Scrubber

Neutralises comments and string/char literals so the downstream passes can
use plain pattern matching without tripping over ``{`` inside a string or an
identifier inside a comment.

Guarantees:
  • Output has exactly the same length as the input
  • Line-break characters are never altered (line count is preserved)
  • Every neutralised character becomes a single blank, so columns line up
  • Scrubbing already-scrubbed text is a no-op
"""

import logging
from dataclasses import dataclass, field
from typing import List

logger = logging.getLogger(__name__)

BLANK = " "
_LINE_BREAKS = ("\n", "\r")

# Scanner states
CODE = "code"
LINE_COMMENT = "line-comment"
BLOCK_COMMENT = "block-comment"
STRING = "string"
CHAR = "char"


@dataclass
class UnterminatedLiteral:
    """A string or char literal still open when its line ended."""
    kind: str               # STRING or CHAR
    line: int               # zero-based
    column: int             # column of the opening quote


@dataclass
class ScrubResult:
    text: str
    unterminated: List[UnterminatedLiteral] = field(default_factory=list)


def scan(source: str) -> ScrubResult:
    """Run the scrubber state machine, also reporting unterminated literals.

    One character of lookahead, one pass.  A literal ends at its matching
    quote or at an unescaped line break (NXC literals cannot span lines); an
    unterminated block comment simply blanks the rest of the input.
    """
    out: List[str] = []
    unterminated: List[UnterminatedLiteral] = []
    state = CODE
    escaped = False
    line = 0
    line_start = 0
    literal_line = 0
    literal_col = 0

    i = 0
    n = len(source)
    while i < n:
        ch = source[i]
        nxt = source[i + 1] if i + 1 < n else ""

        if ch == "\n":
            if state in (STRING, CHAR) and not escaped:
                unterminated.append(UnterminatedLiteral(state, literal_line, literal_col))
                state = CODE
            elif state == LINE_COMMENT:
                state = CODE
            escaped = False
            out.append(ch)
            line += 1
            line_start = i + 1
            i += 1
            continue

        if ch == "\r":
            out.append(ch)
            i += 1
            continue

        # 1. pending escape inside a literal
        if escaped:
            escaped = False
            out.append(BLANK)
            i += 1
            continue

        # 2. line comment
        if state == LINE_COMMENT:
            out.append(BLANK)
            i += 1
            continue

        # 3. block comment, closed by */
        if state == BLOCK_COMMENT:
            if ch == "*" and nxt == "/":
                state = CODE
                out.append(BLANK * 2)
                i += 2
            else:
                out.append(BLANK)
                i += 1
            continue

        # 4. string / char literal, delimiters blanked too
        if state in (STRING, CHAR):
            if ch == "\\":
                escaped = True
            elif (state == STRING and ch == '"') or (state == CHAR and ch == "'"):
                state = CODE
            out.append(BLANK)
            i += 1
            continue

        # 5. code: detect region starts
        if ch == "/" and nxt == "/":
            state = LINE_COMMENT
            out.append(BLANK * 2)
            i += 2
            continue
        if ch == "/" and nxt == "*":
            state = BLOCK_COMMENT
            out.append(BLANK * 2)
            i += 2
            continue
        if ch == '"' or ch == "'":
            state = STRING if ch == '"' else CHAR
            literal_line = line
            literal_col = i - line_start
            out.append(BLANK)
            i += 1
            continue

        out.append(ch)
        i += 1

    if state in (STRING, CHAR):
        unterminated.append(UnterminatedLiteral(state, literal_line, literal_col))

    text = "".join(out)
    logger.debug("Scrubbed %d characters (%d unterminated literals)", n, len(unterminated))
    return ScrubResult(text=text, unterminated=unterminated)


def scrub(source: str) -> str:
    """Return ``source`` with comments and literal contents blanked."""
    return scan(source).text
