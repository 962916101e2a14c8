"""
Per-line tokenizer for scrubbed NXC source.

Only three token kinds matter to the line-oriented passes: identifiers,
numbers and single punctuation characters (``->`` is kept whole so member
access is easy to spot).  Input must already be scrubbed, so there are no
literals or comments left to worry about.
"""

import re
from typing import List, NamedTuple

IDENT = "ident"
NUMBER = "number"
PUNCT = "punct"

_TOKEN_RE = re.compile(r"(?P<ident>[A-Za-z_][A-Za-z0-9_]*)|(?P<number>\d[\w.]*)|(?P<punct>->|\S)")


class Token(NamedTuple):
    kind: str
    text: str
    column: int


def tokenize(line: str) -> List[Token]:
    tokens: List[Token] = []
    for m in _TOKEN_RE.finditer(line):
        tokens.append(Token(m.lastgroup, m.group(), m.start()))
    return tokens
