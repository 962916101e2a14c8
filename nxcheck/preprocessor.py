import io
import re
import logging
from typing import Dict, List, Optional, Tuple
from pcpp import Preprocessor, OutputDirective, Action

logger = logging.getLogger(__name__)

DIRECTIVE_RE = re.compile(r"^\s*#\s*([A-Za-z_]+)\b\s*(.*)$")
DEFINE_RE = re.compile(r"^\s*#\s*define\s+([A-Za-z_][A-Za-z0-9_]*)")
LINE_DIRECTIVE_RE = re.compile(r'^#line\s+(\d+)\s+"([^"]+)"')

_OPENERS = ("if", "ifdef", "ifndef")
_BRANCHES = ("else", "elif")

# A branch path entry: (group id, branch index within that #if group)
Branch = Tuple[int, int]


# ═══════════════════════════════════════════════════════════════════════
#  Line-level directive tracking
# ═══════════════════════════════════════════════════════════════════════

def parse_directive(line: str) -> Optional[Tuple[str, str]]:
    """Return ``(directive, argument)`` for a ``#...`` line, else None."""
    m = DIRECTIVE_RE.match(line)
    if not m:
        return None
    return m.group(1), m.group(2).strip()


class ConditionalTracker:
    """
    Follows ``#if``/``#ifdef``/``#ifndef``/``#else``/``#elif``/``#endif``
    nesting without evaluating any condition.

    Every ``#if`` opens a new group; ``#else``/``#elif`` move to the next
    branch of the innermost group.  Two declarations are in *sibling
    branches* when their paths pass through the same group on different
    branches, i.e. at most one of them can be compiled.
    """

    def __init__(self):
        self._stack: List[Branch] = []
        self._next_group = 0

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def active(self) -> bool:
        return bool(self._stack)

    @property
    def path(self) -> Tuple[Branch, ...]:
        return tuple(self._stack)

    def apply(self, directive: str) -> bool:
        """Update the nesting for one directive.  Returns True if it was a conditional."""
        if directive in _OPENERS:
            self._stack.append((self._next_group, 0))
            self._next_group += 1
            return True
        if directive in _BRANCHES:
            if self._stack:
                group, branch = self._stack[-1]
                self._stack[-1] = (group, branch + 1)
            return True
        if directive == "endif":
            # floored at zero: a stray #endif is ignored
            if self._stack:
                self._stack.pop()
            return True
        return False


def in_sibling_branches(a: Tuple[Branch, ...], b: Tuple[Branch, ...]) -> bool:
    for (group_a, branch_a), (group_b, branch_b) in zip(a, b):
        if group_a != group_b:
            return False
        if branch_a != branch_b:
            return True
    return False


# ═══════════════════════════════════════════════════════════════════════
#  Macro expansion (pcpp)
# ═══════════════════════════════════════════════════════════════════════

class _QuietPreprocessor(Preprocessor):
    """A pcpp Preprocessor that keeps missing includes and errors off stderr.

    NXC programs routinely ``#include "NXCDefs.h"`` or headers that only exist
    on the build machine.  Missing includes are passed through untouched and
    every pcpp error is logged at DEBUG level instead of printed.
    """

    def on_include_not_found(self, is_malformed, is_system_include, curdir, includepath):
        logger.debug("pcpp: include not found: %s (system=%s)", includepath, is_system_include)
        raise OutputDirective(Action.IgnoreAndPassThrough)

    def on_error(self, file, line, msg):
        logger.debug("pcpp: %s:%s: %s", file, line, msg)


class PreprocessorEngine:
    """
    In-memory wrapper around pcpp.

    Expands macros and resolves conditional compilation for one source
    buffer, then reads the ``#line`` directives pcpp emits to map every line
    of the expanded output back to a line of the original buffer.
    """

    SOURCE_NAME = "<nxc>"

    def __init__(self, defines: Optional[Dict[str, str]] = None):
        self.defines: Dict[str, str] = dict(defines or {})

    def add_define(self, name: str, value: str = "1"):
        """Add a global macro definition (e.g. -DDEBUG=1)."""
        self.defines[name] = value

    def preprocess(self, text: str) -> Tuple[str, List[int]]:
        """
        Expand ``text``.

        Returns:
            expanded: the pcpp output with ``#line`` directives kept.
            line_map: ``line_map[i]`` is the 1-indexed original line of the
                      expanded line ``i + 1``.

        Raises whatever pcpp raises; callers treat expansion as best-effort.
        """
        pp = _QuietPreprocessor()
        for k, v in self.defines.items():
            pp.define(f"{k} {v}")

        output_buffer = io.StringIO()
        pp.parse(text, source=self.SOURCE_NAME)
        pp.write(output_buffer)
        expanded = output_buffer.getvalue()

        return expanded, build_line_map(expanded.splitlines())


def build_line_map(lines: List[str]) -> List[int]:
    """Map each expanded line to its original line using ``#line N "file"``."""
    line_map: List[int] = []
    current_line = 1
    for line in lines:
        m = LINE_DIRECTIVE_RE.match(line)
        if m:
            # Directive: #line N "file" -> the *next* line is N
            next_line_num = int(m.group(1))
            line_map.append(max(1, next_line_num - 1))
            current_line = next_line_num
        else:
            line_map.append(current_line)
            current_line += 1
    return line_map
