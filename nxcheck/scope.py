"""
Scope stack for the declaration tracker.

Scopes live in an arena (a list indexed by scope id) and the stack holds
arena indices, so scopes that have been popped are still available for the
end-of-scan unused-variable report.  Each scope is tagged with its kind:
header scopes (function parameters, ``for (...)`` variables) are opened at
their ``(`` and *bound* to the next ``{`` instead of pushing another scope,
which keeps push/pop symmetric with the braces.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .preprocessor import Branch


class ScopeKind(Enum):
    GLOBAL = "global"
    BLOCK = "block"
    FUNCTION = "function"
    FOR_LOOP = "for"
    AGGREGATE = "aggregate"     # struct / union body
    ENUM = "enum"
    ASM = "asm"


@dataclass
class Symbol:
    name: str
    line: int                   # zero-based
    column: int
    branch: Tuple[Branch, ...] = ()
    is_parameter: bool = False
    used: bool = False


@dataclass
class Scope:
    index: int
    kind: ScopeKind
    parent: Optional[int]
    opened_line: int
    symbols: Dict[str, Symbol] = field(default_factory=dict)
    # header scopes only
    awaiting_brace: bool = False
    header_open: bool = False
    header_depth: int = 0


class ScopeStack:
    """Arena-backed scope stack that always keeps the global scope."""

    def __init__(self):
        self._arena: List[Scope] = []
        self._stack: List[int] = []
        self._stack.append(self._new(ScopeKind.GLOBAL, None, 0).index)

    def _new(self, kind: ScopeKind, parent: Optional[int], line: int) -> Scope:
        scope = Scope(index=len(self._arena), kind=kind, parent=parent, opened_line=line)
        self._arena.append(scope)
        return scope

    # ────────────────────────────────────────────────────────────────
    #  Stack operations
    # ────────────────────────────────────────────────────────────────

    @property
    def current(self) -> Scope:
        return self._arena[self._stack[-1]]

    @property
    def depth(self) -> int:
        return len(self._stack)

    def push(self, kind: ScopeKind, line: int, header_depth: Optional[int] = None) -> Scope:
        """Open a scope.  Passing ``header_depth`` makes it a header scope."""
        scope = self._new(kind, self._stack[-1], line)
        if header_depth is not None:
            scope.awaiting_brace = True
            scope.header_open = True
            scope.header_depth = header_depth
        self._stack.append(scope.index)
        return scope

    def pop(self) -> Optional[Scope]:
        """Close the innermost scope.  The global scope is never popped."""
        if len(self._stack) <= 1:
            return None
        return self._arena[self._stack.pop()]

    def inside(self, kind: ScopeKind) -> bool:
        return any(self._arena[i].kind is kind for i in self._stack)

    # ────────────────────────────────────────────────────────────────
    #  Symbols
    # ────────────────────────────────────────────────────────────────

    def lookup(self, name: str, mark_used: bool = True) -> Optional[Symbol]:
        """Resolve ``name`` innermost-to-outermost."""
        for i in reversed(self._stack):
            sym = self._arena[i].symbols.get(name)
            if sym is not None:
                if mark_used:
                    sym.used = True
                return sym
        return None

    def all_scopes(self) -> List[Scope]:
        return list(self._arena)
