"""
Declaration / Scope Tracker

Two passes over scrubbed NXC source, one line at a time, no parse tree:

  1. Collect — user type names (typedef / struct / enum / union tags), enum
     constants, ``#define`` macro names and every function/task header,
     tracking preprocessor conditionals so that two definitions of the same
     function in different ``#if`` branches are not reported as a conflict.
     Collecting everything first means a call that textually precedes its
     callee's definition is never flagged.

  2. Validate — walk the tokens of each line keeping a scope stack in step
     with the braces, ``for (...)`` headers and function headers.  Variables
     (including multi-declarator and for-loop forms) and parameters are
     registered in the innermost scope; redeclarations in the *same* scope
     are errors, identifiers that resolve nowhere are errors, and call names
     unknown everywhere get a fuzzy "did you mean" warning when a built-in
     is close enough (and nothing otherwise).

The tracker tolerates half-typed code: a stray ``}`` never pops the global
scope, a header with no body is dropped at the next ``;``, and a closing
brace first discards any header scope still waiting for its ``{``.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern, Set, Tuple

from .catalog import BuiltInCatalog
from .config import AnalyzerConfig
from .diagnostics import Diagnostic, Severity, SOURCE_SEMANTIC, position_from_offset
from .lexer import IDENT, PUNCT, Token, tokenize
from .preprocessor import DEFINE_RE, ConditionalTracker, in_sibling_branches, parse_directive
from .scope import ScopeKind, ScopeStack, Symbol
from .suggest import suggest

logger = logging.getLogger(__name__)

VAR_TYPES = ("int", "float", "byte", "char", "string", "bool", "mutex",
             "long", "short", "unsigned", "signed", "variant")
FUNC_ONLY_TYPES = ("task", "sub", "void")
QUALIFIERS = frozenset(("const", "static", "inline", "safecall", "extern",
                        "volatile", "register", "typedef"))
AGGREGATE_TAGS = {"struct": ScopeKind.AGGREGATE, "union": ScopeKind.AGGREGATE, "enum": ScopeKind.ENUM}

_UNUSED_EXEMPT_RE = re.compile(r"^[A-Z_][A-Z0-9_]*$")
_BRACED_INIT_ACCESS_RE = re.compile(r"=\s*\{[^;{}]*\}\s*\[")
_STATEMENT_START = frozenset(("{", "}", ";", "(", ","))


@dataclass
class FunctionDecl:
    name: str
    line: int               # zero-based
    column: int
    conditional: bool       # declared inside an #if/#ifdef/#ifndef region
    is_prototype: bool = False


@dataclass
class TrackerReport:
    errors: List[Diagnostic] = field(default_factory=list)
    warnings: List[Diagnostic] = field(default_factory=list)
    functions: Dict[str, FunctionDecl] = field(default_factory=dict)
    macros: Set[str] = field(default_factory=set)
    unused: List[Symbol] = field(default_factory=list)


@dataclass
class _Declaration:
    """An in-progress ``type a, b = ..., c`` statement."""
    base_depth: int
    is_parameter: bool = False
    expect_name: bool = True
    in_init: bool = False
    nest: int = 0           # ( [ { opened since the declaration started
    names: int = 0


def header_pattern(types) -> Pattern:
    """Regex for a function/task/sub header at line start; group ``name``."""
    alternation = "|".join(sorted((re.escape(t) for t in types), key=len, reverse=True))
    return re.compile(
        r"^\s*(?:(?:inline|safecall|static|const)\s+)*"
        r"(?:(?:struct|enum|union)\s+)?(?:(?:unsigned|signed)\s+)?"
        rf"(?:{alternation})\b\s*(?:\[\s*\]\s*)*[*&]?\s*"
        r"(?P<name>[A-Za-z_][A-Za-z0-9_]*)\s*\("
    )


def _is_prototype(line: str, open_paren: int) -> bool:
    """True when the parameter list closes on this line and is followed by ``;``."""
    depth = 0
    for j in range(open_paren, len(line)):
        c = line[j]
        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
            if depth == 0:
                return line[j + 1:].lstrip().startswith(";")
    return False


class DeclarationTracker:
    """Scope-tracked declaration/usage analysis for one source buffer."""

    def __init__(self, catalog: BuiltInCatalog, config: Optional[AnalyzerConfig] = None):
        self.catalog = catalog
        self.config = config or AnalyzerConfig()
        self.report = TrackerReport()
        self.functions: Dict[str, FunctionDecl] = self.report.functions
        self.macros: Set[str] = self.report.macros
        self.user_types: Set[str] = set()
        self.enum_constants: Set[str] = set()

        self._scopes = ScopeStack()
        self._paren = 0
        self._pending_header: Optional[ScopeKind] = None
        self._pending_block: Optional[ScopeKind] = None
        self._decl: Optional[_Declaration] = None
        self._branch: Tuple = ()
        self._calls: Dict[str, Tuple[int, int]] = {}

    # ────────────────────────────────────────────────────────────────
    #  Entry point
    # ────────────────────────────────────────────────────────────────

    def run(self, scrubbed: str) -> TrackerReport:
        lines = re.split(r"\r?\n", scrubbed)

        self._collect_types(lines)
        self._collect_declarations(lines)
        self._validate(lines)
        self._check_calls()
        self._check_braced_initializers(scrubbed)
        self.report.unused = self._unused_symbols()

        if self.config.report_unused_variables:
            for sym in self.report.unused:
                self._warning(f"Variable '{sym.name}' declared but never used",
                              sym.line, sym.column, len(sym.name))

        logger.debug(
            "Declaration tracker: %d functions, %d macros, %d errors, %d warnings",
            len(self.functions), len(self.macros),
            len(self.report.errors), len(self.report.warnings),
        )
        return self.report

    # ────────────────────────────────────────────────────────────────
    #  Diagnostics helpers
    # ────────────────────────────────────────────────────────────────

    def _error(self, message: str, line: int, column: int, length: int = 1):
        self.report.errors.append(
            Diagnostic.at(message, Severity.ERROR, line, column, length, SOURCE_SEMANTIC))

    def _warning(self, message: str, line: int, column: int, length: int = 1):
        self.report.warnings.append(
            Diagnostic.at(message, Severity.WARNING, line, column, length, SOURCE_SEMANTIC))

    # ════════════════════════════════════════════════════════════════
    #  Pass 1 — collect
    # ════════════════════════════════════════════════════════════════

    def _collect_types(self, lines: List[str]):
        """Find typedef names, struct/enum/union tags and enum constants."""
        depth = 0
        expect_tag = False
        pending_enum = False
        enum_depth: Optional[int] = None
        expect_item = False
        typedef_depth: Optional[int] = None
        last_ident: Optional[str] = None

        for line in lines:
            if line.lstrip().startswith("#"):
                continue
            for tok in tokenize(line):
                text = tok.text
                if tok.kind == IDENT:
                    if expect_tag:
                        expect_tag = False
                        if text not in self.catalog.keywords:
                            self.user_types.add(text)
                        continue
                    if text in AGGREGATE_TAGS:
                        expect_tag = True
                        pending_enum = text == "enum"
                        continue
                    if text == "typedef":
                        typedef_depth = depth
                        continue
                    if enum_depth is not None and depth == enum_depth + 1 and expect_item:
                        self.enum_constants.add(text)
                        expect_item = False
                    last_ident = text
                    continue

                if tok.kind != PUNCT:
                    continue
                expect_tag = False
                if text == "{":
                    if pending_enum:
                        enum_depth = depth
                        expect_item = True
                        pending_enum = False
                    depth += 1
                elif text == "}":
                    depth = max(0, depth - 1)
                    if enum_depth is not None and depth == enum_depth:
                        enum_depth = None
                elif text == "," and enum_depth is not None and depth == enum_depth + 1:
                    expect_item = True
                elif text == ";":
                    pending_enum = False
                    if typedef_depth is not None and depth == typedef_depth:
                        if last_ident and last_ident not in self.catalog.keywords:
                            self.user_types.add(last_ident)
                        typedef_depth = None
                    last_ident = None

    def _collect_declarations(self, lines: List[str]):
        """Collect macro names and function/task headers with conditional awareness."""
        header_re = header_pattern(VAR_TYPES + FUNC_ONLY_TYPES + tuple(self.user_types))
        cond = ConditionalTracker()
        continued = False

        for idx, line in enumerate(lines):
            is_continuation = continued
            continued = line.rstrip().endswith("\\")
            if is_continuation:
                continue
            stripped = line.strip()
            if not stripped:
                continue

            if stripped.startswith("#"):
                directive = parse_directive(stripped)
                if directive is None:
                    continue
                if directive[0] == "define":
                    m = DEFINE_RE.match(stripped)
                    if m:
                        self.macros.add(m.group(1))
                else:
                    cond.apply(directive[0])
                continue

            m = header_re.match(line)
            if m:
                self._register_function(
                    m.group("name"), idx, m.start("name"),
                    conditional=cond.active,
                    is_prototype=_is_prototype(line, m.end() - 1),
                )

    def _register_function(self, name: str, line: int, column: int,
                           conditional: bool, is_prototype: bool):
        existing = self.functions.get(name)
        if existing is None:
            self.functions[name] = FunctionDecl(name, line, column, conditional, is_prototype)
            if (self.config.warn_on_shadowing and name != "main"
                    and self.catalog.is_function(name)):
                self._warning(f"Function '{name}' shadows a built-in function", line, column, len(name))
            return

        # A prototype never conflicts; the definition takes its place
        if is_prototype or existing.is_prototype:
            if existing.is_prototype and not is_prototype:
                self.functions[name] = FunctionDecl(name, line, column, conditional, False)
            return

        if not existing.conditional and not conditional:
            self._error(f"Function/task '{name}' already declared at line {existing.line + 1}",
                        line, column, len(name))
        elif not existing.conditional or not conditional:
            self._error(f"Function/task '{name}' conflicts with declaration at line {existing.line + 1}",
                        line, column, len(name))
        # else: both conditional, different preprocessor branches

        if existing.conditional and not conditional:
            self.functions[name] = FunctionDecl(name, line, column, False, False)

    # ════════════════════════════════════════════════════════════════
    #  Pass 2 — validate
    # ════════════════════════════════════════════════════════════════

    def _validate(self, lines: List[str]):
        cond = ConditionalTracker()
        continued = False

        for idx, line in enumerate(lines):
            is_continuation = continued
            continued = line.rstrip().endswith("\\")
            if is_continuation:
                continue
            stripped = line.strip()
            if not stripped:
                continue

            if stripped.startswith("#"):
                directive = parse_directive(stripped)
                if directive is not None:
                    cond.apply(directive[0])
                continue

            self._branch = cond.path
            self._walk_line(idx, tokenize(line))

    def _walk_line(self, line: int, tokens: List[Token]):
        prev: Optional[Token] = None
        i = 0
        while i < len(tokens):
            tok = tokens[i]
            skip = 0
            if tok.kind == PUNCT:
                self._punct(tok.text, line)
            elif tok.kind == IDENT:
                skip = self._ident(tokens, i, prev, line)
            i += 1 + skip
            prev = tokens[i - 1]

    # ────────────────────────────────────────────────────────────────
    #  Punctuation: scopes and declaration boundaries
    # ────────────────────────────────────────────────────────────────

    def _punct(self, ch: str, line: int):
        decl = self._decl

        if ch == "(":
            if self._pending_header is not None:
                self._scopes.push(self._pending_header, line, header_depth=self._paren)
                self._pending_header = None
            elif decl is not None:
                decl.nest += 1
            self._paren += 1

        elif ch == ")":
            if decl is not None:
                if decl.nest > 0:
                    decl.nest -= 1
                else:
                    self._decl = None
            self._paren = max(0, self._paren - 1)
            scope = self._scopes.current
            if scope.header_open and self._paren <= scope.header_depth:
                scope.header_open = False

        elif ch == "[":
            if decl is not None:
                decl.nest += 1

        elif ch == "]":
            if decl is not None and decl.nest > 0:
                decl.nest -= 1

        elif ch == "{":
            self._open_brace(line)

        elif ch == "}":
            self._close_brace()

        elif ch == ";":
            self._end_statement()

        elif ch == ",":
            if decl is not None and decl.nest == 0:
                decl.expect_name = True
                decl.in_init = False

        elif ch == "=":
            if decl is not None and decl.nest == 0:
                if decl.expect_name:
                    self._decl = None
                else:
                    decl.in_init = True

    def _open_brace(self, line: int):
        decl = self._decl
        if decl is not None and decl.in_init:
            # braced initializer, not a scope
            decl.nest += 1
            return
        self._decl = None

        scope = self._scopes.current
        if scope.awaiting_brace and not scope.header_open:
            scope.awaiting_brace = False
            self._pending_block = None
            return

        kind = self._pending_block or ScopeKind.BLOCK
        self._pending_block = None
        self._scopes.push(kind, line)

    def _close_brace(self):
        decl = self._decl
        if decl is not None and decl.in_init and decl.nest > 0:
            decl.nest -= 1
            return
        self._decl = None
        self._pending_header = None

        # header scopes that never got their body
        while self._scopes.current.awaiting_brace:
            self._scopes.pop()

        closed = self._scopes.pop()
        if closed is not None and closed.kind in (ScopeKind.AGGREGATE, ScopeKind.ENUM):
            # `} name;` after a struct/enum body declares name
            self._decl = _Declaration(base_depth=self._paren)

    def _end_statement(self):
        self._decl = None
        # prototypes and brace-less loop bodies end here
        while True:
            scope = self._scopes.current
            if scope.awaiting_brace and not scope.header_open:
                self._scopes.pop()
            else:
                break

    # ────────────────────────────────────────────────────────────────
    #  Identifiers: declarations, calls, usages
    # ────────────────────────────────────────────────────────────────

    def _is_type(self, name: str) -> bool:
        return name in VAR_TYPES or name in FUNC_ONLY_TYPES or name in self.user_types

    def _in_function_header(self) -> bool:
        scope = self._scopes.current
        return scope.kind is ScopeKind.FUNCTION and scope.header_open

    def _ident(self, tokens: List[Token], i: int, prev: Optional[Token], line: int) -> int:
        """Handle one identifier.  Returns how many following tokens to skip."""
        tok = tokens[i]
        name = tok.text
        nxt = tokens[i + 1] if i + 1 < len(tokens) else None
        nxt_text = nxt.text if nxt is not None else None
        keywords = self.catalog.keywords

        if self._scopes.inside(ScopeKind.ASM):
            return 0
        if prev is not None and prev.text in (".", "->"):
            return 0        # member access

        if name == "asm":
            self._pending_block = ScopeKind.ASM
            return 0

        if name in AGGREGATE_TAGS:
            self._pending_block = AGGREGATE_TAGS[name]
            skip = 1 if nxt is not None and nxt.kind == IDENT else 0
            following = tokens[i + 1 + skip] if i + 1 + skip < len(tokens) else None
            if skip and (following is None or following.text != "{"):
                # `struct Point p;` uses the tag as a type
                self._pending_block = None
                self._decl = _Declaration(base_depth=self._paren,
                                          is_parameter=self._in_function_header())
            return skip

        if name in QUALIFIERS:
            return 0
        if name == "goto":
            return 1 if nxt is not None and nxt.kind == IDENT else 0
        if name == "for" and nxt_text == "(":
            self._pending_header = ScopeKind.FOR_LOOP
            self._decl = None
            return 0

        decl = self._decl
        if self._is_type(name):
            if decl is not None and decl.expect_name and decl.names == 0 and decl.nest == 0:
                return 0    # multi-word type such as `unsigned int`
            self._decl = _Declaration(base_depth=self._paren,
                                      is_parameter=self._in_function_header())
            return 0

        if name in keywords:
            return 0

        if decl is not None and decl.expect_name and decl.nest == 0:
            if nxt_text == "(":
                # function declarator: parameters get their own scope
                self._pending_header = ScopeKind.FUNCTION
                self._decl = None
                return 0
            if nxt is not None and nxt.kind == IDENT and nxt_text not in keywords:
                return 0    # externally defined type name
            self._declare(name, line, tok.column, decl.is_parameter)
            decl.expect_name = False
            decl.names += 1
            return 0

        if nxt_text == "(":
            self._calls.setdefault(name, (line, tok.column))
            return 0

        if (nxt is not None and nxt.kind == IDENT and nxt_text not in keywords
                and not self._is_type(nxt_text)
                and (prev is None or prev.text in _STATEMENT_START or prev.text in QUALIFIERS)):
            # `Foo bar;` with Foo defined somewhere we cannot see
            self._decl = _Declaration(base_depth=self._paren,
                                      is_parameter=self._in_function_header())
            return 0

        if prev is None and nxt_text == ":":
            after = tokens[i + 2].text if i + 2 < len(tokens) else None
            if after != ":":
                return 0    # label

        self._resolve(name, line, tok.column)
        return 0

    def _declare(self, name: str, line: int, column: int, is_parameter: bool):
        scope = self._scopes.current
        existing = scope.symbols.get(name)
        if existing is not None:
            if not in_sibling_branches(existing.branch, self._branch):
                self._error(f"Variable '{name}' already declared at line {existing.line + 1}",
                            line, column, len(name))
            return

        scope.symbols[name] = Symbol(name, line, column, self._branch, is_parameter)

        if self.config.warn_on_shadowing:
            if self.catalog.is_function(name):
                self._warning(f"Variable '{name}' shadows a built-in function", line, column, len(name))
            elif name in self.catalog.constants:
                self._warning(f"Variable '{name}' shadows a built-in constant", line, column, len(name))

    def _resolve(self, name: str, line: int, column: int):
        if self._scopes.inside(ScopeKind.ENUM):
            return
        if self._scopes.lookup(name) is not None:
            return
        if (name in self.functions or name in self.macros
                or name in self.enum_constants or name in self.user_types):
            return
        if self.catalog.is_known(name):
            return
        self._error(f"Variable '{name}' is not defined", line, column, len(name))

    # ════════════════════════════════════════════════════════════════
    #  Post-scan checks
    # ════════════════════════════════════════════════════════════════

    def _check_calls(self):
        """Suggest a built-in for unknown calls; stay silent when nothing is close."""
        for name, (line, column) in self._calls.items():
            if name in self.functions or name in self.macros or self.catalog.is_function(name):
                continue
            if name in self.user_types or name in self.catalog.keywords:
                continue
            if not self.config.suggest_builtins:
                continue
            best = suggest(name, self.catalog.function_names)
            if best is not None:
                self._warning(f"Function '{name}' is not defined. Did you mean '{best}'?",
                              line, column, len(name))

    def _check_braced_initializers(self, scrubbed: str):
        # e.g. `int y = {1, 2, 3}[0];`
        for m in _BRACED_INIT_ACCESS_RE.finditer(scrubbed):
            pos = position_from_offset(scrubbed, m.start())
            self._error("Array access on braced initializer is not allowed", pos.line, pos.column)

    def _unused_symbols(self) -> List[Symbol]:
        unused: List[Symbol] = []
        for scope in self._scopes.all_scopes():
            if scope.kind in (ScopeKind.AGGREGATE, ScopeKind.ENUM):
                continue
            for sym in scope.symbols.values():
                if sym.used or sym.is_parameter:
                    continue
                if (_UNUSED_EXEMPT_RE.match(sym.name) or sym.name.startswith("g")
                        or sym.name == "main" or len(sym.name) <= 1):
                    continue
                unused.append(sym)
        return unused
