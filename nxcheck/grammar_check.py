"""
Advisory Grammar Pass — tree-sitter-c over NXC mapped onto C.

The primary passes are line-oriented so they keep working while the user is
typing.  For files that are (probably) complete, this pass adds a real
parse: NXC-only keywords are rewritten to C equivalents of the *same
length* (so columns survive), macros are expanded with pcpp, and the result
is parsed with tree-sitter-c.  ERROR / MISSING nodes become ``hint``
diagnostics, as does a program with no ``main`` task.

The top level of the tree is converted into a list of tagged items
(``ItemKind``) and each kind is handled by its own visitor; the dispatch
table is checked for exhaustiveness at import time.

Guards:
  • Only runs when enabled and the primary passes found no errors
  • pcpp failures fall back to the unexpanded text with an identity line map
  • Any exception inside the pass is logged and yields no diagnostics
  • Number of grammar hints is capped (``grammar_max_issues``)
"""

import re
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

import tree_sitter_c as tsc
from tree_sitter import Language, Parser, Node

from .config import AnalyzerConfig
from .declarations import FUNC_ONLY_TYPES, VAR_TYPES, header_pattern
from .diagnostics import Diagnostic, Severity, SOURCE_GRAMMAR
from .preprocessor import PreprocessorEngine
from .scrubber import scrub

logger = logging.getLogger(__name__)

C_LANGUAGE = Language(tsc.language())
_parser = Parser(C_LANGUAGE)

# NXC keyword -> C stand-in, padded to the keyword's length
_DIALECT: Dict[str, str] = {
    "task": "void",
    "sub": "int",
    "safecall": "",
    "inline": "",
    "byte": "char",
    "bool": "char",
    "string": "char*",
    "mutex": "int",
    "variant": "int",
    "repeat": "while",
    "until": "while",
    "priority": "",
}
_DIALECT_RE = re.compile(r"\b(" + "|".join(_DIALECT) + r")\b")
_ASM_RE = re.compile(r"\basm\s*\{")
_REFERENCE_PARAM_RE = re.compile(
    r"\b(?:int|float|char|byte|bool|string|long|short|unsigned|mutex|variant)\s*(&)"
)
_DEFAULT_VALUE_RE = re.compile(r"=[^,)]*")
_HEADER_RE = header_pattern(VAR_TYPES + FUNC_ONLY_TYPES)


# ═══════════════════════════════════════════════════════════════════════
#  Dialect mapping
# ═══════════════════════════════════════════════════════════════════════

def _blank(chars: List[str], start: int, end: int):
    for i in range(start, min(end, len(chars))):
        if chars[i] not in ("\n", "\r"):
            chars[i] = " "


def to_c_dialect(source: str) -> str:
    """Rewrite NXC-only syntax into C without moving any character.

    Matches are found on the scrubbed text (so keywords inside strings and
    comments are left alone) and applied to the original, which keeps string
    literals intact for the parser.
    """
    scrubbed = scrub(source)
    chars = list(source)

    for m in _DIALECT_RE.finditer(scrubbed):
        word = m.group(1)
        replacement = _DIALECT[word].ljust(len(word))
        chars[m.start():m.end()] = replacement

    # asm { ... } bodies are not C
    for m in _ASM_RE.finditer(scrubbed):
        depth = 0
        end = len(scrubbed)
        for j in range(m.end() - 1, len(scrubbed)):
            if scrubbed[j] == "{":
                depth += 1
            elif scrubbed[j] == "}":
                depth -= 1
                if depth == 0:
                    end = j + 1
                    break
        _blank(chars, m.start(), end)

    # reference parameters: `int &x` -> `int  x`
    for m in _REFERENCE_PARAM_RE.finditer(scrubbed):
        chars[m.start(1)] = " "

    # default parameter values in headers
    offset = 0
    for line in scrubbed.split("\n"):
        hm = _HEADER_RE.match(line)
        if hm:
            open_paren = hm.end() - 1
            close_paren = line.find(")", open_paren)
            params_end = close_paren if close_paren != -1 else len(line)
            for dm in _DEFAULT_VALUE_RE.finditer(line, open_paren, params_end):
                _blank(chars, offset + dm.start(), offset + dm.end())
        offset += len(line) + 1

    return "".join(chars)


# ═══════════════════════════════════════════════════════════════════════
#  Tagged top-level items
# ═══════════════════════════════════════════════════════════════════════

class ItemKind(Enum):
    FUNCTION = "function"
    DECLARATION = "declaration"
    PREPROCESSOR = "preprocessor"
    ERROR = "error"
    OTHER = "other"


@dataclass
class TopLevelItem:
    kind: ItemKind
    node: Node
    name: Optional[str] = None


_DECLARATION_TYPES = ("declaration", "type_definition", "struct_specifier",
                      "enum_specifier", "union_specifier")


def _node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")


def _function_name(node: Node, source: bytes) -> Optional[str]:
    decl = node.child_by_field_name("declarator")
    while decl is not None and decl.type != "function_declarator":
        decl = decl.child_by_field_name("declarator")
    if decl is None:
        return None
    ident = decl.child_by_field_name("declarator")
    if ident is None or ident.type != "identifier":
        return None
    return _node_text(ident, source)


def classify(node: Node, source: bytes) -> TopLevelItem:
    if node.type == "function_definition":
        return TopLevelItem(ItemKind.FUNCTION, node, _function_name(node, source))
    if node.type in _DECLARATION_TYPES:
        return TopLevelItem(ItemKind.DECLARATION, node)
    if node.type.startswith("preproc_"):
        return TopLevelItem(ItemKind.PREPROCESSOR, node)
    if node.type == "ERROR":
        return TopLevelItem(ItemKind.ERROR, node)
    return TopLevelItem(ItemKind.OTHER, node)


def top_level_items(root: Node, source: bytes) -> List[TopLevelItem]:
    return [classify(child, source) for child in root.named_children]


class _ItemVisitor:
    """Collects what the hint rules need from the top-level items."""

    def __init__(self, source: bytes):
        self.source = source
        self.functions: List[str] = []
        self.declarations = 0
        self.error_items = 0

    def visit(self, item: TopLevelItem):
        _VISITORS[item.kind](self, item)

    def visit_function(self, item: TopLevelItem):
        if item.name:
            self.functions.append(item.name)

    def visit_declaration(self, item: TopLevelItem):
        self.declarations += 1

    def visit_preprocessor(self, item: TopLevelItem):
        # unexpanded #if/#ifdef groups hold their own top-level items
        for child in item.node.named_children:
            nested = classify(child, self.source)
            if nested.kind is not ItemKind.OTHER:
                self.visit(nested)

    def visit_error(self, item: TopLevelItem):
        self.error_items += 1

    def visit_other(self, item: TopLevelItem):
        pass


_VISITORS: Dict[ItemKind, Callable[[_ItemVisitor, TopLevelItem], None]] = {
    ItemKind.FUNCTION: _ItemVisitor.visit_function,
    ItemKind.DECLARATION: _ItemVisitor.visit_declaration,
    ItemKind.PREPROCESSOR: _ItemVisitor.visit_preprocessor,
    ItemKind.ERROR: _ItemVisitor.visit_error,
    ItemKind.OTHER: _ItemVisitor.visit_other,
}

_unhandled = set(ItemKind) - set(_VISITORS)
if _unhandled:
    raise RuntimeError(f"No visitor for item kinds: {sorted(k.value for k in _unhandled)}")


# ═══════════════════════════════════════════════════════════════════════
#  Checker
# ═══════════════════════════════════════════════════════════════════════

def _problem_nodes(root: Node) -> List[Node]:
    """ERROR and MISSING nodes in document order (ERROR subtrees not descended)."""
    found: List[Node] = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            found.append(node)
            continue
        if node.has_error:
            stack.extend(reversed(node.children))
    return found


class GrammarChecker:
    """Best-effort full parse of an NXC buffer; produces hints only."""

    def __init__(self, config: Optional[AnalyzerConfig] = None):
        self.config = config or AnalyzerConfig()

    def check(self, source: str) -> List[Diagnostic]:
        try:
            return self._check(source)
        except Exception as e:
            logger.warning("Grammar pass failed, skipping: %s", e)
            return []

    def _expand(self, text: str):
        line_count = text.count("\n") + 1
        identity = list(range(1, line_count + 1))
        if not self.config.grammar_preprocess:
            return text, identity
        try:
            expanded, line_map = PreprocessorEngine(self.config.defines).preprocess(text)
        except Exception as e:
            logger.debug("pcpp expansion failed, parsing unexpanded text: %s", e)
            return text, identity
        if not expanded.strip():
            return text, identity
        return expanded, line_map

    def _check(self, source: str) -> List[Diagnostic]:
        text, line_map = self._expand(to_c_dialect(source))
        encoded = text.encode("utf-8")
        tree = _parser.parse(encoded)
        root = tree.root_node

        def original_line(row: int) -> int:
            if 0 <= row < len(line_map):
                return max(0, line_map[row] - 1)
            return row

        hints: List[Diagnostic] = []
        if root.has_error:
            for node in _problem_nodes(root)[:self.config.grammar_max_issues]:
                row, column = node.start_point
                if node.is_missing:
                    message = f"Grammar: missing '{node.type}'"
                else:
                    snippet = _node_text(node, encoded).strip().splitlines()
                    near = snippet[0][:30] if snippet else ""
                    message = f"Grammar: unexpected syntax near '{near}'"
                hints.append(Diagnostic.at(
                    message, Severity.HINT, original_line(row), column,
                    max(1, node.end_byte - node.start_byte) if node.start_point[0] == node.end_point[0] else 1,
                    SOURCE_GRAMMAR,
                ))

        visitor = _ItemVisitor(encoded)
        for item in top_level_items(root, encoded):
            visitor.visit(item)

        if "main" not in visitor.functions:
            hints.append(Diagnostic.at(
                'No "main" function or task found', Severity.HINT, 0, 0, source=SOURCE_GRAMMAR,
            ))

        logger.debug(
            "Grammar pass: %d functions, %d declarations, %d hints",
            len(visitor.functions), visitor.declarations, len(hints),
        )
        return hints
