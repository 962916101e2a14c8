"""
NXC Check — MCP Server

Exposes the NXC analysis engine as tools over the Model Context Protocol:

  1. configure        — analyzer options (style, shadowing, unused, grammar pass, defines)
  2. load_catalog     — (re)load the built-in API catalog from a signature file
  3. analyze_source   — analyse a source buffer, optionally keyed by document id/version
  4. analyze_file     — analyse a file on disk and show code context per diagnostic
  5. suggest_name     — "did you mean" lookup against the built-in catalog
  6. catalog_summary  — what the current catalog contains and where it came from

The engine only returns structured diagnostics; all Markdown rendering
(1-based line numbers, grouping) happens here.
"""

from mcp.server.fastmcp import FastMCP
import os
import sys
import logging
from typing import List, Optional

# Ensure nxcheck modules are importable
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from nxcheck.catalog import CatalogCache
from nxcheck.config import AnalyzerConfig, parse_defines
from nxcheck.diagnostics import AnalysisResult, Diagnostic
from nxcheck.session import AnalysisSession
from nxcheck.source_reader import SourceReader
from nxcheck.suggest import levenshtein, suggest

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════
#  Server Setup
# ═══════════════════════════════════════════════════════════════════════

mcp = FastMCP("NXC Check")

session = AnalysisSession(AnalyzerConfig(), CatalogCache())


def _format_diagnostic(d: Diagnostic) -> str:
    return (
        f"- **{d.severity.value.capitalize()}** line {d.line + 1}, col {d.column + 1} "
        f"(`{d.source}`): {d.message}"
    )


def _format_result(result: AnalysisResult, title: str, text: Optional[str] = None,
                   reader: Optional[SourceReader] = None) -> str:
    errors = len(result.errors)
    warnings = len(result.warnings)
    hints = len(result.diagnostics) - errors - warnings

    if not result.diagnostics:
        return f"**{title}: no problems found.**"

    status = "valid" if result.is_valid else "INVALID"
    out = f"**{title}: {status}** ({errors} error(s), {warnings} warning(s)"
    if hints:
        out += f", {hints} hint(s)"
    out += ")\n\n"

    lines: List[str] = []
    for d in result.diagnostics:
        lines.append(_format_diagnostic(d))
        if text is not None and reader is not None:
            lines.append("  ```\n" + reader.get_code_context(text, d.line + 1, 1) + "\n  ```")
    return out + "\n".join(lines)


# ═══════════════════════════════════════════════════════════════════════
#  Tool 1 — Configure
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def configure(
    max_line_length: int = 120,
    check_style: bool = True,
    warn_on_shadowing: bool = True,
    report_unused_variables: bool = False,
    grammar_check: bool = False,
    defines: str = "",
) -> str:
    """
    Sets analyzer options for all later analyses.  Cached results are dropped.

    Args:
        max_line_length:         Style warning threshold.
        check_style:             Report long lines and mixed indentation.
        warn_on_shadowing:       Warn when a name hides a built-in.
        report_unused_variables: Report variables that are never read.
        grammar_check:           Run the advisory tree-sitter pass on error-free files.
        defines:                 Comma-separated preprocessor defines for the grammar
                                 pass (NAME=VALUE or NAME).  Example: "DEBUG,SPEED=75"
    """
    if max_line_length < 1:
        return "Error: max_line_length must be positive."

    config = session.config.model_copy(update={
        "max_line_length": max_line_length,
        "check_style": check_style,
        "warn_on_shadowing": warn_on_shadowing,
        "report_unused_variables": report_unused_variables,
        "grammar_check": grammar_check,
        "defines": parse_defines(defines),
    })
    session.update_config(config)
    return (
        f"Configuration updated: max line length {config.max_line_length}, "
        f"style {'on' if config.check_style else 'off'}, "
        f"shadowing {'on' if config.warn_on_shadowing else 'off'}, "
        f"unused variables {'on' if config.report_unused_variables else 'off'}, "
        f"grammar pass {'on' if config.grammar_check else 'off'}, "
        f"{len(config.defines)} define(s)."
    )


# ═══════════════════════════════════════════════════════════════════════
#  Tool 2 — Load Catalog
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def load_catalog(api_path: str = "", constants_path: str = "") -> str:
    """
    Loads the NXC built-in catalog.

    Args:
        api_path:       Signature file, one ``Name(params)`` per line.  Empty uses
                        the bundled NXC API list.
        constants_path: Optional file of extra constant names (``NAME`` or
                        ``NAME = value`` per line).
    """
    if api_path and not os.path.exists(api_path):
        return f"Error: Catalog file not found at {api_path}"
    if constants_path and not os.path.exists(constants_path):
        return f"Error: Constants file not found at {constants_path}"

    try:
        session.catalog_cache = CatalogCache(api_path or None, constants_path or None)
        catalog = session.current_catalog()
    except Exception as e:
        return f"Error loading catalog: {e}"

    result = (
        f"Loaded catalog from `{catalog.source}`: {len(catalog.functions)} functions, "
        f"{len(catalog.constants)} constants, {len(catalog.keywords)} keywords."
    )
    if catalog.degraded:
        result += "\n**Warning:** source unreadable or empty, using the embedded essential set."
    return result


# ═══════════════════════════════════════════════════════════════════════
#  Tool 3 — Analyze Source
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def analyze_source(source: str, document_id: str = "untitled", version: int = -1) -> str:
    """
    Analyses an NXC source buffer and lists its diagnostics.

    Args:
        source:      Full text of the program.
        document_id: Identity used for result caching (e.g. the file URI).
        version:     Editor document version; -1 fingerprints the text instead.
    """
    result = session.analyze_document(document_id, source, version if version >= 0 else None)
    return _format_result(result, document_id)


# ═══════════════════════════════════════════════════════════════════════
#  Tool 4 — Analyze File
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def analyze_file(file_path: str, workspace_root: str = ".") -> str:
    """
    Analyses an NXC file on disk and shows the code around each diagnostic.

    Args:
        file_path:      Path to the .nxc file (absolute or relative to workspace_root).
        workspace_root: Directory relative paths are resolved against.
    """
    if not os.path.exists(workspace_root):
        return f"Error: Workspace root not found at {workspace_root}"

    reader = SourceReader(workspace_root)
    text = reader.read_text(file_path)
    if text is None:
        return f"Error: Cannot read {file_path}"

    result = session.analyze_document(file_path.replace("\\", "/"), text)
    return _format_result(result, file_path, text, reader)


# ═══════════════════════════════════════════════════════════════════════
#  Tool 5 — Suggest Name
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def suggest_name(name: str) -> str:
    """
    Finds the built-in function closest to ``name``.

    Args:
        name: A possibly misspelled function name, e.g. "OnFwdd".
    """
    catalog = session.current_catalog()
    if catalog.is_function(name):
        sig = catalog.signature(name)
        return f"`{name}` is a built-in function" + (f": `{name}({sig})`" if sig is not None else ".")

    best = suggest(name, catalog.function_names)
    if best is None:
        return f"No built-in function is close to `{name}`."

    sig = catalog.signature(best)
    result = f"Did you mean `{best}`? (edit distance {levenshtein(name.lower(), best.lower())})"
    if sig is not None:
        result += f"\n\nSignature: `{best}({sig})`"
    return result


# ═══════════════════════════════════════════════════════════════════════
#  Tool 6 — Catalog Summary
# ═══════════════════════════════════════════════════════════════════════

@mcp.tool()
def catalog_summary() -> str:
    """Describes the built-in catalog currently in use."""
    catalog = session.current_catalog()
    sample = ", ".join(catalog.function_names[:10])
    summary = "## NXC Built-in Catalog\n\n"
    summary += "| Item | Value |\n|---|---|\n"
    summary += f"| Source | `{catalog.source}` |\n"
    summary += f"| Functions | {len(catalog.functions)} |\n"
    summary += f"| Constants | {len(catalog.constants)} |\n"
    summary += f"| Keywords | {len(catalog.keywords)} |\n"
    summary += f"| Degraded | {'yes' if catalog.degraded else 'no'} |\n"
    summary += f"\nFirst functions: {sample}"
    return summary


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)
    mcp.run()
