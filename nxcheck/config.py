"""
Analyzer configuration.

A single pydantic model carries every knob the passes read.  Hosts build one
up front (or update it with ``model_copy(update=...)``) and hand it to the
analyzer; nothing reads ambient/global settings.
"""

from typing import Dict

from pydantic import BaseModel


class AnalyzerConfig(BaseModel):
    # Style / syntax heuristics
    max_line_length: int = 120
    check_style: bool = True
    require_semicolons: bool = True

    # Semantic pass
    warn_on_shadowing: bool = True
    suggest_builtins: bool = True
    report_unused_variables: bool = False   # high false-positive rate, off by default

    # Advisory grammar pass (tree-sitter + pcpp)
    grammar_check: bool = False
    grammar_preprocess: bool = True
    grammar_max_issues: int = 10
    defines: Dict[str, str] = {}

    # Host-side driver
    debounce_seconds: float = 0.5


def parse_defines(spec: str) -> Dict[str, str]:
    """Parse ``"NAME=VALUE,FLAG"`` into a define mapping (bare names map to ``"1"``)."""
    defines: Dict[str, str] = {}
    for define in spec.split(","):
        define = define.strip()
        if not define:
            continue
        if "=" in define:
            name, value = define.split("=", 1)
            defines[name.strip()] = value.strip()
        else:
            defines[define] = "1"
    return defines
