"""
NXC Analyzer — runs every pass over one buffer and aggregates the results.

Stream order is fixed and never re-sorted or de-duplicated:

  1. syntax errors        (unterminated literals)
  2. syntax warnings      (missing semicolon, ``= =``, style)
  3. bracket errors       (balance checker, at most one)
  4. semantic errors      (duplicates, undefined identifiers, conflicts)
  5. semantic warnings    (shadowing, did-you-mean suggestions)
  6. advisory hints       (grammar pass; only when enabled and error-free)

An unexpected exception anywhere in the pipeline is logged and turned into a
single ``Internal error`` diagnostic at (0, 0), so callers always get a
well-formed ``AnalysisResult``.
"""

import logging
from typing import List, Optional

from .balance import check_balance
from .catalog import BuiltInCatalog, load_catalog
from .config import AnalyzerConfig
from .declarations import DeclarationTracker
from .diagnostics import AnalysisResult, Diagnostic, Severity, SOURCE_INTERNAL
from .grammar_check import GrammarChecker
from .scrubber import scan
from .syntax_checks import SyntaxChecker

logger = logging.getLogger(__name__)


class NXCAnalyzer:
    """
    Stateless analyzer bound to one catalog and one configuration.

    The catalog is loaded lazily (bundled API file) when none is injected;
    everything else is created fresh per ``analyze`` call.
    """

    def __init__(self, catalog: Optional[BuiltInCatalog] = None, config: Optional[AnalyzerConfig] = None):
        self.config = config or AnalyzerConfig()
        self._catalog = catalog

    @property
    def catalog(self) -> BuiltInCatalog:
        if self._catalog is None:
            self._catalog = load_catalog()
        return self._catalog

    def analyze(self, text: str) -> AnalysisResult:
        try:
            return self._analyze(text)
        except Exception as e:
            logger.exception("Internal error during analysis")
            internal = Diagnostic.at(
                f"Internal error: {e}", Severity.ERROR, 0, 0, source=SOURCE_INTERNAL,
            )
            return AnalysisResult(is_valid=False, errors=[internal], diagnostics=[internal])

    def _analyze(self, text: str) -> AnalysisResult:
        scanned = scan(text)

        syntax_errors, syntax_warnings = SyntaxChecker(self.config).check(text, scanned)
        bracket_errors = check_balance(scanned.text)
        report = DeclarationTracker(self.catalog, self.config).run(scanned.text)

        errors: List[Diagnostic] = syntax_errors + bracket_errors + report.errors
        warnings: List[Diagnostic] = syntax_warnings + report.warnings

        hints: List[Diagnostic] = []
        if self.config.grammar_check and not errors:
            hints = GrammarChecker(self.config).check(text)

        diagnostics = (syntax_errors + syntax_warnings + bracket_errors
                       + report.errors + report.warnings + hints)

        logger.debug(
            "Analysis finished: %d errors, %d warnings, %d hints",
            len(errors), len(warnings), len(hints),
        )
        return AnalysisResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            diagnostics=diagnostics,
        )


def analyze(source_text: str, catalog: Optional[BuiltInCatalog] = None,
            config: Optional[AnalyzerConfig] = None) -> AnalysisResult:
    """Analyze ``source_text`` with a fresh analyzer."""
    return NXCAnalyzer(catalog, config).analyze(source_text)
