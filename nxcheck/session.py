"""
Analysis Session — host-side driver for repeated analyses.

The analyzer itself is synchronous and stateless.  A host that re-analyses
documents on every edit uses a session for the three caller duties:

  • Debounce: ``schedule`` waits ``debounce_seconds``; a newer request for
    the same document cancels the pending one
  • De-duplicate: one in-flight analysis per document id, concurrent callers
    wait for it instead of starting their own
  • Cache: the last result per document is kept under a fingerprint
    (host version, else SHA-1 of the text) and returned while unchanged

The catalog comes from a ``CatalogCache``; when it hands out a new catalog
object (source file changed) every cached result is dropped.
"""

import hashlib
import logging
import threading
from typing import Callable, Dict, Optional, Tuple

from .analyzer import NXCAnalyzer
from .catalog import BuiltInCatalog, CatalogCache
from .config import AnalyzerConfig
from .diagnostics import AnalysisResult

logger = logging.getLogger(__name__)

ResultCallback = Callable[[str, AnalysisResult], None]


class AnalysisSession:
    def __init__(self, config: Optional[AnalyzerConfig] = None, catalog_cache: Optional[CatalogCache] = None):
        self.config = config or AnalyzerConfig()
        self.catalog_cache = catalog_cache or CatalogCache()
        self._lock = threading.Lock()
        self._catalog: Optional[BuiltInCatalog] = None
        self._results: Dict[str, Tuple[str, AnalysisResult]] = {}
        self._in_flight: Dict[str, threading.Event] = {}
        self._timers: Dict[str, threading.Timer] = {}
        self.analyses_run = 0

    @staticmethod
    def fingerprint(text: str, version: Optional[int] = None) -> str:
        if version is not None:
            return f"v{version}"
        return hashlib.sha1(text.encode("utf-8")).hexdigest()

    # ────────────────────────────────────────────────────────────────
    #  Configuration / catalog
    # ────────────────────────────────────────────────────────────────

    def update_config(self, config: AnalyzerConfig):
        with self._lock:
            self.config = config
            self._results.clear()

    def current_catalog(self) -> BuiltInCatalog:
        catalog = self.catalog_cache.get()
        with self._lock:
            if catalog is not self._catalog:
                if self._catalog is not None:
                    logger.info("Catalog replaced, dropping %d cached results", len(self._results))
                self._results.clear()
                self._catalog = catalog
        return catalog

    # ────────────────────────────────────────────────────────────────
    #  Analysis
    # ────────────────────────────────────────────────────────────────

    def analyze_document(self, document_id: str, text: str, version: Optional[int] = None) -> AnalysisResult:
        """Analyse ``text`` unless an identical fingerprint is cached."""
        fp = self.fingerprint(text, version)

        while True:
            catalog = self.current_catalog()
            with self._lock:
                cached = self._results.get(document_id)
                if cached is not None and cached[0] == fp:
                    logger.debug("Cache hit for %s (%s)", document_id, fp)
                    return cached[1]
                pending = self._in_flight.get(document_id)
                if pending is None:
                    done = threading.Event()
                    self._in_flight[document_id] = done
                    config = self.config
                    break
            # someone else is analysing this document; re-check once they finish
            pending.wait()

        try:
            result = NXCAnalyzer(catalog, config).analyze(text)
            with self._lock:
                self._results[document_id] = (fp, result)
                self.analyses_run += 1
            return result
        finally:
            with self._lock:
                self._in_flight.pop(document_id, None)
            done.set()

    def schedule(self, document_id: str, text: str, version: Optional[int] = None,
                 callback: Optional[ResultCallback] = None) -> threading.Timer:
        """Debounced ``analyze_document``; the callback gets ``(document_id, result)``."""

        def fire():
            with self._lock:
                if self._timers.get(document_id) is timer:
                    del self._timers[document_id]
            result = self.analyze_document(document_id, text, version)
            if callback is not None:
                callback(document_id, result)

        timer = threading.Timer(self.config.debounce_seconds, fire)
        timer.daemon = True
        with self._lock:
            previous = self._timers.pop(document_id, None)
            if previous is not None:
                previous.cancel()
            self._timers[document_id] = timer
        timer.start()
        return timer

    def cached_result(self, document_id: str) -> Optional[AnalysisResult]:
        with self._lock:
            cached = self._results.get(document_id)
        return cached[1] if cached is not None else None

    def close_document(self, document_id: str):
        """Forget a document: cancel its pending analysis and drop its cache."""
        with self._lock:
            timer = self._timers.pop(document_id, None)
            self._results.pop(document_id, None)
        if timer is not None:
            timer.cancel()

    def close(self):
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
            self._results.clear()
        for timer in timers:
            timer.cancel()
