"""
Source Reader

Reads NXC source files for the host tools and pulls short code excerpts to
show under a diagnostic.

Guards:
  • Skips binary files (null-byte check)
  • Caps reads at MAX_LINES to prevent memory issues
  • Handles encoding errors gracefully
"""

import os
import logging
from typing import List, Optional

logger = logging.getLogger(__name__)

MAX_LINES = 100_000  # safety cap for very large files


class SourceReader:
    def __init__(self, workspace_root: str = "."):
        self.workspace_root = workspace_root

    # ────────────────────────────────────────────────────────────────
    #  Internal helpers
    # ────────────────────────────────────────────────────────────────

    def _resolve(self, file_path: str) -> str:
        # Normalise separators so 'src/main.nxc' works on Windows too
        native = file_path.replace("/", os.sep).replace("\\", os.sep)
        if os.path.isabs(native):
            return native
        return os.path.join(self.workspace_root, native)

    @staticmethod
    def _read_lines(full_path: str) -> Optional[List[str]]:
        """Read file lines with binary-file guard and size cap."""
        if not os.path.isfile(full_path):
            return None
        try:
            with open(full_path, "rb") as fb:
                head = fb.read(8192)
                if b"\x00" in head:
                    logger.warning("Skipping binary file: %s", full_path)
                    return None
            with open(full_path, "r", encoding="utf-8", errors="replace", newline="") as f:
                lines = []
                for i, line in enumerate(f):
                    if i >= MAX_LINES:
                        logger.warning(
                            "File %s exceeds %d lines, truncated", full_path, MAX_LINES
                        )
                        break
                    lines.append(line)
                return lines
        except OSError as e:
            logger.error("Error reading %s: %s", full_path, e)
            return None

    # ────────────────────────────────────────────────────────────────
    #  Public API
    # ────────────────────────────────────────────────────────────────

    def read_text(self, file_path: str) -> Optional[str]:
        """Whole file as text, or None if it cannot be read."""
        lines = self._read_lines(self._resolve(file_path))
        if lines is None:
            return None
        return "".join(lines)

    def get_code_context(self, text: str, line_number: int, context_lines: int = 2) -> str:
        """Lines around ``line_number`` (1-indexed) of ``text``, numbered."""
        lines = text.splitlines()
        start = max(0, line_number - 1 - context_lines)
        end = min(len(lines), line_number + context_lines)
        width = len(str(end))
        return "\n".join(
            f"{'>' if i + 1 == line_number else ' '} {i + 1:>{width}} | {lines[i]}"
            for i in range(start, end)
        )
