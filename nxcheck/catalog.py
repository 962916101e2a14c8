"""
Built-in Catalog Loader

Loads the universe of names the analyzer treats as always resolved: NXC API
functions (from a signature file, one ``Name(params...)`` per line), built-in
constants and language keywords.

The catalog is an immutable value object.  It is loaded once and injected
into each analysis; ``CatalogCache`` swaps in a freshly loaded catalog when
the source file changes instead of mutating the published one.

Guards:
  • Missing/unreadable source falls back to the embedded essential set
  • Blank lines, ``//``/``#`` comment lines and malformed lines are skipped
"""

import os
import re
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_API_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data", "nxc_api.txt")
FALLBACK_SOURCE = "<embedded>"

_SIGNATURE_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s*\((.*?)\)?\s*;?\s*$")
_CONSTANT_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s*(?:=\s*(\S.*))?$")

# Always part of the catalog, and all that is left when the API file is unreadable
ESSENTIAL_FUNCTIONS: Tuple[str, ...] = (
    "OnFwd", "OnRev", "Off", "Wait", "CurrentTick", "Sensor", "ColorSensor", "SensorUS",
    "SetSensorColorFull", "SetSensorUltrasonic", "ResetRotationCount", "MotorRotationCount",
    "SetSensorType", "SetSensorMode", "ClearSensor", "ResetSensor", "SetSensor",
    "SetSensorTouch", "SetSensorLight", "SetSensorSound", "SetSensorLowspeed",
    "SetSensorEMeter", "SetSensorTemperature", "SetSensorColorRed", "SetSensorColorGreen",
    "SetSensorColorBlue", "SetSensorColorNone", "ClearScreen", "ClearLine",
    "PlaySound", "PlayTones", "TextOut", "NumOut", "PointOut", "LineOut", "CircleOut",
    "RectOut", "PolyOut", "EllipseOut", "FontTextOut", "FontNumOut",
    "Sin", "Cos", "Tan", "ASin", "ACos", "ATan", "ATan2", "Sinh", "Cosh", "Tanh",
    "Exp", "Log", "Log10", "Sqrt", "Pow", "Ceil", "Floor", "Trunc", "Frac", "Sign",
    "Abs", "Max", "Min", "Constrain", "Map", "Random", "SRandom",
)

BUILTIN_CONSTANTS: Tuple[str, ...] = (
    "TRUE", "FALSE", "NULL", "true", "false",
    "OUT_A", "OUT_B", "OUT_C", "OUT_AB", "OUT_AC", "OUT_BC", "OUT_ABC",
    "IN_1", "IN_2", "IN_3", "IN_4",
    "S1", "S2", "S3", "S4",
    "SENSOR_1", "SENSOR_2", "SENSOR_3", "SENSOR_4",
    "LCD_LINE1", "LCD_LINE2", "LCD_LINE3", "LCD_LINE4",
    "LCD_LINE5", "LCD_LINE6", "LCD_LINE7", "LCD_LINE8",
    "NO_ERR", "ERR_ARG", "ERR_INVAL", "ERR_FILE", "ERR_COMM",
    "COL_BLACK", "COL_BLUE", "COL_GREEN", "COL_YELLOW", "COL_RED", "COL_WHITE", "COL_BROWN",
    "OUT_MODE_MOTORON", "OUT_MODE_BRAKE", "OUT_MODE_REGULATED", "OUT_MODE_COAST",
    "OUT_REGMODE_IDLE", "OUT_REGMODE_SPEED", "OUT_REGMODE_SYNC",
    "OUT_RUNSTATE_IDLE", "OUT_RUNSTATE_RAMPUP", "OUT_RUNSTATE_RUNNING", "OUT_RUNSTATE_RAMPDOWN",
    "SENSOR_TYPE_TOUCH", "SENSOR_TYPE_LIGHT", "SENSOR_TYPE_SOUND", "SENSOR_TYPE_ULTRASONIC",
    "SENSOR_MODE_RAW", "SENSOR_MODE_BOOL", "SENSOR_MODE_PERCENT",
    "SOUND_CLICK", "SOUND_BEEP", "SOUND_DOUBLE_BEEP", "SOUND_UP", "SOUND_DOWN", "SOUND_LOW_BEEP",
    "BTNCENTER", "BTNLEFT", "BTNRIGHT", "BTNEXIT",
    "DRAW_OPT_NORMAL", "DRAW_OPT_CLEAR_WHOLE_SCREEN", "DRAW_OPT_FILL_SHAPE",
)

KEYWORDS: Tuple[str, ...] = (
    "if", "else", "while", "for", "do", "switch", "case", "default",
    "break", "continue", "return", "goto", "repeat", "until",
    "task", "sub", "void", "inline", "safecall", "static", "extern", "volatile", "register",
    "int", "float", "byte", "char", "string", "bool", "mutex", "long", "short",
    "unsigned", "signed", "const", "variant",
    "struct", "enum", "union", "typedef", "sizeof",
    "true", "false", "TRUE", "FALSE", "NULL",
    "start", "stop", "priority", "asm",
)


@dataclass(frozen=True)
class BuiltInCatalog:
    """Immutable set of predefined names for one analysis session."""
    function_names: Tuple[str, ...]             # load order, keeps suggestions deterministic
    constants: FrozenSet[str]
    keywords: FrozenSet[str]
    signatures: Dict[str, str] = field(default_factory=dict, compare=False, hash=False)
    source: str = FALLBACK_SOURCE
    degraded: bool = False                      # True when the API source was unreadable or empty
    functions: FrozenSet[str] = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "functions", frozenset(self.function_names))

    def is_function(self, name: str) -> bool:
        return name in self.functions

    def is_known(self, name: str) -> bool:
        """True if ``name`` is a built-in function, constant or keyword."""
        return name in self.keywords or name in self.constants or self.is_function(name)

    def signature(self, name: str) -> Optional[str]:
        return self.signatures.get(name)


# ═══════════════════════════════════════════════════════════════════════
#  Loading
# ═══════════════════════════════════════════════════════════════════════

def parse_signatures(lines) -> Dict[str, str]:
    """Extract ``name -> parameter text`` from catalog lines, skipping junk."""
    signatures: Dict[str, str] = {}
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("//") or line.startswith("#"):
            continue
        m = _SIGNATURE_RE.match(line)
        if not m:
            logger.debug("Skipping malformed catalog line: %r", line)
            continue
        signatures.setdefault(m.group(1), (m.group(2) or "").strip())
    return signatures


def parse_constants(lines) -> List[str]:
    names: List[str] = []
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("//") or line.startswith("#"):
            continue
        m = _CONSTANT_RE.match(line)
        if m:
            names.append(m.group(1))
        else:
            logger.debug("Skipping malformed constant line: %r", line)
    return names


def _read_lines(path: str) -> Optional[List[str]]:
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return f.read().splitlines()
    except OSError as e:
        logger.warning("Could not read catalog source %s: %s", path, e)
        return None


def load_catalog(source: Optional[str] = None, constants_source: Optional[str] = None) -> BuiltInCatalog:
    """
    Load the built-in catalog.

    Args:
        source:           Path to an API signature file.  Defaults to the
                          bundled ``data/nxc_api.txt``.
        constants_source: Optional file with extra constant names, one
                          ``NAME`` or ``NAME = value`` per line.

    Returns:
        A ``BuiltInCatalog``.  When ``source`` cannot be read or holds no
        signatures, the catalog holds only the embedded essential functions
        and ``degraded`` is set.
    """
    path = os.fspath(source) if source is not None else DEFAULT_API_PATH
    lines = _read_lines(path)

    signatures: Dict[str, str] = {}
    degraded = lines is None
    if lines is not None:
        signatures = parse_signatures(lines)
        if signatures:
            logger.info("Loaded %d NXC API functions from %s", len(signatures), path)
        else:
            logger.warning("No API signatures in %s, using essential built-ins", path)
            degraded = True

    names = list(signatures)
    seen = set(names)
    for fn in ESSENTIAL_FUNCTIONS:
        if fn not in seen:
            names.append(fn)
            seen.add(fn)

    constants = set(BUILTIN_CONSTANTS)
    if constants_source is not None:
        const_lines = _read_lines(os.fspath(constants_source))
        if const_lines is not None:
            constants.update(parse_constants(const_lines))

    return BuiltInCatalog(
        function_names=tuple(names),
        constants=frozenset(constants),
        keywords=frozenset(KEYWORDS),
        signatures=signatures,
        source=FALLBACK_SOURCE if degraded else path,
        degraded=degraded,
    )


# ═══════════════════════════════════════════════════════════════════════
#  Cache
# ═══════════════════════════════════════════════════════════════════════

class CatalogCache:
    """Holds the current catalog and replaces it whole when its source changes."""

    def __init__(self, source: Optional[str] = None, constants_source: Optional[str] = None):
        self.source = source
        self.constants_source = constants_source
        self._lock = threading.Lock()
        self._catalog: Optional[BuiltInCatalog] = None
        self._stamp: Optional[Tuple[Optional[float], Optional[float]]] = None

    def _current_stamp(self) -> Tuple[Optional[float], Optional[float]]:
        return (
            _mtime(self.source if self.source is not None else DEFAULT_API_PATH),
            _mtime(self.constants_source) if self.constants_source is not None else None,
        )

    def get(self) -> BuiltInCatalog:
        """Return the cached catalog, reloading it if the source file changed."""
        stamp = self._current_stamp()
        with self._lock:
            if self._catalog is None or stamp != self._stamp:
                if self._catalog is not None:
                    logger.info("Catalog source changed, reloading")
                self._catalog = load_catalog(self.source, self.constants_source)
                self._stamp = stamp
            return self._catalog

    def reload(self, source: Optional[str] = None, constants_source: Optional[str] = None) -> BuiltInCatalog:
        """Point the cache at (possibly new) sources and load them now."""
        with self._lock:
            if source is not None:
                self.source = source
            if constants_source is not None:
                self.constants_source = constants_source
            self._catalog = None
        return self.get()


def _mtime(path: Optional[str]) -> Optional[float]:
    if path is None:
        return None
    try:
        return os.path.getmtime(path)
    except OSError:
        return None
