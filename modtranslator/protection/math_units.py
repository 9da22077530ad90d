"""
Math Expressions and Units Module

Patterns and helpers for numeric content that should survive translation verbatim:
- Arithmetic expressions (3.14 × r^2, (a+b)/2)
- Ranges (10-20, 5~10)
- Percentages (50%, {0}%)
- Scientific notation (1.5e10, 3 × 10^8)
- Numbers with units (16 ms, 60 FPS, 4 GB)

The regexes are shared with the protector's optional math/unit token classes.
"""

import re
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

MATH_EXPR_RE = re.compile(
    r"""
    \d+(?:\.\d+)?                                  # number
    \s*[+\-×*÷/^=≠≈≤≥<>]\s*                        # operator
    \d+(?:\.\d+)?                                  # another number
    (?:\s*[+\-×*÷/^=≠≈≤≥<>]\s*\d+(?:\.\d+)?)*      # additional terms
    |
    \([^)]+[+\-×*÷/^=≠≈≤≥<>][^)]+\)                # parenthesised expression
    """,
    re.VERBOSE,
)

RANGE_RE = re.compile(r"\d+(?:\.\d+)?\s*[~\-–]\s*\d+(?:\.\d+)?(?:\s*[a-zA-Z°%]+)?")

PERCENT_RE = re.compile(r"\d+(?:\.\d+)?%|\{\d+\}%|\d+\s*[‒\-–]\s*\d+%")

SCIENTIFIC_RE = re.compile(
    r"\d+(?:\.\d+)?[eE][+\-]?\d+|\d+(?:\.\d+)?\s*[×x]\s*10\^[\d\-]+|10\^\d+|10\^[a-z]"
)


class UnitCategory(Enum):
    TIME = "time"
    DISTANCE = "distance"
    DATA = "data"
    TEMPERATURE = "temperature"
    SPEED = "speed"
    DISPLAY = "display"
    FREQUENCY = "frequency"
    OTHER = "other"


DEFAULT_UNITS = {
    UnitCategory.TIME: {"ms", "s", "sec", "m", "min", "h", "hr", "d", "day"},
    UnitCategory.DISTANCE: {"mm", "cm", "m", "km", "in", "ft", "yd", "mi"},
    UnitCategory.DATA: {"B", "KB", "MB", "GB", "TB", "PB"},
    UnitCategory.TEMPERATURE: {"°C", "°F", "°K", "K"},
    UnitCategory.SPEED: {"m/s", "km/h", "mph", "fps", "FPS"},
    UnitCategory.DISPLAY: {"px", "pt", "em", "rem", "vh", "vw"},
    UnitCategory.FREQUENCY: {"Hz", "kHz", "MHz", "GHz"},
    UnitCategory.OTHER: {"°", "%"},
}


class UnitDictionary:
    """Known units grouped by category."""

    def __init__(self, units: Optional[Dict[UnitCategory, Set[str]]] = None):
        source = DEFAULT_UNITS if units is None else units
        self.units: Dict[UnitCategory, Set[str]] = {
            category: set(source.get(category, ())) for category in UnitCategory
        }

    def contains(self, unit: str) -> bool:
        return any(unit in members for members in self.units.values())

    def add_unit(self, unit: str, category: UnitCategory) -> None:
        self.units[category].add(unit)

    def categories_of(self, unit: str) -> List[UnitCategory]:
        """Return every category a unit belongs to ("m" is both time and distance)."""
        return [category for category, members in self.units.items() if unit in members]

    def all_units(self) -> Set[str]:
        return set().union(*self.units.values())


# Units safe to protect after a number; one-letter units read as words too often
PROTECTED_UNITS = {
    UnitCategory.TIME: {"ms"},
    UnitCategory.DATA: {"KB", "MB", "GB", "TB"},
    UnitCategory.TEMPERATURE: {"°C", "°F"},
    UnitCategory.SPEED: {"km/h", "m/s", "fps", "FPS"},
    UnitCategory.DISPLAY: {"px", "pt", "em", "rem"},
    UnitCategory.FREQUENCY: {"Hz", "kHz", "MHz"},
    UnitCategory.OTHER: {"°"},
}


def protected_unit_dictionary() -> UnitDictionary:
    return UnitDictionary(PROTECTED_UNITS)


def build_unit_pattern(units: UnitDictionary) -> re.Pattern:
    """
    Compile the number-with-unit regex for a dictionary.

    Longer units are tried first so ``°C`` wins over ``°``. ``%`` is left to the
    percentage rule.
    """
    names = sorted((unit for unit in units.all_units() if unit != "%"), key=lambda u: (-len(u), u))
    if not names:
        return re.compile(r"(?!)")
    alternatives = "|".join(re.escape(unit) for unit in names)
    return re.compile(rf"\d+(?:\.\d+)?\s*(?:{alternatives})(?![A-Za-z])")


UNIT_RE = build_unit_pattern(protected_unit_dictionary())


Span = Tuple[int, int, str]


def _find(pattern: re.Pattern, text: str) -> List[Span]:
    return [(m.start(), m.end(), m.group(0)) for m in pattern.finditer(text)]


class MathUnitDetector:
    """Detects mathematical expressions and numeric patterns in text."""

    def __init__(self, unit_dict: Optional[UnitDictionary] = None):
        self.unit_dict = unit_dict or protected_unit_dictionary()
        self.unit_re = build_unit_pattern(self.unit_dict)

    def has_math_expr(self, text: str) -> bool:
        return MATH_EXPR_RE.search(text) is not None

    def has_range(self, text: str) -> bool:
        return RANGE_RE.search(text) is not None

    def has_percent(self, text: str) -> bool:
        return PERCENT_RE.search(text) is not None

    def has_scientific(self, text: str) -> bool:
        return SCIENTIFIC_RE.search(text) is not None

    def has_units(self, text: str) -> bool:
        return self.unit_re.search(text) is not None

    def find_math_exprs(self, text: str) -> List[Span]:
        return _find(MATH_EXPR_RE, text)

    def find_ranges(self, text: str) -> List[Span]:
        return _find(RANGE_RE, text)

    def find_percents(self, text: str) -> List[Span]:
        return _find(PERCENT_RE, text)

    def find_scientific(self, text: str) -> List[Span]:
        return _find(SCIENTIFIC_RE, text)

    def find_units(self, text: str) -> List[Span]:
        return _find(self.unit_re, text)
