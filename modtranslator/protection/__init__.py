"""
Protection module - Token masking and restoration

This module provides:
- patterns: Token classes, marker format and the immutable pattern table
- protector: Protector / ProtectedFragment (protect and restore)
- math_units: Math expression and unit detection
"""

from modtranslator.protection.patterns import (
    DEFAULT_PATTERN_TABLE,
    PatternTable,
    TokenClass,
    build_pattern_table,
    format_marker,
)

from modtranslator.protection.protector import (
    MissingTokensError,
    ProtectedFragment,
    Protector,
    ProtectorError,
    Token,
    TokenMap,
    UnexpectedTokensError,
    extract_markers,
    protect,
    restore,
)
