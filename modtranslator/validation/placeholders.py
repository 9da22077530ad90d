"""
Placeholder inventories and validation segments.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from modtranslator.protection.patterns import PROTECTED_MARKER_RE
from modtranslator.protection.protector import ProtectedFragment

FORMAT_TOKEN_RE = re.compile(r"\{(\d+)\}")


@dataclass
class PlaceholderSet:
    """Protected markers and ``{n}`` format tokens found in a string.

    Keeps both the ordered lists and their multiset counts.
    """

    protected: List[str] = field(default_factory=list)
    format: List[str] = field(default_factory=list)
    protected_counts: Counter = field(default_factory=Counter)
    format_counts: Counter = field(default_factory=Counter)

    @classmethod
    def from_text(cls, text: str) -> "PlaceholderSet":
        protected = [m.group(0) for m in PROTECTED_MARKER_RE.finditer(text)]
        format_tokens = [m.group(0) for m in FORMAT_TOKEN_RE.finditer(text)]
        return cls(
            protected=protected,
            format=format_tokens,
            protected_counts=Counter(protected),
            format_counts=Counter(format_tokens),
        )

    def matches_multiset(self, other: "PlaceholderSet") -> bool:
        return (self.protected_counts == other.protected_counts
                and self.format_counts == other.format_counts)

    def matches_order(self, other: "PlaceholderSet") -> bool:
        return self.protected == other.protected and self.format == other.format

    def missing_protected(self, found: "PlaceholderSet") -> List[str]:
        """Expected markers under-counted in ``found``, one entry per missing copy."""
        return _shortfall(self.protected, self.protected_counts, found.protected_counts)

    def excess_protected(self, found: "PlaceholderSet") -> List[str]:
        """Markers over-counted in ``found``, one entry per extra copy."""
        return _shortfall(found.protected, found.protected_counts, self.protected_counts)

    def missing_format(self, found: "PlaceholderSet") -> List[str]:
        return _shortfall(self.format, self.format_counts, found.format_counts)


def _shortfall(ordered: List[str], have: Counter, other: Counter) -> List[str]:
    result = []
    surplus = {token: have[token] - other.get(token, 0) for token in have}
    for token in ordered:
        if surplus.get(token, 0) > 0:
            result.append(token)
            surplus[token] -= 1
    return result


class FileFormat(Enum):
    XML = "xml"
    JSON = "json"
    CFG = "cfg"
    INI = "ini"
    PO = "po"
    YAML = "yaml"
    CSV = "csv"
    TXT = "txt"
    MARKDOWN = "markdown"
    PROPERTIES = "properties"
    LUA = "lua"
    UNKNOWN = "unknown"

    @classmethod
    def from_extension(cls, filename: str) -> "FileFormat":
        suffix = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        aliases = {"yml": cls.YAML, "md": cls.MARKDOWN, "pot": cls.PO}
        if suffix in aliases:
            return aliases[suffix]
        try:
            return cls(suffix)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class Segment:
    """One translatable unit. ``expected`` is derived from the preprocessed source."""

    file: str
    line: int
    key: str
    source_raw: str
    source_preprocessed: str
    format: Optional[FileFormat] = None
    token_types: List[str] = field(default_factory=list)
    expected: PlaceholderSet = field(init=False)

    def __post_init__(self):
        self.expected = PlaceholderSet.from_text(self.source_preprocessed)

    @classmethod
    def from_fragment(
        cls,
        fragment: ProtectedFragment,
        file: str = "",
        line: int = 0,
        key: str = "",
        format: Optional[FileFormat] = None,
    ) -> "Segment":
        token_types = sorted({token.token_class.code for token in fragment.tokens})
        return cls(
            file=file,
            line=line,
            key=key,
            source_raw=fragment.original,
            source_preprocessed=fragment.masked,
            format=format,
            token_types=token_types,
        )
