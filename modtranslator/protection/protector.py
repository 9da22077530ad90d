"""
Token Protection and Restoration Module

Masks non-translatable spans (placeholders, markup, ICU blocks, escapes...) with
sentinel markers of the form ``⟦MT:<CLASS>:<index>⟧`` before text is sent to a
translation provider, and puts the original values back afterwards.

Example:
    >>> fragment = protect("Deal {0} damage to <b>{target}</b>")
    >>> fragment.masked
    'Deal ⟦MT:DOTNET:0⟧ damage to ⟦MT:RWCOLOR:1⟧⟦MT:NAMED:2⟧⟦MT:RWCOLOR:3⟧'
    >>> fragment.restore(fragment.masked)
    'Deal {0} damage to <b>{target}</b>'
"""

import hashlib
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from modtranslator.logger import get_logger
from modtranslator.protection.patterns import (
    DEFAULT_PATTERN_TABLE,
    MARKER_RE,
    PatternTable,
    TokenClass,
    format_marker,
)

logger = get_logger(__name__)


class ProtectorError(Exception):
    """Base class for restoration failures."""

    code = "PROTECTOR_ERROR"

    def __init__(self, message: str, markers: List[str]):
        super().__init__(message)
        self.markers = list(markers)


class MissingTokensError(ProtectorError):
    """One or more markers emitted by protect() are absent from the candidate."""

    code = "MISSING_TOKENS"

    def __init__(self, markers: List[str]):
        super().__init__(f"missing tokens: {markers}", markers)


class UnexpectedTokensError(ProtectorError):
    """The candidate contains markers protect() never emitted.

    ``missing`` lists markers that were also absent, if any.
    """

    code = "UNEXPECTED_TOKENS"

    def __init__(self, markers: List[str], missing: Optional[List[str]] = None):
        super().__init__(f"unexpected tokens: {markers}", markers)
        self.missing = list(missing or [])


@dataclass(frozen=True)
class Token:
    token_class: TokenClass
    span: Tuple[int, int]
    value: str
    marker: str
    id: str

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "class": self.token_class.code,
            "span": list(self.span),
            "value": self.value,
            "marker": self.marker,
        }


@dataclass(frozen=True)
class TokenMap:
    content_hash: str
    tokens: Tuple[Token, ...] = ()

    def to_dict(self) -> Dict:
        return {
            "contentHash": self.content_hash,
            "tokens": [token.to_dict() for token in self.tokens],
        }


def compute_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def extract_markers(text: str) -> List[str]:
    """Return every marker-shaped substring of ``text`` in order."""
    return [match.group(0) for match in MARKER_RE.finditer(text)]


@dataclass
class ProtectedFragment:
    original: str
    masked: str
    token_map: TokenMap
    _by_marker: Dict[str, Token] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        self._by_marker = {token.marker: token for token in self.token_map.tokens}

    @property
    def tokens(self) -> Tuple[Token, ...]:
        return self.token_map.tokens

    @property
    def markers(self) -> List[str]:
        return [token.marker for token in self.token_map.tokens]

    def restore(self, candidate: str) -> str:
        """
        Substitute original values back into a (translated) masked string.

        Unknown markers are copied through untouched so the failure can be shown
        to the user, then reported.

        Raises:
            UnexpectedTokensError: candidate holds markers this fragment never emitted
            MissingTokensError: markers emitted by protect() are absent
        """
        seen = set()
        unexpected = []
        output = []
        cursor = 0
        for match in MARKER_RE.finditer(candidate):
            output.append(candidate[cursor:match.start()])
            marker = match.group(0)
            token = self._by_marker.get(marker)
            if token is None:
                unexpected.append(marker)
                output.append(marker)
            else:
                seen.add(marker)
                output.append(token.value)
            cursor = match.end()
        output.append(candidate[cursor:])

        missing = [token.marker for token in self.token_map.tokens if token.marker not in seen]

        if unexpected:
            logger.debug(f"Restore found {len(unexpected)} unexpected marker(s): {unexpected}")
            raise UnexpectedTokensError(unexpected, missing)
        if missing:
            logger.debug(f"Restore is missing {len(missing)} marker(s): {missing}")
            raise MissingTokensError(missing)

        return "".join(output)

    def to_dict(self) -> Dict:
        return {
            "original": self.original,
            "masked": self.masked,
            "tokenMap": self.token_map.to_dict(),
        }


class Protector:
    """Masks protectable spans using an immutable pattern table."""

    def __init__(self, table: Optional[PatternTable] = None):
        self.table = table or DEFAULT_PATTERN_TABLE

    def protect(self, text: str) -> ProtectedFragment:
        if not text:
            return ProtectedFragment(original=text, masked="", token_map=TokenMap(compute_hash(text)))

        occupied = [False] * len(text)
        accepted: List[Tuple[int, int, TokenClass]] = []

        for rule in self.table:
            for start, end in rule.spans(text):
                if any(occupied[start:end]):
                    continue
                for pos in range(start, end):
                    occupied[pos] = True
                accepted.append((start, end, rule.token_class))

        accepted.sort(key=lambda item: item[0])

        tokens = []
        pieces = []
        cursor = 0
        for index, (start, end, token_class) in enumerate(accepted):
            marker = format_marker(token_class, index)
            tokens.append(Token(
                token_class=token_class,
                span=(start, end),
                value=text[start:end],
                marker=marker,
                id=f"T{index:04d}",
            ))
            pieces.append(text[cursor:start])
            pieces.append(marker)
            cursor = end
        pieces.append(text[cursor:])

        return ProtectedFragment(
            original=text,
            masked="".join(pieces),
            token_map=TokenMap(content_hash=compute_hash(text), tokens=tuple(tokens)),
        )


_default_protector = Protector()


def protect(text: str, table: Optional[PatternTable] = None) -> ProtectedFragment:
    """Protect ``text`` with the given pattern table (default table if omitted)."""
    if table is None:
        return _default_protector.protect(text)
    return Protector(table).protect(text)


def restore(fragment: ProtectedFragment, candidate: str) -> str:
    """Module-level shortcut for ``fragment.restore(candidate)``."""
    return fragment.restore(candidate)
