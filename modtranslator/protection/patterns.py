"""
Token Pattern Table

Defines the closed set of token classes, the sentinel marker wire format and the
ordered pattern table the protector scans with. The table is an immutable value
built once (see build_pattern_table) and handed to each Protector.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Tuple

from modtranslator.protection import math_units

MARKER_OPEN = "⟦"
MARKER_CLOSE = "⟧"
MARKER_PREFIX = MARKER_OPEN + "MT:"


class TokenClass(Enum):
    """Token classes; the value is the code used inside the sentinel marker."""

    # Format placeholders
    PRINTF = "PRINTF"              # %s, %d, %1$s
    DOTNET_BRACE = "DOTNET"        # {0}, {1:0.##}
    NAMED_BRACE = "NAMED"          # {name}, {PAWN_label}
    SHELL_VAR = "SHELL"            # $VAR, ${count}
    FACTORIO_MACRO = "FACTORIO"    # __1__, __ENTITY__iron-plate__
    FACTORIO_LINK = "FLINK"        # [img=item/iron-plate]
    ICU = "ICU"                    # {n, plural, one {...} other {...}}

    # Markup and colour
    TAG = "TAG"                    # <b>, </tag>
    BBCODE = "BBCODE"              # [b], [url]
    RIMWORLD_COLOR = "RWCOLOR"     # <color=#ff0000>, </color>
    MINECRAFT_COLOR = "MCCOLOR"    # §a
    RICH_TEXT = "RICHTEXT"         # <sprite=1>, <size=20>
    FACTORIO_COLOR = "FCOLOR"      # [color=red], [/color]

    # Resources and templates
    DOUBLE_BRACKET = "DBLBRACK"    # [[res]], <<macro>>
    MUSTACHE = "MUSTACHE"          # {{var}}

    # Numbers and units (opt-in)
    MATH_EXPR = "MATHEXPR"
    RANGE = "RANGE"
    PERCENT = "PERCENT"
    SCIENTIFIC = "SCIENTIFIC"
    UNIT = "UNIT"

    # Escapes and literals
    ESCAPED_BRACE = "ESCBRACE"     # {{ or }}
    ESCAPED_PERCENT = "ESCPCT"     # %%
    ENTITY = "ENTITY"              # &nbsp; &#160;
    ESCAPE = "ESCAPE"              # \n \t \r

    # Legacy classes, still accepted in markers
    ATTR = "ATTR"
    KEY = "KEY"
    PIPE = "PIPE"
    IDPATH = "IDPATH"

    @property
    def code(self) -> str:
        return self.value

    @classmethod
    def from_code(cls, code: str) -> "TokenClass":
        return cls(code)


# Classes whose markers come in open/close pairs
PAIRABLE_CLASSES = frozenset({
    TokenClass.TAG,
    TokenClass.RIMWORLD_COLOR,
    TokenClass.RICH_TEXT,
    TokenClass.BBCODE,
    TokenClass.FACTORIO_COLOR,
})

# Any marker-shaped text, known class or not
MARKER_RE = re.compile(r"⟦MT:([A-Z_]+):([0-9]+)⟧")

# Markers restricted to the closed class list
PROTECTED_MARKER_RE = re.compile(
    r"⟦MT:(" + "|".join(tc.code for tc in TokenClass) + r"):(\d+)⟧"
)


def format_marker(token_class: TokenClass, index: int) -> str:
    return f"{MARKER_PREFIX}{token_class.code}:{index}{MARKER_CLOSE}"


ICU_HEAD_RE = re.compile(r"\{[A-Za-z_][A-Za-z0-9_]*,\s*(?:plural|select|selectordinal)\s*,")
MUSTACHE_RE = re.compile(r"\{\{[^{}]+\}\}")
DOUBLE_BRACKET_RE = re.compile(r"\[\[[^\]]+\]\]|<<[^<>]+>>")
RIMWORLD_COLOR_RE = re.compile(r"</?(?:color(?:=#[0-9A-Fa-f]{6,8})?|b|i)>")
RICH_TEXT_RE = re.compile(r"</?(?:color|size|sprite|material)(?:=[^>]+)?>")
MINECRAFT_COLOR_RE = re.compile(r"§[0-9A-FK-ORa-fk-or]")
TAG_RE = re.compile(r"<[^<>]+>")
FACTORIO_LINK_RE = re.compile(r"\[(?:img|item|entity|technology|virtual-signal)=[^\]]+\]")
FACTORIO_COLOR_RE = re.compile(r"\[/?color(?:=[^\]]+)?\]")
BBCODE_RE = re.compile(r"\[/?(?:b|i|u|s|url(?:=[^\]]+)?|img|color=[^\]]+|size=\d+)\]")
ESCAPED_PERCENT_RE = re.compile(r"%%")
ESCAPED_BRACE_RE = re.compile(r"\{\{|\}\}")
FACTORIO_MACRO_RE = re.compile(r"__(?:[A-Z]+(?:__[A-Za-z0-9_\-.]+__)?|[0-9]+__)")
PRINTF_RE = re.compile(r"%(?:\d+\$)?[-+#0]*\d*(?:\.\d+)?[sdifuxXoScp]")
DOTNET_BRACE_RE = re.compile(r"\{[0-9]+(?::[^{}]+)?\}")
NAMED_BRACE_RE = re.compile(r"\{[A-Za-z_][A-Za-z0-9_]*\}")
SHELL_VAR_RE = re.compile(r"\$\{[A-Za-z_][A-Za-z0-9_]*\}|\$[A-Za-z_][A-Za-z0-9_]*")
ENTITY_RE = re.compile(r"&(?:[a-zA-Z]+|#x?[0-9a-fA-F]+);")
ESCAPE_RE = re.compile(r"\\[ntr]")
PIPE_RE = re.compile(r"\|")
IDPATH_RE = re.compile(r"[A-Za-z0-9_.-]+/(?:[A-Za-z0-9_.-]+/?)+")


def _balanced_end(text: str, start: int) -> int:
    """Return the index after the brace that closes the one at ``start``, or -1."""
    depth = 0
    for pos in range(start, len(text)):
        char = text[pos]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return pos + 1
    return -1


@dataclass(frozen=True)
class PatternRule:
    """One entry of the pattern table.

    When ``balanced`` is set the regex only locates the head of the construct and
    the span is extended to the matching closing brace, so nested ICU branches
    are claimed as a single unit.
    """

    token_class: TokenClass
    pattern: re.Pattern
    balanced: bool = False

    def spans(self, text: str) -> Iterator[Tuple[int, int]]:
        if not self.balanced:
            for match in self.pattern.finditer(text):
                if match.end() > match.start():
                    yield match.start(), match.end()
            return

        pos = 0
        while True:
            match = self.pattern.search(text, pos)
            if match is None:
                return
            end = _balanced_end(text, match.start())
            if end == -1:
                # Unterminated block; leave it to the generic brace patterns
                pos = match.end()
                continue
            yield match.start(), end
            pos = end


@dataclass(frozen=True)
class PatternTable:
    """Ordered, immutable pattern table. Earlier rules win overlapping spans."""

    rules: Tuple[PatternRule, ...]

    def __iter__(self) -> Iterator[PatternRule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    @property
    def token_classes(self) -> Tuple[TokenClass, ...]:
        return tuple(rule.token_class for rule in self.rules)


MATH_UNIT_RULES = (
    PatternRule(TokenClass.SCIENTIFIC, math_units.SCIENTIFIC_RE),
    PatternRule(TokenClass.PERCENT, math_units.PERCENT_RE),
    PatternRule(TokenClass.RANGE, math_units.RANGE_RE),
    PatternRule(TokenClass.UNIT, math_units.UNIT_RE),
    PatternRule(TokenClass.MATH_EXPR, math_units.MATH_EXPR_RE),
)


def build_pattern_table(
    protect_math_units: bool = False,
    units: Optional[math_units.UnitDictionary] = None,
) -> PatternTable:
    """
    Build the protector's pattern table.

    Rules run most structurally specific first: ICU blocks, template double
    braces, rich text and colour tags, generic angle tags, bracket markup,
    placeholders, entities, escapes, pipes and finally path-like identifiers.

    Args:
        protect_math_units: Also protect math expressions, ranges, percentages,
            scientific notation and numbers with units.
        units: Unit dictionary for the number-with-unit rule; defaults to the
            built-in protected units.

    Returns:
        PatternTable
    """
    rules = [
        PatternRule(TokenClass.ICU, ICU_HEAD_RE, balanced=True),
        PatternRule(TokenClass.MUSTACHE, MUSTACHE_RE),
        PatternRule(TokenClass.DOUBLE_BRACKET, DOUBLE_BRACKET_RE),
        PatternRule(TokenClass.RIMWORLD_COLOR, RIMWORLD_COLOR_RE),
        PatternRule(TokenClass.RICH_TEXT, RICH_TEXT_RE),
        PatternRule(TokenClass.MINECRAFT_COLOR, MINECRAFT_COLOR_RE),
        PatternRule(TokenClass.TAG, TAG_RE),
        PatternRule(TokenClass.FACTORIO_LINK, FACTORIO_LINK_RE),
        PatternRule(TokenClass.FACTORIO_COLOR, FACTORIO_COLOR_RE),
        PatternRule(TokenClass.BBCODE, BBCODE_RE),
        # %% must be claimed before printf sees its second percent sign
        PatternRule(TokenClass.ESCAPED_PERCENT, ESCAPED_PERCENT_RE),
        PatternRule(TokenClass.ESCAPED_BRACE, ESCAPED_BRACE_RE),
        PatternRule(TokenClass.FACTORIO_MACRO, FACTORIO_MACRO_RE),
        PatternRule(TokenClass.PRINTF, PRINTF_RE),
        PatternRule(TokenClass.DOTNET_BRACE, DOTNET_BRACE_RE),
        PatternRule(TokenClass.NAMED_BRACE, NAMED_BRACE_RE),
        PatternRule(TokenClass.SHELL_VAR, SHELL_VAR_RE),
    ]
    if protect_math_units:
        math_rules = list(MATH_UNIT_RULES)
        if units is not None:
            math_rules = [
                PatternRule(TokenClass.UNIT, math_units.build_unit_pattern(units))
                if rule.token_class == TokenClass.UNIT else rule
                for rule in math_rules
            ]
        rules.extend(math_rules)
    rules.extend([
        PatternRule(TokenClass.ENTITY, ENTITY_RE),
        PatternRule(TokenClass.ESCAPE, ESCAPE_RE),
        PatternRule(TokenClass.PIPE, PIPE_RE),
        PatternRule(TokenClass.IDPATH, IDPATH_RE),
    ])
    return PatternTable(rules=tuple(rules))


DEFAULT_PATTERN_TABLE = build_pattern_table()
