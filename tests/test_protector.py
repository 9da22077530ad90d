import dataclasses
import hashlib

import pytest

from modtranslator.protection import (
    DEFAULT_PATTERN_TABLE,
    MissingTokensError,
    ProtectorError,
    Protector,
    TokenClass,
    UnexpectedTokensError,
    build_pattern_table,
    extract_markers,
    format_marker,
    protect,
    restore,
)


ROUND_TRIP_SAMPLES = [
    "",
    "Plain text without tokens",
    "Deal {0} damage to <b>{target}</b>",
    "You have {count, plural, one {# item} other {# items}} left.",
    "Loaded %d of %s files (%1$s)",
    "<color=#ff0000>Warning</color>: {PAWN_nameDef} is hungry",
    "__1__ needs [item=iron-plate] and [color=red]power[/color]",
    "§aGreen §rreset",
    "Line one\\nLine two | next",
    "Use {{name}} or [[Resource]] with &nbsp; and %%",
    "Path: textures/ui/icon.png costs ${cost}",
    "깨진 <b>태그 {0}",
]


@pytest.mark.parametrize("text", ROUND_TRIP_SAMPLES)
def test_restore_of_untouched_mask_returns_original(text):
    fragment = protect(text)
    assert restore(fragment, fragment.masked) == text


def test_markers_are_numbered_in_source_order():
    fragment = protect("Deal {0} damage to <b>{target}</b>")

    assert fragment.masked == (
        "Deal ⟦MT:DOTNET:0⟧ damage to ⟦MT:RWCOLOR:1⟧⟦MT:NAMED:2⟧⟦MT:RWCOLOR:3⟧"
    )
    assert [token.token_class for token in fragment.tokens] == [
        TokenClass.DOTNET_BRACE,
        TokenClass.RIMWORLD_COLOR,
        TokenClass.NAMED_BRACE,
        TokenClass.RIMWORLD_COLOR,
    ]
    assert [token.id for token in fragment.tokens] == ["T0000", "T0001", "T0002", "T0003"]
    assert fragment.tokens[0].span == (5, 8)
    assert fragment.tokens[2].value == "{target}"


def test_token_map_carries_content_hash():
    text = "Deal {0} damage"
    fragment = protect(text)
    assert fragment.token_map.content_hash == hashlib.sha256(text.encode("utf-8")).hexdigest()
    assert fragment.to_dict()["tokenMap"]["contentHash"] == fragment.token_map.content_hash


def test_icu_block_is_one_token():
    fragment = protect("You have {count, plural, one {# item} other {# items}} left.")
    assert fragment.masked == "You have ⟦MT:ICU:0⟧ left."
    assert fragment.tokens[0].value == "{count, plural, one {# item} other {# items}}"


def test_unterminated_icu_falls_back_to_brace_patterns():
    fragment = protect("Broken {count, plural, one {#}")
    assert TokenClass.ICU not in [token.token_class for token in fragment.tokens]
    assert restore(fragment, fragment.masked) == "Broken {count, plural, one {#}"


def test_printf_and_escaped_percent():
    fragment = protect("Loaded %d of %s files (%1$s)")
    assert fragment.masked == "Loaded ⟦MT:PRINTF:0⟧ of ⟦MT:PRINTF:1⟧ files (⟦MT:PRINTF:2⟧)"

    fragment = protect("50% of %%")
    assert fragment.masked == "50% of ⟦MT:ESCPCT:0⟧"


def test_factorio_macro_and_link():
    fragment = protect("__1__ needs [item=iron-plate]")
    assert fragment.masked == "⟦MT:FACTORIO:0⟧ needs ⟦MT:FLINK:1⟧"


def test_colour_tags_win_over_generic_tags():
    fragment = protect("<color=#ff0000>Warning</color>")
    assert [token.token_class for token in fragment.tokens] == [
        TokenClass.RIMWORLD_COLOR,
        TokenClass.RIMWORLD_COLOR,
    ]

    fragment = protect("<size=20>Big</size>")
    assert [token.token_class for token in fragment.tokens] == [TokenClass.RICH_TEXT, TokenClass.RICH_TEXT]

    fragment = protect("<link>x</link>")
    assert [token.token_class for token in fragment.tokens] == [TokenClass.TAG, TokenClass.TAG]


def test_minecraft_colour_codes_and_escapes():
    assert protect("§aGreen §rreset").masked == "⟦MT:MCCOLOR:0⟧Green ⟦MT:MCCOLOR:1⟧reset"
    assert protect("Line one\\nLine two").masked == "Line one⟦MT:ESCAPE:0⟧Line two"


def test_math_units_are_opt_in():
    text = "Latency 16 ms at 60 FPS"
    assert protect(text).masked == text

    table = build_pattern_table(protect_math_units=True)
    fragment = Protector(table).protect(text)
    assert fragment.masked == "Latency ⟦MT:UNIT:0⟧ at ⟦MT:UNIT:1⟧"
    assert restore(fragment, fragment.masked) == text


def test_reordered_markers_restore():
    fragment = protect("Deal {0} damage to <b>{target}</b>")
    candidate = "⟦MT:RWCOLOR:1⟧⟦MT:NAMED:2⟧⟦MT:RWCOLOR:3⟧에게 ⟦MT:DOTNET:0⟧ 피해"
    assert fragment.restore(candidate) == "<b>{target}</b>에게 {0} 피해"


def test_missing_marker_is_reported():
    fragment = protect("Use {0} and keep it.")
    marker = "⟦MT:DOTNET:0⟧"
    assert fragment.masked == f"Use {marker} and keep it."

    with pytest.raises(MissingTokensError) as excinfo:
        fragment.restore(fragment.masked.replace(marker, ""))

    assert excinfo.value.markers == [marker]
    assert excinfo.value.code == "MISSING_TOKENS"


def test_unknown_marker_is_reported():
    fragment = protect("Use {0} and keep it.")
    stray = "⟦MT:DOTNET:9⟧"

    with pytest.raises(UnexpectedTokensError) as excinfo:
        fragment.restore(fragment.masked + " " + stray)

    assert excinfo.value.markers == [stray]
    assert excinfo.value.missing == []
    assert isinstance(excinfo.value, ProtectorError)


def test_unexpected_takes_precedence_over_missing():
    fragment = protect("Use {0} now")
    with pytest.raises(UnexpectedTokensError) as excinfo:
        fragment.restore("⟦MT:BOGUS:0⟧ 사용")
    assert excinfo.value.markers == ["⟦MT:BOGUS:0⟧"]
    assert excinfo.value.missing == ["⟦MT:DOTNET:0⟧"]


def test_extract_markers_and_format_marker():
    marker = format_marker(TokenClass.TAG, 3)
    assert marker == "⟦MT:TAG:3⟧"
    assert extract_markers(f"a {marker} b ⟦MT:X:1⟧") == [marker, "⟦MT:X:1⟧"]


def test_pattern_table_is_immutable_and_ordered():
    classes = DEFAULT_PATTERN_TABLE.token_classes
    assert classes[0] == TokenClass.ICU
    assert classes[-1] == TokenClass.IDPATH
    assert TokenClass.UNIT not in classes

    with pytest.raises(dataclasses.FrozenInstanceError):
        DEFAULT_PATTERN_TABLE.rules = ()
