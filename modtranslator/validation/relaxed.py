"""
Relaxed Validation Helpers

Normalisation used by the relaxed validation modes and the structure signature
(delimiters, URLs, paths, placeholders) enforced by RELAXED_XML_PLUS, including
the auto-heal that rebuilds a candidate around the source's structure tokens.
"""

import re
from typing import List, Optional, Tuple

LATEX_INLINE_RE = re.compile(r"\$[^$]+\$")
LATEX_DISPLAY_RE = re.compile(r"\\\[[^\]]+\\\]|\\\([^)]+\\\)")
LATEX_FRAC_RE = re.compile(r"\\frac\{[^}]+\}\{[^}]+\}")
LATEX_SUPERSCRIPT_RE = re.compile(r"\^[0-9A-Za-z]|\^\{[^}]+\}")
LATEX_SUBSCRIPT_RE = re.compile(r"_[0-9A-Za-z]|_\{[^}]+\}")
WHITESPACE_RE = re.compile(r"\s+")

STRUCTURE_TOKEN_RE = re.compile(
    r"""
    ⟦MT:[A-Z_]+:\d+⟧
    | \{[^{}]+\}
    | %\d+\$[sd]
    | %s
    | \$\d+
    | https?://[^\s<>"']+
    | file://[^\s<>"']+
    | [A-Za-z]:\\[^\s<>"']+
    | (?:\.\./|\./|/)?(?:[A-Za-z0-9_.-]+/)+[A-Za-z0-9_.-]+
    | &(?:[a-zA-Z]+|\#x?[0-9a-fA-F]+);
    | ->
    | =>
    | [|:;/()\[\]{}<>+\-*^_=±×÷°%]
    """,
    re.VERBOSE,
)


def strip_math_patterns(text: str) -> str:
    """Remove LaTeX inline/display blocks, fractions, super- and subscripts."""
    for pattern in (LATEX_INLINE_RE, LATEX_DISPLAY_RE, LATEX_FRAC_RE,
                    LATEX_SUPERSCRIPT_RE, LATEX_SUBSCRIPT_RE):
        text = pattern.sub("", text)
    return text


def normalize_whitespace(text: str) -> str:
    return WHITESPACE_RE.sub(" ", text).strip()


def normalize_for_comparison(text: str) -> str:
    return normalize_whitespace(strip_math_patterns(text))


Piece = Tuple[bool, str]  # (is_token, text)


def segment_text(text: str) -> List[Piece]:
    """Split text into alternating word runs and structure tokens."""
    pieces = []
    last = 0
    for match in STRUCTURE_TOKEN_RE.finditer(text):
        if match.start() > last:
            pieces.append((False, text[last:match.start()]))
        pieces.append((True, match.group(0)))
        last = match.end()
    if last < len(text):
        pieces.append((False, text[last:]))
    return pieces


def structure_signature(text: str) -> List[str]:
    return [value for is_token, value in segment_text(text) if is_token]


def _split_evenly(segment: str, count: int) -> List[str]:
    if count <= 0:
        return []
    if not segment:
        return [""] * count
    result = []
    index = 0
    total = len(segment)
    for slot in range(count):
        remaining_slots = count - slot
        chunk_len = -(-(total - index) // remaining_slots)  # ceiling division
        result.append(segment[index:index + chunk_len])
        index += chunk_len
    return result


def _split_exact(segment: str, count: int) -> List[str]:
    """Split on whitespace into ``count`` parts, falling back to even chunks."""
    if count <= 0:
        return []
    if count == 1:
        return [segment]

    parts = []
    current = ""
    remaining = count
    for char in segment:
        current += char
        if char.isspace() and current.strip() and remaining > 1:
            parts.append(current)
            current = ""
            remaining -= 1
    if current:
        parts.append(current)

    if len(parts) == count:
        return parts
    return _split_evenly(segment, count)


def align_translation_words(translated: str, slots: int) -> List[str]:
    """Distribute the translated word runs over ``slots`` source word slots."""
    if slots <= 0:
        return []

    words = [value for is_token, value in segment_text(translated) if not is_token] or [""]

    if len(words) == slots:
        return words

    if len(words) > slots:
        # Fold the surplus into the last slot
        head = words[:slots - 1]
        head.append("".join(words[slots - 1:]))
        return head

    result = []
    remaining_slots = slots
    remaining_words = len(words)
    for word in words:
        if remaining_slots == 0:
            break
        remaining_words -= 1
        if remaining_words == 0:
            slots_for_word = remaining_slots
        else:
            slots_for_word = max(remaining_slots - remaining_words, 1)
        for piece in _split_exact(word, slots_for_word):
            if remaining_slots == 0:
                break
            result.append(piece)
            remaining_slots -= 1

    while len(result) < slots:
        result.append("")
    return result


def _leading_ws(text: str) -> str:
    return text[:len(text) - len(text.lstrip())]


def _trailing_ws(text: str) -> str:
    return text[len(text.rstrip()):]


def restore_structure_tokens(source_raw: str, translated: str) -> Optional[str]:
    """
    Rebuild ``translated`` around the structure tokens of ``source_raw``.

    Source tokens are copied verbatim and the translated word runs are poured
    into the source's word slots, keeping the source's surrounding whitespace.

    Returns:
        The rebuilt string, or None when its signature still differs.
    """
    source_pieces = segment_text(source_raw)
    expected = structure_signature(source_raw)
    word_slots = sum(1 for is_token, _ in source_pieces if not is_token)

    if word_slots == 0:
        rebuilt = "".join(value for _, value in source_pieces)
        return rebuilt if structure_signature(rebuilt) == expected else None

    words = iter(align_translation_words(translated, word_slots))
    out = []
    for is_token, value in source_pieces:
        if is_token:
            out.append(value)
            continue
        word = next(words)
        leading = _leading_ws(value)
        trailing = _trailing_ws(value)
        if leading and not (word and word[0].isspace()):
            out.append(leading)
        out.append(word)
        if trailing and not (word and word[-1].isspace()):
            out.append(trailing)

    rebuilt = "".join(out)
    if structure_signature(rebuilt) != expected:
        return None
    return rebuilt
