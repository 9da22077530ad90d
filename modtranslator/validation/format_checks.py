"""
Format Checks Module

Structural checks run on a restored string, after placeholder validation has
passed, to catch damage to the surrounding syntax:
- JSON / YAML: must parse
- XML: balanced tags
- PO: msgid/msgstr pairing
- ICU: balanced braces
- INI/CFG, properties: key=value shape, valid \\uXXXX escapes
- CSV: consistent column count
- Markdown: balanced code fences
- Lua: balanced string literals
"""

import csv
import io
import json
import re
from typing import Callable, Dict

import yaml

from modtranslator.logger import get_logger
from modtranslator.validation.placeholders import FileFormat

logger = get_logger(__name__)


class FormatValidationError(Exception):
    """A restored string is not well-formed for its declared syntax."""

    def __init__(self, kind: str, message: str):
        super().__init__(f"{kind}: {message}")
        self.kind = kind
        self.message = message


def validate_json(content: str) -> None:
    try:
        json.loads(content)
    except json.JSONDecodeError as e:
        raise FormatValidationError("json", str(e)) from e


XML_TAG_RE = re.compile(r"<(/?)([A-Za-z_][\w:.\-]*)[^<>]*?(/?)>")
XML_SKIP_RE = re.compile(r"<!--.*?-->|<!\[CDATA\[.*?\]\]>|<![^>]*>|<\?.*?\?>", re.DOTALL)


def validate_xml(content: str) -> None:
    """Check that opening and closing tags balance; comments, CDATA and PIs are skipped."""
    stack = []
    for match in XML_TAG_RE.finditer(XML_SKIP_RE.sub("", content)):
        closing, name, self_closing = match.groups()
        if self_closing:
            continue
        if closing:
            if not stack:
                raise FormatValidationError("xml", f"Unexpected closing tag: {name}")
            expected = stack.pop()
            if expected != name:
                raise FormatValidationError("xml", f"Tag mismatch: expected </{expected}> but got </{name}>")
        else:
            stack.append(name)
    if stack:
        raise FormatValidationError("xml", f"Unclosed tags: {stack}")


def validate_yaml(content: str) -> None:
    try:
        yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise FormatValidationError("yaml", str(e)) from e


def validate_po(content: str) -> None:
    """Every msgid must be followed by a msgstr (msgid_plural/msgstr[n] allowed)."""
    awaiting_msgstr = False
    for number, line in enumerate(content.splitlines(), start=1):
        stripped = line.strip()
        if stripped.startswith("msgid_plural"):
            continue
        if stripped.startswith("msgid"):
            if awaiting_msgstr:
                raise FormatValidationError("po", f"msgid without matching msgstr before line {number}")
            awaiting_msgstr = True
        elif stripped.startswith("msgstr"):
            if not awaiting_msgstr and not stripped.startswith("msgstr["):
                raise FormatValidationError("po", f"msgstr without preceding msgid at line {number}")
            awaiting_msgstr = False
    if awaiting_msgstr:
        raise FormatValidationError("po", "Incomplete msgid/msgstr pair at end of file")


def validate_icu(content: str) -> None:
    depth = 0
    for char in content:
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth < 0:
                raise FormatValidationError("icu", "Unbalanced closing brace")
    if depth != 0:
        raise FormatValidationError("icu", f"Unbalanced braces: {depth} unclosed")


def validate_ini(content: str) -> None:
    for number, line in enumerate(content.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped[0] in "#;":
            continue
        if stripped.startswith("["):
            if not stripped.endswith("]"):
                raise FormatValidationError("ini", f"Malformed section header at line {number}: {line}")
            continue
        if "=" not in stripped:
            raise FormatValidationError("ini", f"Invalid line at {number}: expected key=value or [section]")


def validate_csv(content: str) -> None:
    """All rows must have as many columns as the first one (quoted commas respected)."""
    try:
        rows = [row for row in csv.reader(io.StringIO(content)) if row]
    except csv.Error as e:
        raise FormatValidationError("csv", str(e)) from e
    if not rows:
        return
    expected = len(rows[0])
    for number, row in enumerate(rows, start=1):
        if len(row) != expected:
            raise FormatValidationError(
                "csv", f"Column count mismatch at row {number}: expected {expected}, got {len(row)}"
            )


def validate_markdown(content: str) -> None:
    fences = sum(
        1 for line in content.splitlines()
        if line.strip().startswith("```") or line.strip().startswith("~~~")
    )
    if fences % 2:
        raise FormatValidationError("markdown", "Unbalanced code fences")


UNICODE_ESCAPE_RE = re.compile(r"\\u(?![0-9A-Fa-f]{4})")


def validate_properties(content: str) -> None:
    for number, line in enumerate(content.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped[0] in "#!":
            continue
        # Continuation lines start with whitespace
        if "=" not in stripped and ":" not in stripped and not line[:1].isspace():
            raise FormatValidationError("properties", f"Invalid line at {number}: expected key=value or key:value")
        if UNICODE_ESCAPE_RE.search(line.replace("\\\\", "")):
            raise FormatValidationError(
                "properties", f"Invalid unicode escape at line {number}: \\u must be followed by 4 hex digits"
            )


def validate_lua(content: str) -> None:
    """String literals must be closed; ``--`` comments outside strings are skipped."""
    quote = None
    i = 0
    length = len(content)
    while i < length:
        char = content[i]
        if quote is None:
            if content.startswith("--", i):
                newline = content.find("\n", i)
                i = length if newline == -1 else newline + 1
                continue
            if char in "\"'":
                quote = char
        elif char == "\\":
            i += 2
            continue
        elif char == quote:
            quote = None
        i += 1
    if quote is not None:
        raise FormatValidationError("lua", "Unbalanced string literals")


FORMAT_VALIDATORS: Dict[FileFormat, Callable[[str], None]] = {
    FileFormat.JSON: validate_json,
    FileFormat.XML: validate_xml,
    FileFormat.YAML: validate_yaml,
    FileFormat.PO: validate_po,
    FileFormat.INI: validate_ini,
    FileFormat.CFG: validate_ini,
    FileFormat.CSV: validate_csv,
    FileFormat.MARKDOWN: validate_markdown,
    FileFormat.PROPERTIES: validate_properties,
    FileFormat.LUA: validate_lua,
}


def check_format(content: str, file_format: FileFormat) -> None:
    """Run the structural check for ``file_format``. TXT and UNKNOWN always pass.

    Raises:
        FormatValidationError: content is malformed for its format
    """
    validator = FORMAT_VALIDATORS.get(file_format)
    if validator is None:
        return
    validator(content)
    logger.debug(f"Format check passed for {file_format.value}")
