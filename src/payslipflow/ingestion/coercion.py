"""Cell value coercion: identifier-like fields stay strings, the rest become Decimal."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

# Label/header substrings marking identifier or free-text fields.
STRING_FIELD_MARKERS = (
    "コード", "氏名", "名前", "番号", "部門名", "部署名", "社員id", "所属",
)
_STRING_FIELD_WORDS = re.compile(r"\b(code|name|id|no)\b", re.IGNORECASE)

_STRIP_CHARS = re.compile(r"[,\s¥￥$€£円]")
_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")


def is_string_field(item_name: str, header_name: str = "") -> bool:
    """True when the semantic name says identifier or free text."""
    for name in (item_name or "", header_name or ""):
        lowered = name.lower()
        if any(marker in lowered for marker in STRING_FIELD_MARKERS):
            return True
        if _STRING_FIELD_WORDS.search(name):
            return True
    return False


def parse_number(raw: str) -> Decimal | None:
    """Parse ``"¥1,200"``, ``"1200-"`` or ``"(300)"``; None when not numeric."""
    text = _STRIP_CHARS.sub("", raw or "")
    negative = False
    if text.startswith("(") and text.endswith(")"):
        text, negative = text[1:-1], True
    elif text.endswith("-") and not text.startswith(("-", "+")):
        text, negative = text[:-1], True  # trailing minus from HR exports
    if not _NUMBER.match(text):
        return None
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return -value if negative else value


def coerce_value(raw: str, item_name: str, header_name: str = "") -> Decimal | str:
    """Trimmed string for string fields and unparsable cells, Decimal otherwise.

    Never returns zero for a cell that is not a number; an empty cell stays "".
    """
    value = (raw or "").strip()
    if not value or is_string_field(item_name, header_name):
        return value
    number = parse_number(value)
    return value if number is None else number
