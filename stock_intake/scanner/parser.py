"""
==============================================================================
Payload Parser Module
==============================================================================

Turns decoded scanner text into a structured stock-intake payload.

Scanners in the field emit whatever the label printer put in the code,
so the parser tries a fixed cascade of strategies and keeps the first one
that produces a non-empty name:

1. structured   JSON object, canonical {"medicine", "quantity"} or synonyms
2. pipe         name|count|category
3. comma        name,count,category
4. key_value    "name: X, qty: 3" pairs separated by , ; or newline
5. whitespace   "Amoxicillin 20" or the whole text as the name

The whitespace step always yields a name, so only blank input is
unparseable. Quantity that fails integer coercion becomes 1.

==============================================================================
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from stock_intake.schemas.scan import (
    ParseOutcome,
    Parsed,
    ScannedPayload,
    Unparseable,
)


# Module logger
logger = logging.getLogger(__name__)


Strategy = Callable[[str], Optional[ScannedPayload]]


# =============================================================================
# SYNONYMS
# =============================================================================

# Exact keys probed, in order, on structured objects
NAME_KEYS = ("name", "medicine_name", "product", "item")
QUANTITY_KEYS = ("quantity", "count", "qty", "amount")
CATEGORY_KEYS = ("category", "type")

# Substrings matched against key-value keys
NAME_HINTS = NAME_KEYS + ("medicine",)
QUANTITY_HINTS = QUANTITY_KEYS
CATEGORY_HINTS = CATEGORY_KEYS

_LEADING_INT = re.compile(r"\s*\+?(\d+)")
_ALL_DIGITS = re.compile(r"[0-9]+")
_PAIR_SEPARATORS = re.compile(r"[,;\n]")


# =============================================================================
# COERCION HELPERS
# =============================================================================

def coerce_count(value: Any) -> int:
    """
    Coerce a quantity field to a positive integer.

    Accepts ints, finite floats and strings with a leading integer
    ("12", " 5 boxes"). Anything else, and anything below 1, becomes 1.
    """
    if isinstance(value, bool) or value is None:
        return 1

    if isinstance(value, int):
        count = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            return 1
        count = int(value)
    else:
        match = _LEADING_INT.match(str(value))
        if not match:
            return 1
        try:
            count = int(match.group(1))
        except ValueError:
            # Digit run past the interpreter's int conversion limit
            return 1

    return count if count >= 1 else 1


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _payload(name: str, count: Any = None, category: Any = None) -> Optional[ScannedPayload]:
    name = _text(name)
    if not name:
        return None
    return ScannedPayload(name=name, count=coerce_count(count), category=_text(category))


def _probe(data: Dict[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


# =============================================================================
# STRATEGIES
# =============================================================================

def parse_structured(text: str) -> Optional[ScannedPayload]:
    """
    Decode a JSON object.

    With both "medicine" and "quantity" keys this is the canonical label
    format; otherwise synonym keys are probed in a fixed order.
    """
    try:
        data = json.loads(text)
    except (ValueError, RecursionError):
        logger.debug("Scan is not JSON, trying delimited formats")
        return None

    if not isinstance(data, dict):
        logger.debug(f"Scan decoded to {type(data).__name__}, not an object")
        return None

    fields = {str(key).strip().lower(): value for key, value in data.items()}

    if "medicine" in fields and "quantity" in fields:
        payload = _payload(
            fields["medicine"],
            fields["quantity"],
            _probe(fields, CATEGORY_KEYS),
        )
        if payload:
            return payload

    return _payload(
        _probe(fields, NAME_KEYS),
        _probe(fields, QUANTITY_KEYS),
        _probe(fields, CATEGORY_KEYS),
    )


def _parse_delimited(text: str, delimiter: str) -> Optional[ScannedPayload]:
    if delimiter not in text:
        return None

    fields = text.split(delimiter)

    # "name: X, qty: 3" belongs to the key-value strategy
    if ":" in fields[0]:
        return None

    count = fields[1] if len(fields) > 1 else None
    category = fields[2] if len(fields) > 2 else None
    return _payload(fields[0], count, category)


def parse_pipe(text: str) -> Optional[ScannedPayload]:
    """name|count|category"""
    return _parse_delimited(text, "|")


def parse_comma(text: str) -> Optional[ScannedPayload]:
    """name,count,category"""
    return _parse_delimited(text, ",")


def _classify_key(key: str) -> Optional[str]:
    # Substring match; "product_type" is a category, "item_count" a quantity
    if any(hint in key for hint in QUANTITY_HINTS):
        return "count"
    if any(hint in key for hint in CATEGORY_HINTS):
        return "category"
    if any(hint in key for hint in NAME_HINTS):
        return "name"
    return None


def parse_key_value(text: str) -> Optional[ScannedPayload]:
    """
    Parse "key: value" pairs; the last pair for a field wins.
    """
    found: Dict[str, str] = {}

    for pair in _PAIR_SEPARATORS.split(text):
        if ":" not in pair:
            continue
        key, value = pair.split(":", 1)
        field = _classify_key(key.strip().lower())
        if field:
            found[field] = value.strip()

    if "name" not in found:
        return None

    return _payload(found["name"], found.get("count"), found.get("category"))


def parse_whitespace(text: str) -> Optional[ScannedPayload]:
    """
    "Amoxicillin 20" -> name and trailing count, else the whole text.
    """
    tokens = text.split()
    if len(tokens) >= 2 and _ALL_DIGITS.fullmatch(tokens[-1]):
        return _payload(" ".join(tokens[:-1]), tokens[-1])
    return _payload(text)


# =============================================================================
# CASCADE
# =============================================================================

class PayloadParser:
    """
    Ordered strategy chain over raw scan text.

    Stateless; `parse` has no side effects besides debug logging.

    Example:
        >>> PayloadParser().parse("Paracetamol|5|analgesic").payload.count
        5
    """

    STRATEGIES: List[Tuple[str, Strategy]] = [
        ("structured", parse_structured),
        ("pipe", parse_pipe),
        ("comma", parse_comma),
        ("key_value", parse_key_value),
        ("whitespace", parse_whitespace),
    ]

    def parse(self, raw_text: Optional[str]) -> ParseOutcome:
        """
        Parse raw scan text.

        Args:
            raw_text: Decoded scanner output

        Returns:
            Parsed with the winning strategy, or Unparseable("empty")
        """
        text = (raw_text or "").strip()
        if not text:
            return Unparseable(reason="empty")

        for name, strategy in self.STRATEGIES:
            payload = strategy(text)
            if payload is not None:
                logger.debug(f"Scan parsed by {name} strategy: {payload}")
                return Parsed(payload=payload, strategy=name)

        # parse_whitespace accepts any non-blank text
        return Unparseable(reason="no strategy matched")


_default_parser = PayloadParser()


def parse(raw_text: Optional[str]) -> ParseOutcome:
    """Parse with the shared stateless parser."""
    return _default_parser.parse(raw_text)
