"""Cleaning helpers for raw field values.

Raw POS and shift documents arrive from several exporters, so numbers may be
strings with Dutch or English separators and currency signs, and names may
carry non-breaking or zero-width characters.

Examples:
    >>> from daily_ops.normalize.cleaning import to_float, normalize_name
    >>> to_float("1.234,56")
    1234.56
    >>> normalize_name("  Keuken Hoofdgerecht ")
    'keuken hoofdgerecht'
"""

from __future__ import annotations

import math
import re
import unicodedata
from typing import Any, Optional

import pandas as pd

# Spacing variants become a plain space; zero-width characters and CR vanish.
_INVISIBLES = str.maketrans(
    {
        "\u00a0": " ",
        "\u202f": " ",
        "\t": " ",
        "\r": None,
        "\u200b": None,
        "\u200c": None,
        "\u200d": None,
        "\ufeff": None,
    }
)
_WHITESPACE_RE = re.compile(r"\s+")
_CURRENCY_CODE_RE = re.compile(r"EUR|USD|GBP", re.IGNORECASE)
_SCIENTIFIC_RE = re.compile(r"[-+]?\d+(?:\.\d+)?[eE][-+]?\d+")
_PLAIN_NUMBER_RE = re.compile(r"[-+]?[\d.,]*\d[\d.,]*")

# (pattern, thousands separator, decimal separator), tried in order.
_GROUPED_FORMATS: tuple[tuple[re.Pattern[str], str, Optional[str]], ...] = (
    (re.compile(r"-?\d{1,3}(?:\.\d{3})+,\d{1,2}"), ".", ","),
    (re.compile(r"-?\d{1,3}(?:,\d{3})+\.\d{1,2}"), ",", "."),
    (re.compile(r"-?\d{1,3}(?:,\d{3})+"), ",", None),
    (re.compile(r"-?\d{1,3}(?:\.\d{3}){2,}"), ".", None),
)


def strip_invisibles(x: Any) -> Optional[str]:
    """Return x as text with invisible characters removed and spaces collapsed.

    Examples:
        >>> strip_invisibles("  Bar Bier  ")
        'Bar Bier'
        >>> strip_invisibles(None)

    """
    if x is None or (isinstance(x, float) and pd.isna(x)):
        return None
    return _WHITESPACE_RE.sub(" ", str(x).translate(_INVISIBLES)).strip()


def clean_text(x: Any) -> Optional[str]:
    """Strip invisibles and turn empty strings into None."""
    s = strip_invisibles(x)
    return s or None


def _canonical_number(s: str) -> str:
    """Rewrite a separator-laden number into float() syntax."""
    for pattern, thousands, decimal in _GROUPED_FORMATS:
        if pattern.fullmatch(s):
            s = s.replace(thousands, "")
            return s.replace(decimal, ".") if decimal else s
    # a lone comma is a decimal comma
    if "," in s and "." not in s:
        return s.replace(",", ".")
    return s


def to_float(x: Any) -> Optional[float]:
    """Parse a number from a raw field value.

    Accepts ints and floats (not bools), and strings in US (``1,234.56``) or
    EU (``1.234,56``, ``12,50``) notation, with currency signs or codes,
    accounting negatives (``(3.00)``) and exponents (``1e3``). Any other
    letter makes the value unparseable.

    Returns:
        The value, or None for missing, non-finite or unparseable input.

    Examples:
        >>> to_float("€ 12,50")
        12.5
        >>> to_float("(1,234.56)")
        -1234.56
        >>> to_float("n/a")

    """
    if x is None or isinstance(x, (bool, dict, list, tuple, set)):
        return None
    if isinstance(x, (int, float)):
        value = float(x)
        return value if math.isfinite(value) else None

    s = str(x).strip()
    negative = len(s) > 1 and s[0] == "(" and s[-1] == ")"
    if negative:
        s = s[1:-1]
    s = _CURRENCY_CODE_RE.sub("", s)
    s = "".join(c for c in s if not c.isspace() and unicodedata.category(c) != "Sc")
    if _SCIENTIFIC_RE.fullmatch(s):
        canonical = s
    elif _PLAIN_NUMBER_RE.fullmatch(s):
        canonical = _canonical_number(s)
    else:
        return None
    try:
        value = float(canonical)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return -value if negative else value


def remove_accents(s: str) -> str:
    """Drop combining marks, e.g. ``"Café"`` -> ``"Cafe"``."""
    decomposed = unicodedata.normalize("NFD", s)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def normalize_name(s: Any) -> str:
    """Lower-cased, accent-free, single-spaced form of a name for matching.

    Examples:
        >>> normalize_name("Wijn & Bubbels")
        'wijn & bubbels'

    """
    base = strip_invisibles(s) or ""
    return remove_accents(base).lower()
