"""Parsing and formatting of monetary values found in the ledger.

Two normalizers live here and they disagree on some inputs:

- ``parse_money_to_number`` is used when reading split requests and parent
  amounts. It returns a float (``nan`` when unparseable) and resolves comma
  versus period separators, so ``"1,50"`` is one and a half.
- ``to_cents`` is used for display. It keeps only digits, periods and minus
  signs before parsing, so commas are always thousands separators and
  ``"1,50"`` is one hundred fifty dollars.
"""

import math
import re

_MONEY_CHARS = re.compile(r"[^0-9.,-]")
_DISPLAY_CHARS = re.compile(r"[^0-9.-]")
_NUMBER = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_number(text: str) -> float:
    if not _NUMBER.fullmatch(text):
        return math.nan
    number = float(text)
    return number if math.isfinite(number) else math.nan


def parse_money_to_number(value: object) -> float:
    """
    Parse a money value such as ``"$1,234.56"``, ``"1.234,56"`` or ``30``.

    When both separators appear, whichever comes last is the decimal point.
    A lone comma is a decimal point unless the group after the last comma has
    exactly three digits, in which case commas are thousands separators.

    Args:
        value: A string, number or None

    Returns:
        The parsed amount, or ``nan`` if it cannot be parsed. Never raises.
    """
    if value is None:
        return math.nan
    if _is_number(value):
        try:
            return float(value)  # type: ignore[arg-type]
        except OverflowError:
            return math.nan

    text = str(value).strip()
    if not text:
        return math.nan

    cleaned = _MONEY_CHARS.sub("", text)

    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        groups = cleaned.split(",")
        if len(groups[-1]) != 3:
            # Only the first comma becomes a decimal point; "1,234,5" stays invalid
            cleaned = cleaned.replace(",", ".", 1)
        else:
            cleaned = cleaned.replace(",", "")

    return _to_number(cleaned)


def to_cents(value: object) -> int:
    """
    Convert a display value to integer cents, rounding half up.

    Everything except digits, periods and minus signs is dropped and the
    leading number is parsed, so trailing junk is ignored. Unparseable input
    yields 0.
    """
    if value is None:
        return 0
    if _is_number(value):
        try:
            number = float(value)  # type: ignore[arg-type]
        except OverflowError:
            return 0
    else:
        cleaned = _DISPLAY_CHARS.sub("", str(value))
        match = _NUMBER.match(cleaned)
        if not match:
            return 0
        number = float(match.group())

    scaled = number * 100 + 0.5
    if not math.isfinite(scaled):
        return 0
    return math.floor(scaled)


def cents_to_usd(cents: int | None) -> str:
    """Format integer cents as US dollars, e.g. ``-$1,234.50``."""
    amount = (cents or 0) / 100
    if amount < 0:
        return f"-${abs(amount):,.2f}"
    return f"${amount:,.2f}"


def format_currency(value: object) -> str:
    """Format any ledger amount for display."""
    return cents_to_usd(to_cents(value))
