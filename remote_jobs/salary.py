"""Free-text salary parsing and formatting."""
from __future__ import annotations

import re
from dataclasses import dataclass

HOURS_PER_YEAR = 40 * 52
DEFAULT_GBP_TO_USD = 1.3

_NUM = r"(\d+(?:\.\d+)?)\s*(k)?"
_BETWEEN = re.compile(rf"between\s+{_NUM}\s+and\s+{_NUM}")
_RANGE = re.compile(rf"{_NUM}\s*(?:-|–|—|to)\s*{_NUM}")
_FROM = re.compile(rf"(?:from|starting\s+at|min(?:imum)?)\s+{_NUM}")
_UP_TO = re.compile(rf"(?:up\s+to|max(?:imum)?)\s+{_NUM}")
_SINGLE = re.compile(_NUM)
_HOURLY = ("/hour", "per hour", "/hr", "hourly", "an hour", "p/h")
_POUNDS = ("£", "gbp")


@dataclass(frozen=True)
class SalaryRange:
    """Annual USD amounts; either bound may be unknown."""

    minimum: float | None
    maximum: float | None

    @property
    def effective_max(self) -> float | None:
        return self.maximum if self.maximum is not None else self.minimum


def _amount(number: str, k_suffix: str | None, hourly: bool) -> float:
    value = float(number)
    if k_suffix:
        value *= 1000
    elif not hourly and value < 1000:
        # "90-120" in a salary field means thousands
        value *= 1000
    return value


def parse_salary(text: str | None, *, gbp_to_usd: float = DEFAULT_GBP_TO_USD) -> SalaryRange | None:
    """Parse "$90k - $120k", "£40,000 to £50,000", "up to 75k", "$45/hour"...

    Returns None when the text carries no number at all.
    """
    if not text:
        return None
    low = text.lower()
    hourly = any(marker in low for marker in _HOURLY)
    pounds = any(marker in low for marker in _POUNDS)
    clean = re.sub(r"[$£€,]", "", low)

    minimum: float | None = None
    maximum: float | None = None
    range_match = _BETWEEN.search(clean) or _RANGE.search(clean)
    from_match = _FROM.search(clean)
    up_to_match = _UP_TO.search(clean)
    single_match = _SINGLE.search(clean)
    if range_match:
        minimum = _amount(range_match.group(1), range_match.group(2), hourly)
        maximum = _amount(range_match.group(3), range_match.group(4), hourly)
        if minimum > maximum:
            minimum, maximum = maximum, minimum
    elif from_match:
        minimum = _amount(from_match.group(1), from_match.group(2), hourly)
    elif up_to_match:
        maximum = _amount(up_to_match.group(1), up_to_match.group(2), hourly)
    elif single_match:
        minimum = maximum = _amount(single_match.group(1), single_match.group(2), hourly)
    else:
        return None

    factor = (HOURS_PER_YEAR if hourly else 1) * (gbp_to_usd if pounds else 1)

    def scale(v: float | None) -> float | None:
        return round(v * factor) if v is not None else None

    return SalaryRange(scale(minimum), scale(maximum))


def _short(amount: float) -> str:
    return f"{round(amount / 1000)}k" if amount >= 1000 else f"{amount:,.0f}"


def format_salary(minimum: float | None, maximum: float | None, symbol: str = "$") -> str:
    """Render provider min/max numbers the same way for every source."""
    minimum = minimum if minimum and minimum > 0 else None
    maximum = maximum if maximum and maximum > 0 else None
    if minimum and maximum:
        return f"{symbol}{_short(minimum)} - {symbol}{_short(maximum)}"
    if minimum:
        return f"From {symbol}{_short(minimum)}"
    if maximum:
        return f"Up to {symbol}{_short(maximum)}"
    return "Salary not specified"


def to_number(value) -> float | None:
    """Coerce provider salary fields ("85,000", 85000, None) to a float."""
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else None
    if isinstance(value, str) and value.strip():
        digits = re.sub(r"[^0-9.]", "", value)
        try:
            number = float(digits)
        except ValueError:
            return None
        return number if number > 0 else None
    return None


CURRENCY_SYMBOLS = {"USD": "$", "GBP": "£", "EUR": "€", "CAD": "C$", "AUD": "A$"}


def currency_symbol(code: str | None) -> str:
    code = (code or "USD").strip().upper()
    return CURRENCY_SYMBOLS.get(code, f"{code} ")
