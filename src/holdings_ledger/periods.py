"""Calendar-quarter period tokens.

Tokens are compact strings such as ``25Q1``. Internally a period keeps the
full four-digit year so ordering and predecessor arithmetic never depend on
two-digit wraparound; the compact form is only produced for display and
storage keys.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime

_TOKEN_RE = re.compile(r"^(\d{2}|\d{4})Q([1-4])$")

# Two-digit years are read as 20YY
CENTURY_BASE = 2000


class InvalidPeriodError(ValueError):
    """Raised for a malformed period token."""


@dataclass(frozen=True, order=True)
class Period:
    """A calendar quarter."""

    year: int
    quarter: int

    def __post_init__(self) -> None:
        if not 1 <= self.quarter <= 4:
            raise InvalidPeriodError(f"Quarter must be 1-4, got {self.quarter}")

    @property
    def token(self) -> str:
        """Compact token, e.g. ``25Q1``."""
        return f"{self.year % 100:02d}Q{self.quarter}"

    @property
    def label(self) -> str:
        """Four-digit label, e.g. ``2025Q1``."""
        return f"{self.year}Q{self.quarter}"

    def previous(self) -> "Period":
        if self.quarter == 1:
            return Period(self.year - 1, 4)
        return Period(self.year, self.quarter - 1)

    def end_date(self) -> date:
        return quarter_end_date(self)

    def __str__(self) -> str:
        return self.token


def parse_period(token: str | Period) -> Period:
    """
    Parse a period token.

    Accepts ``YYQn`` and ``YYYYQn``. Anything else is rejected rather than
    guessed at.

    Raises:
        InvalidPeriodError: If the token is malformed
    """
    if isinstance(token, Period):
        return token
    if not isinstance(token, str):
        raise InvalidPeriodError(f"Invalid period token: {token!r}")

    match = _TOKEN_RE.match(token.strip().upper())
    if not match:
        raise InvalidPeriodError(f"Invalid period token: {token!r}")

    year_str, quarter_str = match.groups()
    year = int(year_str)
    if len(year_str) == 2:
        year += CENTURY_BASE
    return Period(year, int(quarter_str))


def _coerce_date(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip()[:10])
    except (AttributeError, ValueError) as e:
        raise InvalidPeriodError(f"Invalid date: {value!r}") from e


def period_of(value: date | datetime | str) -> Period:
    """Return the calendar quarter containing a date."""
    d = _coerce_date(value)
    return Period(d.year, (d.month - 1) // 3 + 1)


def period_from_date(value: date | datetime | str) -> str:
    """Map a date to its compact period token (months 1-3 -> Q1, ... 10-12 -> Q4)."""
    return period_of(value).token


def previous_period(token: str) -> str:
    """
    Return the token of the quarter immediately before ``token``.

    ``25Q1`` -> ``24Q4``; ``00Q1`` -> ``99Q4``.
    """
    return parse_period(token).previous().token


def quarter_end_date(period: str | Period) -> date:
    """Last calendar day of a quarter."""
    p = parse_period(period)
    month = p.quarter * 3
    day = 31 if month in (3, 12) else 30
    return date(p.year, month, day)

