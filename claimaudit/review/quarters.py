"""Fiscal quarter value type.

A quarter is written ``"Q<n>-<year>"`` everywhere it is stored or sent
over the wire (e.g. ``"Q2-2025"``).
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime

from claimaudit.core.clock import Clock
from claimaudit.core.errors import InvalidQuarterFormat

MONTHS_PER_QUARTER = 3
MIN_YEAR = 2000
MAX_YEAR = 2100

_QUARTER_RE = re.compile(r"Q([1-4])-([0-9]{4})")


@dataclass(frozen=True, order=True, slots=True)
class QuarterPeriod:
    year: int
    quarter_number: int

    def __post_init__(self) -> None:
        if not 1 <= self.quarter_number <= 4:
            raise InvalidQuarterFormat(
                f"quarter_number must be in 1..4; got {self.quarter_number}"
            )
        if not MIN_YEAR <= self.year <= MAX_YEAR:
            raise InvalidQuarterFormat(
                f"year must be in {MIN_YEAR}..{MAX_YEAR}; got {self.year}"
            )

    def __str__(self) -> str:
        return f"Q{self.quarter_number}-{self.year}"

    @property
    def key(self) -> str:
        return str(self)

    @classmethod
    def of(cls, quarter_number: int, year: int) -> QuarterPeriod:
        return cls(year=year, quarter_number=quarter_number)

    @classmethod
    def from_date(cls, value: date | datetime) -> QuarterPeriod:
        """Return the quarter containing *value*."""
        return cls(
            year=value.year,
            quarter_number=(value.month - 1) // MONTHS_PER_QUARTER + 1,
        )

    @classmethod
    def current(cls, clock: Clock) -> QuarterPeriod:
        return cls.from_date(clock.now())

    @classmethod
    def parse(cls, text: str) -> QuarterPeriod:
        """Parse ``"Q<1-4>-<yyyy>"``; raise ``InvalidQuarterFormat`` otherwise."""
        match = _QUARTER_RE.fullmatch(text) if isinstance(text, str) else None
        if match is None:
            raise InvalidQuarterFormat(
                f"Invalid quarter {text!r}; expected format Q<1-4>-<yyyy>"
            )
        return cls(year=int(match.group(2)), quarter_number=int(match.group(1)))

    def previous(self) -> QuarterPeriod:
        if self.quarter_number == 1:
            return QuarterPeriod(year=self.year - 1, quarter_number=4)
        return QuarterPeriod(year=self.year, quarter_number=self.quarter_number - 1)

    def months(self) -> tuple[int, int, int]:
        """Calendar months (1-12) covered by this quarter."""
        first = (self.quarter_number - 1) * MONTHS_PER_QUARTER + 1
        return (first, first + 1, first + 2)

    def contains(self, value: date | datetime) -> bool:
        return value.year == self.year and value.month in self.months()
