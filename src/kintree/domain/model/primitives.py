"""Domain primitives: small value objects."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .enums import DatePrecision

if TYPE_CHECKING:
    from datetime import date


@dataclass(frozen=True)
class FuzzyDate:
    """A genealogical date that may only be approximately known."""

    value: date | None = None
    precision: DatePrecision | None = DatePrecision.EXACT

    @property
    def year(self) -> int | None:
        return self.value.year if self.value is not None else None

    def __composite_values__(self) -> tuple[date | None, DatePrecision | None]:
        """For SQLAlchemy composite columns (adapter-side convenience)."""
        return (self.value, self.precision)


def year_of(fuzzy: FuzzyDate | None) -> int | None:
    return fuzzy.year if fuzzy is not None else None
