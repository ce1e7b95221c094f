"""
Rate Engine - Select the time slice in effect on a date.

Rate lists, municipal activity rates and tribute-unit tables are all
time-sliced: each version carries a ``valid_from`` date and an amount, and
the version in effect on a date is the one with the latest ``valid_from``
not after that date.  Pure functions with no I/O.

Usage:
    from withholding_engines.rates import RateSlice, effective_amount

    slices = [
        RateSlice(valid_from=date(2024, 1, 1), amount=Decimal("0.75")),
        RateSlice(valid_from=date(2024, 7, 1), amount=Decimal("1.00")),
    ]
    effective_amount(slices, date(2024, 3, 15))  # Decimal("0.75")
    effective_amount(slices, date(2023, 12, 31))  # Decimal("0")
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from withholding_kernel.logging_config import get_logger

logger = get_logger("engines.rates")


@dataclass(frozen=True)
class RateSlice:
    """One dated value of a time-sliced table."""

    valid_from: date
    amount: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", Decimal(str(self.amount)))


def select_effective_slice(
    slices: Iterable[RateSlice],
    as_of: date,
) -> RateSlice | None:
    """
    Return the slice in effect on ``as_of``.

    Postconditions:
        - Returns the slice with the greatest ``valid_from <= as_of``.
        - Returns None when every slice starts after ``as_of`` or there are
          no slices.
        - Ties on ``valid_from`` resolve to the last slice supplied.
    """
    selected: RateSlice | None = None
    for candidate in slices:
        if candidate.valid_from > as_of:
            continue
        if selected is None or candidate.valid_from >= selected.valid_from:
            selected = candidate
    return selected


def effective_amount(slices: Iterable[RateSlice], as_of: date) -> Decimal:
    """Amount of the slice in effect on ``as_of``; zero when none is."""
    selected = select_effective_slice(slices, as_of)
    if selected is None:
        logger.debug("rate_slice_not_found", extra={"as_of": as_of.isoformat()})
        return Decimal("0")
    return selected.amount
