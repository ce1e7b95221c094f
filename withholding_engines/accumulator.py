"""
Amount Accumulator - Running totals for one withholding evaluation.

A computation step feeds the accumulator one contribution at a time (the
whole order for the municipal regime, one tax line at a time for the POS VAT
regime).  The accumulator never rounds: callers decide whether a contribution
is rounded before it is added.

An accumulator belongs to exactly one evaluation.  Create a new one for every
run instead of resetting an old one.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

_ZERO = Decimal("0")
_DESCRIPTION_SEPARATOR = ", "


@dataclass(frozen=True)
class WithholdingContribution:
    """One labeled part of an evaluation's total (an order or a tax line)."""

    base_amount: Decimal
    rate: Decimal
    withholding_amount: Decimal
    description: str
    tax_id: UUID | None = None


@dataclass(frozen=True)
class AccumulatedTotals:
    """Frozen view of an accumulator once computation is finished."""

    rate: Decimal
    base_amount: Decimal
    withholding_amount: Decimal
    description: str
    contributions: tuple[WithholdingContribution, ...]

    @property
    def is_positive(self) -> bool:
        return self.withholding_amount > _ZERO


class AmountAccumulator:
    """Mutable running totals: rate, base, withheld amount and description."""

    def __init__(self) -> None:
        self._rate = _ZERO
        self._base_amount = _ZERO
        self._withholding_amount = _ZERO
        self._descriptions: list[str] = []
        self._contributions: list[WithholdingContribution] = []

    @property
    def rate(self) -> Decimal:
        return self._rate

    @property
    def base_amount(self) -> Decimal:
        return self._base_amount

    @property
    def withholding_amount(self) -> Decimal:
        return self._withholding_amount

    @property
    def description(self) -> str:
        return _DESCRIPTION_SEPARATOR.join(self._descriptions)

    @property
    def contributions(self) -> tuple[WithholdingContribution, ...]:
        return tuple(self._contributions)

    def set_rate(self, rate: Decimal) -> None:
        self._rate = rate

    def add_base_amount(self, amount: Decimal) -> None:
        self._base_amount += amount

    def add_withholding_amount(self, amount: Decimal) -> None:
        self._withholding_amount += amount

    def add_description(self, text: str | None) -> None:
        if text:
            self._descriptions.append(text)

    def contribute(
        self,
        base_amount: Decimal,
        withholding_amount: Decimal,
        description: str,
        tax_id: UUID | None = None,
    ) -> WithholdingContribution:
        """
        Add one labeled contribution at the current rate.

        Postconditions:
            - base and withheld totals grow by exactly the given amounts.
            - the description is appended to the running description.
            - the contribution is returned and kept in insertion order.
        """
        self.add_base_amount(base_amount)
        self.add_withholding_amount(withholding_amount)
        self.add_description(description)
        contribution = WithholdingContribution(
            base_amount=base_amount,
            rate=self._rate,
            withholding_amount=withholding_amount,
            description=description,
            tax_id=tax_id,
        )
        self._contributions.append(contribution)
        return contribution

    def totals(self) -> AccumulatedTotals:
        return AccumulatedTotals(
            rate=self._rate,
            base_amount=self._base_amount,
            withholding_amount=self._withholding_amount,
            description=self.description,
            contributions=self.contributions,
        )
