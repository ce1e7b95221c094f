"""
Withholding Engines - pure calculation helpers.

No I/O, no ORM.  Inputs are plain values; outputs are Decimal or frozen
dataclasses.
"""

from withholding_engines.accumulator import (
    AccumulatedTotals,
    AmountAccumulator,
    WithholdingContribution,
)
from withholding_engines.rates import RateSlice, effective_amount, select_effective_slice

__all__ = [
    "AmountAccumulator",
    "AccumulatedTotals",
    "WithholdingContribution",
    "RateSlice",
    "effective_amount",
    "select_effective_slice",
]
