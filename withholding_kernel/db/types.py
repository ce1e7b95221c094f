"""
Module: withholding_kernel.db.types
Responsibility: Annotated column type aliases and the sanctioned rounding
    helper for withholding amounts.
Architecture position: Kernel > DB.  May be imported by engines and modules.

Invariants enforced:
    - No floats.  Amounts and rates are Decimal with explicit precision.
    - round_amount() is the ONLY rounding function used for withheld amounts;
      callers pass the document currency's standard precision.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated

from sqlalchemy import Numeric, String


# Monetary amount, 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Withholding rate expressed as a fraction (0.75 == 75%)
Rate = Annotated[Decimal, Numeric(38, 9)]

# ISO 4217 currency code
CurrencyCode = Annotated[str, String(3)]

# Short identifier strings (status codes, tender types, event codes)
ShortCode = Annotated[str, String(50)]

# Long text for descriptions
LongText = Annotated[str, String(4000)]


DEFAULT_ROUNDING = ROUND_HALF_UP
ZERO = Decimal("0")


def round_amount(
    value: Decimal,
    decimal_places: int = 2,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    Preconditions: value is a Decimal; decimal_places >= 0.
    Postconditions: Returns value quantized with the given rounding mode
        (half-up by default).

    Example:
        round_amount(Decimal("2.0001"), 2) -> Decimal("2.00")
        round_amount(Decimal("2.5"), 0) -> Decimal("3")
    """
    if decimal_places < 0:
        raise ValueError(f"decimal_places cannot be negative, got {decimal_places}")
    quantum = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=rounding)
