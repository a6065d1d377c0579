"""
Material quantity rounding.

Every caller-supplied quantity is rounded to three fractional digits before it
is stored or combined with another quantity, so that floating point error
cannot accumulate across many small check-ins and check-outs.
"""

import math
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from openmts.core.exceptions import InvalidArgumentError

QUANTITY_DECIMALS = 3
_QUANTUM = Decimal(1).scaleb(-QUANTITY_DECIMALS)


def round_quantity(value: float) -> float:
    """
    Round a quantity to three decimals, ties away from zero.

    The float is converted through its shortest repr, so ``0.0005`` rounds to
    ``0.001`` and ``-0.0005`` to ``-0.001`` even though neither is exactly
    representable in binary.

    Raises:
        InvalidArgumentError: If the value is NaN or infinite.
    """
    if not math.isfinite(value):
        raise InvalidArgumentError(
            f"Quantity must be a finite number, got {value!r}",
            code="INVALID_QUANTITY",
            details={"quantity": str(value)},
        )
    rounded = Decimal(repr(float(value))).quantize(_QUANTUM, rounding=ROUND_HALF_UP)
    # + 0.0 turns -0.0 into 0.0
    return float(rounded) + 0.0


def sum_quantities(values: Iterable[float]) -> float:
    """Rounded running sum, rounding after every step like the inventory service does."""
    total = 0.0
    for value in values:
        total = round_quantity(total + round_quantity(value))
    return total
