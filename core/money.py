# Currency arithmetic for the storefront
# Every aggregation step rounds to 3 decimal places, half away from zero.

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

THREE_PLACES = Decimal("0.001")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so floats like 19.999 keep their printed value
    return Decimal(str(value))


def round3(value: Number) -> Decimal:
    return to_decimal(value).quantize(THREE_PLACES, rounding=ROUND_HALF_UP)


def sum3(values: Iterable[Number]) -> Decimal:
    """Sum already-rounded amounts and round the result."""
    return round3(sum((to_decimal(v) for v in values), Decimal("0")))


def percent_of(amount: Number, rate_percent: Number) -> Decimal:
    return round3(to_decimal(amount) * to_decimal(rate_percent) / Decimal(100))
