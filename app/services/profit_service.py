# app/services/profit_service.py
import math
from typing import Iterable, Protocol

from app.core.errors import InvalidAmount

# Share of the sale price kept as profit when an item has no explicit margin
DEFAULT_PROFIT_MARGIN = 0.25


class ProfitLine(Protocol):
    total_price: float
    profit_margin: float | None


def _amount(value, field: str) -> float:
    """
    Coerce a stored amount to float, rejecting anything that is not a
    finite, non-negative number.
    """
    if isinstance(value, bool):
        raise InvalidAmount(f"{field} must be numeric, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidAmount(f"{field} must be numeric, got {value!r}")
    if not math.isfinite(number) or number < 0:
        raise InvalidAmount(f"{field} must be a finite non-negative number, got {value!r}")
    return number


def _margin(value, field: str) -> float:
    margin = _amount(value, field)
    if margin > 1:
        raise InvalidAmount(f"{field} must be a fraction between 0 and 1, got {value!r}")
    return margin


def calculate_profit(
    items: Iterable[ProfitLine],
    total_amount: float,
    default_margin: float = DEFAULT_PROFIT_MARGIN,
) -> float:
    """
    Operator profit for an order.

    - With items: sum(total_price * (profit_margin or default_margin)).
    - Without items: total_amount * default_margin.

    Pure and deterministic.

    Raises:
        InvalidAmount: on non-numeric, NaN, infinite or negative input,
            or a margin above 1.
    """
    default = _margin(default_margin, "default_margin")
    items = list(items)

    if not items:
        return _amount(total_amount, "total_amount") * default

    profit = 0.0
    for item in items:
        price = _amount(item.total_price, "total_price")
        margin = default if item.profit_margin is None else _margin(item.profit_margin, "profit_margin")
        profit += price * margin
    return profit
