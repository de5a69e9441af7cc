"""
Moving-average engine.

Simple moving averages over the close price. Accumulation is done in Decimal
with a sliding-window running sum; rounding to display precision happens
once, on output.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional

from ..models import MovingAverageSeries, series_points

DISPLAY_PRECISION = Decimal('0.01')


def round_display(value: Decimal) -> Decimal:
    return value.quantize(DISPLAY_PRECISION, rounding=ROUND_HALF_UP)


def compute_ma(window: int, series) -> MovingAverageSeries:
    """Compute the N-period simple moving average of close prices.

    Args:
        window: Number of periods N (positive integer)
        series: Series or sequence of PricePoint, in chronological order

    Returns:
        MovingAverageSeries with exactly one value per input point. The first
        N-1 values are None, as is any value whose window contains a missing
        close.
    """
    if isinstance(window, bool) or not isinstance(window, int) or window < 1:
        raise ValueError(f"window must be a positive integer, got {window!r}")

    closes = [p.close for p in series_points(series)]
    values: List[Optional[Decimal]] = []
    divisor = Decimal(window)

    running = Decimal(0)
    missing = 0  # missing closes inside the current window
    for i, close in enumerate(closes):
        if close is None:
            missing += 1
        else:
            running += close

        if i >= window:
            dropped = closes[i - window]
            if dropped is None:
                missing -= 1
            else:
                running -= dropped

        if i < window - 1 or missing:
            values.append(None)
        else:
            values.append(round_display(running / divisor))

    return MovingAverageSeries(window=window, values=tuple(values))


def compute_moving_averages(windows: Iterable[int], series) -> List[MovingAverageSeries]:
    """One MovingAverageSeries per distinct window, in the given order."""
    seen = set()
    result = []
    for window in windows:
        if window in seen:
            continue
        seen.add(window)
        result.append(compute_ma(window, series))
    return result
