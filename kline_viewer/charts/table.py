"""Table projection: one display row per price record."""

from typing import Any, List

from ..models import DisplayRow, series_points

PLACEHOLDER = "-"


def _cell(value: Any) -> str:
    if value is None:
        return PLACEHOLDER
    return str(value)


def project(series) -> List[DisplayRow]:
    """Map price records to display rows, preserving order."""
    return [
        DisplayRow(
            trade_date=point.trade_date,
            open=_cell(point.open),
            high=_cell(point.high),
            low=_cell(point.low),
            close=_cell(point.close),
            pct_change=_cell(point.pct_change),
            volume=_cell(point.volume),
            amount=_cell(point.amount),
        )
        for point in series_points(series)
    ]
