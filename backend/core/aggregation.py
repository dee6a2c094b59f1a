"""Wager aggregation — per-prop Yes/No banana totals.

Input rows can be ORM ``Wager`` objects, dataclasses or plain dicts (as
returned by ``GET /api/...`` payloads); only ``prop_id``, ``prediction``
and ``bananas`` are read.  Input need not be sorted or pre-filtered.

A prop with no wagers is absent from :func:`aggregate_wagers` output;
:func:`totals_for` turns that absence into ``OutcomeTotals(0, 0)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from backend.core.odds_math import american_odds_pair, decimal_multipliers


@dataclass(frozen=True)
class OutcomeTotals:
    """Bananas staked on each side of one prop."""

    yes: int = 0
    no: int = 0

    @property
    def total(self) -> int:
        return self.yes + self.no

    def american_odds(self) -> Tuple[str, str]:
        return american_odds_pair(self.yes, self.no)

    def decimal_multipliers(self) -> Tuple[float, float]:
        return decimal_multipliers(self.yes, self.no)


def _field(wager: Any, name: str) -> Any:
    if isinstance(wager, Mapping):
        return wager[name]
    return getattr(wager, name)


def aggregate_wagers(wagers: Iterable[Any]) -> Dict[str, OutcomeTotals]:
    """Group wagers by ``prop_id`` and sum bananas per prediction.

    Returns:
        ``{prop_id: OutcomeTotals}`` for every prop that has at least one
        wager.  ``sum(t.total for t in result.values())`` always equals the
        sum of all input ``bananas``.
    """
    sums: Dict[str, list] = {}
    for wager in wagers:
        bucket = sums.setdefault(_field(wager, "prop_id"), [0, 0])
        if _field(wager, "prediction"):
            bucket[0] += _field(wager, "bananas")
        else:
            bucket[1] += _field(wager, "bananas")
    return {prop_id: OutcomeTotals(yes=y, no=n) for prop_id, (y, n) in sums.items()}


def totals_for(aggregated: Mapping[str, OutcomeTotals], prop_id: str) -> OutcomeTotals:
    """Totals for one prop; an unwagered prop is ``OutcomeTotals(0, 0)``."""
    return aggregated.get(prop_id, OutcomeTotals())


def odds_board(
    wagers: Iterable[Any],
    prop_ids: Optional[Iterable[str]] = None,
) -> Dict[str, Dict[str, str]]:
    """American odds keyed by prop, ready for the dashboard.

    Args:
        wagers: All wager rows to aggregate (typically every wager in the store).
        prop_ids: Props to report on.  When omitted, every prop that appears
            in ``wagers`` is reported.  Listed props without wagers get even
            odds (``"+100"`` on both sides).

    Returns:
        ``{prop_id: {"yes_odds": str, "no_odds": str}}``
    """
    aggregated = aggregate_wagers(wagers)
    keys = list(prop_ids) if prop_ids is not None else list(aggregated)
    board: Dict[str, Dict[str, str]] = {}
    for prop_id in keys:
        yes_odds, no_odds = totals_for(aggregated, prop_id).american_odds()
        board[prop_id] = {"yes_odds": yes_odds, "no_odds": no_odds}
    return board
