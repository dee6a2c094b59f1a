"""Prop odds mathematics — the single source of truth.

Every function here is **pure**: no I/O, no logging, no side effects.
Import from this module; never reimplement locally in services or views.

Two display conventions are exposed, because both appear in the app:

1. **Decimal multiplier** — payout per banana staked, including the stake.
   Shown on the prop and wager detail views.
2. **American odds string** — signed integer, negative = favourite.
   Shown on the dashboard next to every prop and wager.

Both are derived from the pari-mutuel pool: the fraction of bananas backing
a side is treated as that side's implied probability.

Run tests with::

    pytest tests/test_odds_math.py -v
"""

from __future__ import annotations

import math
from typing import Final

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

#: Multiplier shown when nobody has wagered yet: even money, double the stake.
EVEN_MONEY_MULTIPLIER: Final[float] = 2.0

#: American odds shown for both sides of an empty pool.
EVEN_MONEY_AMERICAN: Final[str] = "+100"

#: Display strings for the degenerate one-sided pools.
LONGSHOT_INFINITY: Final[str] = "+∞"
FAVOURITE_INFINITY: Final[str] = "-∞"


def _check_totals(yes_total: int | float, no_total: int | float) -> None:
    if yes_total < 0 or no_total < 0:
        raise ValueError(
            f"Banana totals must be non-negative, got yes={yes_total!r} no={no_total!r}"
        )


def _round_half_away(value: float) -> int:
    """Round to the nearest integer, ties away from zero.

    The built-in ``round`` rounds ties to even (``round(250.5) == 250``);
    displayed odds round them outward (``250.5 → 251``, ``-250.5 → -251``).
    """
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


# ---------------------------------------------------------------------------
# Probabilities
# ---------------------------------------------------------------------------


def implied_probabilities(yes_total: int | float, no_total: int | float) -> tuple[float, float]:
    """Share of the pool backing each side.

    Returns ``(0.0, 0.0)`` for an empty pool; callers that need display
    odds should use :func:`american_odds_pair`, which handles that case.

    Examples::

        implied_probabilities(75, 25) → (0.75, 0.25)
        implied_probabilities(0, 0)   → (0.0, 0.0)
    """
    _check_totals(yes_total, no_total)
    total = yes_total + no_total
    if total == 0:
        return 0.0, 0.0
    return yes_total / total, no_total / total


# ---------------------------------------------------------------------------
# Decimal multiplier form
# ---------------------------------------------------------------------------


def decimal_multipliers(yes_total: int | float, no_total: int | float) -> tuple[float, float]:
    """Payout multipliers ``(yes_odds, no_odds)`` for a prop's pool.

    A winning Yes banana is paid back with a share of the No pool::

        yes_odds = no_total / total + 1
        no_odds  = yes_total / total + 1

    An empty pool defaults to even money on both sides (``2.0``).

    Examples::

        decimal_multipliers(75, 25) → (1.25, 1.75)
        decimal_multipliers(0, 0)   → (2.0, 2.0)

    Raises:
        ValueError: If either total is negative.
    """
    _check_totals(yes_total, no_total)
    total = yes_total + no_total
    if total <= 0:
        return EVEN_MONEY_MULTIPLIER, EVEN_MONEY_MULTIPLIER
    return no_total / total + 1.0, yes_total / total + 1.0


def potential_payout(bananas: int | float, multiplier: float) -> float:
    """Bananas returned to a winning wager (stake included), to 2 dp."""
    if bananas < 0:
        raise ValueError(f"Stake must be non-negative, got {bananas!r}")
    return round(bananas * multiplier, 2)


# ---------------------------------------------------------------------------
# American odds form
# ---------------------------------------------------------------------------


def american_odds(probability: float) -> str:
    """American odds string for one side with implied ``probability``.

    * ``probability == 0`` → ``"+∞"`` (nobody backs this side)
    * ``probability == 1`` → ``"-∞"`` (everybody backs this side)
    * ``probability > 0.5`` → favourite, native negative: ``"-300"``
    * ``probability <= 0.5`` → underdog, explicit plus: ``"+300"``

    Rounding is half away from zero on the real-valued odds.

    Raises:
        ValueError: If ``probability`` is outside ``[0, 1]``.
    """
    if not 0.0 <= probability <= 1.0:
        raise ValueError(f"Probability {probability!r} must be within [0, 1]")
    if probability == 0:
        return LONGSHOT_INFINITY
    if probability == 1:
        return FAVOURITE_INFINITY
    if probability > 0.5:
        return str(_round_half_away(-100.0 * probability / (1.0 - probability)))
    return "+" + str(_round_half_away(100.0 * (1.0 - probability) / probability))


def american_odds_pair(yes_total: int | float, no_total: int | float) -> tuple[str, str]:
    """American odds strings ``(yes_odds, no_odds)`` for a prop's pool.

    An empty pool is even odds on both sides (``"+100"``), not ``"+∞"``:
    that case is decided before the single-probability formula runs.

    Examples::

        american_odds_pair(75, 25)  → ("-300", "+300")
        american_odds_pair(100, 0)  → ("-∞", "+∞")
        american_odds_pair(0, 0)    → ("+100", "+100")
    """
    _check_totals(yes_total, no_total)
    if yes_total + no_total == 0:
        return EVEN_MONEY_AMERICAN, EVEN_MONEY_AMERICAN
    p_yes, p_no = implied_probabilities(yes_total, no_total)
    return american_odds(p_yes), american_odds(p_no)
