"""Core rules for MonkeyBets props and wagers.

This package contains pure building blocks:

- ``odds_math``   — decimal multipliers and American-odds display strings
- ``aggregation`` — per-prop Yes/No banana totals from raw wager rows
- ``lifecycle``   — prop states (open / expired / resolved) and gating rules
- ``phone``       — phone-number normalisation for identity lookups

Nothing in this package imports from ``backend.services`` or ``backend.models``.
All modules are side-effect-free and unit-testable in isolation.
"""
