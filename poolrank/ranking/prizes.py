"""Conversion of percentage configuration and revenue into prize amounts."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from .errors import ConfigurationError
from .types import (
    PERCENTAGE_TOLERANCE,
    PRIZE_CATEGORIES,
    Category,
    CategoryPayout,
    ContestConfig,
    PrizeDistribution,
)

logger = logging.getLogger(__name__)


def validate_percentages(config: ContestConfig) -> None:
    """Raise :class:`ConfigurationError` unless the split adds up to 100."""
    total = config.total_pct
    if abs(total - 100.0) > PERCENTAGE_TOLERANCE:
        raise ConfigurationError(f"Prize percentages must sum to 100, got {total:g}")


def category_pool(total_revenue: float, pct: float, winners_count: int) -> float:
    """Return the pool of a category, which is empty without winners.

    An unclaimed pool is not redistributed to other categories.
    """

    if winners_count <= 0:
        return 0.0
    return total_revenue * pct / 100.0


def per_winner_amount(pool: float, winners_count: int) -> float:
    if winners_count <= 0:
        return 0.0
    return pool / winners_count


def allocate_prizes(
    total_revenue: float,
    config: ContestConfig,
    winners: Mapping[Category, int],
    winning_scores: Optional[Mapping[Category, Optional[int]]] = None,
) -> PrizeDistribution:
    """Split ``total_revenue`` between the prize categories and the operator.

    Parameters
    ----------
    total_revenue : float
        Confirmed revenue of the contest, taken from the payment ledger.
    config : ContestConfig
        Contest whose percentages drive the split.
    winners : Mapping[Category, int]
        Number of winners per prize category. Missing categories count as
        zero winners.
    winning_scores : Optional[Mapping[Category, Optional[int]]], default: None
        Score that won each category, copied onto the payouts for display.

    Returns
    -------
    PrizeDistribution
        Pools and per-winner amounts for TOP, SECOND and LOWEST, plus the
        admin reserve. Percentages always apply to the full revenue.

    Raises
    ------
    ConfigurationError
        If the percentages do not sum to 100 or the revenue is negative.
    """

    validate_percentages(config)
    if total_revenue < 0:
        raise ConfigurationError("total_revenue must not be negative")

    revenue = float(total_revenue)
    scores = winning_scores or {}
    payouts = []
    for category in PRIZE_CATEGORIES:
        count = int(winners.get(category, 0))
        pct = config.pct_for(category)
        pool = category_pool(revenue, pct, count)
        payouts.append(
            CategoryPayout(
                category=category,
                pct=pct,
                winners_count=count,
                pool=pool,
                per_winner=per_winner_amount(pool, count),
                winning_score=scores.get(category),
            )
        )

    admin_reserve = revenue * float(config.admin_fee_pct) / 100.0
    logger.debug(
        f"Allocated revenue {revenue} for contest {config.contest_id!r}: "
        + ", ".join(f"{p.category.value}={p.pool}" for p in payouts)
        + f", admin={admin_reserve}"
    )
    return PrizeDistribution(
        total_revenue=revenue,
        admin_reserve=admin_reserve,
        payouts=tuple(payouts),
    )


__all__ = [
    "allocate_prizes",
    "category_pool",
    "per_winner_amount",
    "validate_percentages",
]
