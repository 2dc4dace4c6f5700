"""Temporal eligibility rules that stop tickets from claiming past draws."""

from __future__ import annotations

from bisect import bisect_left
from datetime import datetime
from typing import Iterable, Optional, Sequence

from .types import DrawInput, ParticipationInput


def eligible_draws(
    draws: Sequence[DrawInput], created_at: datetime
) -> list[DrawInput]:
    """Return the draws held at or after a ticket's ``created_at``.

    A draw published before the ticket existed never counts towards it.
    """

    return [draw for draw in draws if draw.draw_date >= created_at]


def first_eligible_index(draw_dates: Sequence[datetime], created_at: datetime) -> int:
    """Index of the first draw a ticket may count.

    ``draw_dates`` must be ascending. Slicing the matching draws from the
    returned index gives the same draws as :func:`eligible_draws`.
    """

    return bisect_left(draw_dates, created_at)


def is_after_cutoff(created_at: datetime, cutoff: Optional[datetime]) -> bool:
    """Return ``True`` when a ticket was created strictly after ``cutoff``."""
    if cutoff is None:
        return False
    return created_at > cutoff


def partition_by_cutoff(
    participations: Iterable[ParticipationInput], cutoff: Optional[datetime]
) -> tuple[list[ParticipationInput], list[ParticipationInput]]:
    """Split participations into ``(valid, invalid)`` around ``cutoff``.

    Invalid participations are left out of scoring altogether.
    """

    valid: list[ParticipationInput] = []
    invalid: list[ParticipationInput] = []
    for participation in participations:
        if is_after_cutoff(participation.created_at, cutoff):
            invalid.append(participation)
        else:
            valid.append(participation)
    return valid, invalid


__all__ = [
    "eligible_draws",
    "first_eligible_index",
    "is_after_cutoff",
    "partition_by_cutoff",
]
