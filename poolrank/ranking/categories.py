"""Prize tier classification with cascading SECOND and LOWEST scores."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Optional, Sequence

from .hits import TicketScore
from .types import Category, id_sort_key


@dataclass(frozen=True)
class Categorization:
    """Category of every scored ticket plus the scores that won each tier.

    Attributes
    ----------
    categories : tuple[Category, ...]
        Category per ticket, aligned with the scores passed to
        :func:`categorize`.
    top_score : Optional[int]
        ``N`` when at least one ticket reached it, otherwise ``None``.
    second_score : Optional[int]
        Highest score among non-TOP tickets with a positive score.
    lowest_score : Optional[int]
        Lowest positive score among tickets outside TOP and SECOND.
    """

    categories: tuple[Category, ...]
    top_score: Optional[int] = None
    second_score: Optional[int] = None
    lowest_score: Optional[int] = None

    def count(self, category: Category) -> int:
        return sum(1 for assigned in self.categories if assigned is category)

    def winning_score(self, category: Category) -> Optional[int]:
        if category is Category.TOP:
            return self.top_score
        if category is Category.SECOND:
            return self.second_score
        if category is Category.LOWEST:
            return self.lowest_score
        return None


def _assign_top(
    scores: Sequence[int], categories: list[Category], numbers_per_participation: int
) -> Optional[int]:
    found = False
    for index, score in enumerate(scores):
        if score == numbers_per_participation:
            categories[index] = Category.TOP
            found = True
    return numbers_per_participation if found else None


def _open_positive(scores: Sequence[int], categories: list[Category]) -> list[int]:
    """Indexes of tickets still uncategorized and with a positive score."""
    return [
        index
        for index, score in enumerate(scores)
        if categories[index] is Category.NONE and score > 0
    ]


def _assign_by(
    scores: Sequence[int],
    categories: list[Category],
    category: Category,
    pick: Callable[[Iterable[int]], int],
) -> Optional[int]:
    candidates = _open_positive(scores, categories)
    if not candidates:
        return None
    winning = pick(scores[index] for index in candidates)
    for index in candidates:
        if scores[index] == winning:
            categories[index] = category
    return winning


def categorize(
    scores: Sequence[int], numbers_per_participation: int
) -> Categorization:
    """Classify ``scores`` into TOP, SECOND, LOWEST and NONE.

    Rules run in priority order and each one only sees tickets that earlier
    rules left as NONE:

    1. TOP: every ticket whose score equals ``numbers_per_participation``.
    2. SECOND: the highest positive score left, not necessarily ``N - 1``.
    3. LOWEST: the lowest positive score left.

    Tickets scoring zero are never awarded. When every score is zero no
    category has a winner.
    """

    categories = [Category.NONE] * len(scores)
    top_score = _assign_top(scores, categories, numbers_per_participation)
    second_score = _assign_by(scores, categories, Category.SECOND, max)
    lowest_score = _assign_by(scores, categories, Category.LOWEST, min)
    return Categorization(
        categories=tuple(categories),
        top_score=top_score,
        second_score=second_score,
        lowest_score=lowest_score,
    )


def ranking_sort_key(ticket: TicketScore) -> tuple[int, datetime, tuple[str, Any]]:
    """Order by score descending, then older tickets first.

    The participation id breaks remaining ties so the order never depends on
    input ordering.
    """

    participation = ticket.participation
    return (
        -ticket.score,
        participation.created_at,
        id_sort_key(participation.participation_id),
    )


__all__ = ["Categorization", "categorize", "ranking_sort_key"]
