"""Value objects consumed and produced by the ranking engine."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Union

from .errors import ConfigurationError

Timestamp = Union[datetime, str]

PERCENTAGE_TOLERANCE = 0.01

# "+00" and "+0000" offsets, which fromisoformat only accepts from 3.11 on.
_SHORT_OFFSET = re.compile(
    r"^(?P<head>.+[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?)"
    r"(?P<sign>[+-])(?P<hours>\d{2})(?P<minutes>\d{2})?$"
)


def coerce_timestamp(value: Timestamp) -> datetime:
    """Return ``value`` as a timezone-aware UTC datetime.

    Parameters
    ----------
    value : datetime or str
        A datetime or an ISO-8601 string. Naive values are taken as UTC, which
        is also how SQLite hands back ``DateTime(timezone=True)`` columns.

    Raises
    ------
    ValueError
        If ``value`` is an unparseable string.
    TypeError
        If ``value`` is neither a string nor a datetime.
    """

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        match = _SHORT_OFFSET.match(text)
        if match:
            text = (
                f"{match['head']}{match['sign']}"
                f"{match['hours']}:{match['minutes'] or '00'}"
            )
        try:
            value = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"Invalid ISO-8601 timestamp: {value!r}") from exc
    if not isinstance(value, datetime):
        raise TypeError("timestamps must be datetime objects or ISO-8601 strings")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def id_sort_key(value: Any) -> tuple[str, Any]:
    """Sort key for draw and participation ids.

    Ids of one type compare natively, so integer ids keep numeric order.
    Mixed types are grouped by type name first.
    """
    return type(value).__name__, value


class Category(str, enum.Enum):
    """Prize tier assigned to a ranked ticket, in priority order."""

    TOP = "TOP"
    SECOND = "SECOND"
    LOWEST = "LOWEST"
    NONE = "NONE"

    @property
    def is_prize(self) -> bool:
        return self is not Category.NONE


PRIZE_CATEGORIES = (Category.TOP, Category.SECOND, Category.LOWEST)


class ContestStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    FINISHED = "finished"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ContestConfig:
    """Contest parameters the engine needs.

    Attributes
    ----------
    contest_id : object
        Identifier of the contest. Opaque to the engine.
    min_number, max_number : int
        Inclusive range tickets choose from.
    numbers_per_participation : int
        Ticket size ``N``.
    first_place_pct, second_place_pct, lowest_place_pct : float
        Share of the revenue paid to TOP, SECOND and LOWEST winners.
    admin_fee_pct : float
        Share of the revenue kept by the operator.
    status : ContestStatus
        Lifecycle status, read but never changed by the engine.
    """

    contest_id: Any
    min_number: int
    max_number: int
    numbers_per_participation: int
    first_place_pct: float = 65.0
    second_place_pct: float = 10.0
    lowest_place_pct: float = 7.0
    admin_fee_pct: float = 18.0
    status: ContestStatus = ContestStatus.ACTIVE

    def pct_for(self, category: Category) -> float:
        """Return the percentage configured for a prize ``category``."""
        if category is Category.TOP:
            return float(self.first_place_pct)
        if category is Category.SECOND:
            return float(self.second_place_pct)
        if category is Category.LOWEST:
            return float(self.lowest_place_pct)
        raise ValueError("Category.NONE has no prize percentage")

    @property
    def total_pct(self) -> float:
        return (
            float(self.first_place_pct)
            + float(self.second_place_pct)
            + float(self.lowest_place_pct)
            + float(self.admin_fee_pct)
        )

    def validate(self) -> None:
        """Check the number range and the percentage split.

        Raises
        ------
        ConfigurationError
            If the range cannot hold a ticket of ``numbers_per_participation``
            numbers, a percentage is negative, or the four percentages do not
            sum to 100 within :data:`PERCENTAGE_TOLERANCE`.
        """

        if self.numbers_per_participation < 1:
            raise ConfigurationError("numbers_per_participation must be at least 1")
        if self.min_number > self.max_number:
            raise ConfigurationError("min_number must not exceed max_number")
        span = self.max_number - self.min_number + 1
        if self.numbers_per_participation > span:
            raise ConfigurationError(
                f"Cannot choose {self.numbers_per_participation} unique numbers "
                f"from [{self.min_number}, {self.max_number}]"
            )
        for name in (
            "first_place_pct",
            "second_place_pct",
            "lowest_place_pct",
            "admin_fee_pct",
        ):
            if float(getattr(self, name)) < 0:
                raise ConfigurationError(f"{name} must not be negative")
        total = self.total_pct
        if abs(total - 100.0) > PERCENTAGE_TOLERANCE:
            raise ConfigurationError(
                f"Prize percentages must sum to 100, got {total:g}"
            )


def _as_number_tuple(numbers: Iterable[int]) -> tuple[int, ...]:
    return tuple(int(n) for n in numbers)


@dataclass(frozen=True)
class DrawInput:
    """A published draw, treated as an immutable historical fact."""

    draw_id: Any
    numbers: tuple[int, ...]
    draw_date: datetime
    code: Optional[str] = None
    contest_id: Any = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "numbers", _as_number_tuple(self.numbers))
        object.__setattr__(self, "draw_date", coerce_timestamp(self.draw_date))


@dataclass(frozen=True)
class ParticipationInput:
    """A paid ticket and the display fields passed through to the ranking."""

    participation_id: Any
    numbers: tuple[int, ...]
    created_at: datetime
    user_id: Any = None
    owner_name: Optional[str] = None
    ticket_code: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "numbers", _as_number_tuple(self.numbers))
        object.__setattr__(self, "created_at", coerce_timestamp(self.created_at))


@dataclass(frozen=True)
class RankingEntry:
    """One ranked ticket."""

    participation_id: Any
    user_id: Any
    owner_name: Optional[str]
    ticket_code: Optional[str]
    numbers: tuple[int, ...]
    created_at: datetime
    hit_numbers: tuple[int, ...]
    score: int
    category: Category
    prize_amount: float
    position: int

    @property
    def is_winner(self) -> bool:
        return self.category.is_prize

    def to_dict(self) -> dict[str, Any]:
        return {
            "participation_id": self.participation_id,
            "user_id": self.user_id,
            "owner_name": self.owner_name,
            "ticket_code": self.ticket_code,
            "numbers": list(self.numbers),
            "created_at": self.created_at.isoformat(),
            "hit_numbers": list(self.hit_numbers),
            "score": self.score,
            "category": self.category.value,
            "is_winner": self.is_winner,
            "prize_amount": self.prize_amount,
            "position": self.position,
        }


@dataclass(frozen=True)
class CategoryPayout:
    """Pool and per-winner amount of a single prize category."""

    category: Category
    pct: float
    winners_count: int
    pool: float
    per_winner: float
    winning_score: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category.value,
            "pct": self.pct,
            "winners_count": self.winners_count,
            "pool": self.pool,
            "per_winner": self.per_winner,
            "winning_score": self.winning_score,
        }


@dataclass(frozen=True)
class PrizeDistribution:
    """Monetary split of the revenue between categories and the operator."""

    total_revenue: float
    admin_reserve: float
    payouts: tuple[CategoryPayout, ...]

    def payout_for(self, category: Category) -> CategoryPayout:
        for payout in self.payouts:
            if payout.category is category:
                return payout
        raise KeyError(category)

    @property
    def distributed(self) -> float:
        """Total paid to participants."""
        return sum(payout.pool for payout in self.payouts)

    @property
    def unclaimed(self) -> float:
        """Revenue earmarked for categories that ended up without winners."""
        return self.total_revenue - self.admin_reserve - self.distributed

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_revenue": self.total_revenue,
            "admin_reserve": self.admin_reserve,
            "distributed": self.distributed,
            "unclaimed": self.unclaimed,
            "payouts": [payout.to_dict() for payout in self.payouts],
        }


@dataclass(frozen=True)
class RankingSummary:
    top_winners_count: int = 0
    second_winners_count: int = 0
    lowest_winners_count: int = 0
    max_score: int = 0
    second_winning_score: Optional[int] = None
    lowest_winning_score: Optional[int] = None
    has_any_winner: bool = False
    invalid_participations_count: int = 0
    malformed_participations_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "top_winners_count": self.top_winners_count,
            "second_winners_count": self.second_winners_count,
            "lowest_winners_count": self.lowest_winners_count,
            "max_score": self.max_score,
            "second_winning_score": self.second_winning_score,
            "lowest_winning_score": self.lowest_winning_score,
            "has_any_winner": self.has_any_winner,
            "invalid_participations_count": self.invalid_participations_count,
            "malformed_participations_count": self.malformed_participations_count,
        }


@dataclass(frozen=True)
class RankingResult:
    """Everything downstream consumers read: entries, summary and prize split."""

    entries: tuple[RankingEntry, ...]
    summary: RankingSummary
    prizes: PrizeDistribution
    cutoff: Optional[datetime] = None
    draws_used: tuple[Any, ...] = field(default_factory=tuple)

    def entry_for(self, participation_id: Any) -> Optional[RankingEntry]:
        for entry in self.entries:
            if entry.participation_id == participation_id:
                return entry
        return None

    def winners(self, category: Optional[Category] = None) -> list[RankingEntry]:
        """Return winning entries, optionally restricted to one ``category``."""
        if category is None:
            return [entry for entry in self.entries if entry.is_winner]
        return [entry for entry in self.entries if entry.category is category]

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": [entry.to_dict() for entry in self.entries],
            "summary": self.summary.to_dict(),
            "prizes": self.prizes.to_dict(),
            "cutoff": self.cutoff.isoformat() if self.cutoff is not None else None,
            "draws_used": list(self.draws_used),
        }


__all__ = [
    "Category",
    "CategoryPayout",
    "ContestConfig",
    "ContestStatus",
    "DrawInput",
    "PERCENTAGE_TOLERANCE",
    "PRIZE_CATEGORIES",
    "ParticipationInput",
    "PrizeDistribution",
    "RankingEntry",
    "RankingResult",
    "RankingSummary",
    "coerce_timestamp",
    "id_sort_key",
]
