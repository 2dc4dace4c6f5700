"""Accumulated hit tracking over bounded integer sets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

from .errors import DataIntegrityError
from .types import ContestConfig, DrawInput, ParticipationInput


class NumberSet:
    """Set of integers within ``[low, high]`` stored as a bit mask.

    Bit ``i`` of the mask represents the number ``low + i``. Membership,
    intersection and union are single integer operations.
    """

    __slots__ = ("_low", "_high", "_mask")

    def __init__(self, low: int, high: int, mask: int = 0) -> None:
        if low > high:
            raise ValueError("low must not exceed high")
        self._low = low
        self._high = high
        self._mask = mask

    @classmethod
    def from_numbers(
        cls, numbers: Iterable[int], low: int, high: int
    ) -> "NumberSet":
        """Build a set from ``numbers``, ignoring values outside the range.

        Draw numbers outside a contest's range can never match a valid ticket,
        so dropping them does not change any score.
        """

        mask = 0
        for number in numbers:
            if low <= number <= high:
                mask |= 1 << (number - low)
        return cls(low, high, mask)

    @property
    def low(self) -> int:
        return self._low

    @property
    def high(self) -> int:
        return self._high

    @property
    def mask(self) -> int:
        return self._mask

    def _check_compatible(self, other: "NumberSet") -> None:
        if (self._low, self._high) != (other._low, other._high):
            raise ValueError("NumberSet ranges differ")

    def __and__(self, other: "NumberSet") -> "NumberSet":
        self._check_compatible(other)
        return NumberSet(self._low, self._high, self._mask & other._mask)

    def __or__(self, other: "NumberSet") -> "NumberSet":
        self._check_compatible(other)
        return NumberSet(self._low, self._high, self._mask | other._mask)

    def __contains__(self, number: object) -> bool:
        if not isinstance(number, int) or not self._low <= number <= self._high:
            return False
        return bool(self._mask >> (number - self._low) & 1)

    def __len__(self) -> int:
        return self._mask.bit_count()

    def __bool__(self) -> bool:
        return self._mask != 0

    def __iter__(self) -> Iterator[int]:
        mask = self._mask
        offset = 0
        while mask:
            if mask & 1:
                yield self._low + offset
            mask >>= 1
            offset += 1

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NumberSet):
            return NotImplemented
        return (self._low, self._high, self._mask) == (
            other._low,
            other._high,
            other._mask,
        )

    def __hash__(self) -> int:
        return hash((self._low, self._high, self._mask))

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"NumberSet({self._low}..{self._high}, {list(self)})"

    def to_tuple(self) -> tuple[int, ...]:
        """Return the members in ascending order."""
        return tuple(self)


def validate_ticket(participation: ParticipationInput, config: ContestConfig) -> None:
    """Raise :class:`DataIntegrityError` if the ticket cannot be scored.

    A ticket must hold exactly ``numbers_per_participation`` unique numbers,
    all inside the contest range.
    """

    numbers = participation.numbers
    expected = config.numbers_per_participation
    if len(numbers) != expected:
        raise DataIntegrityError(
            f"Participation {participation.participation_id!r} has "
            f"{len(numbers)} numbers, expected {expected}",
            participation.participation_id,
        )
    if len(set(numbers)) != len(numbers):
        raise DataIntegrityError(
            f"Participation {participation.participation_id!r} repeats numbers",
            participation.participation_id,
        )
    out_of_range = [
        n for n in numbers if not config.min_number <= n <= config.max_number
    ]
    if out_of_range:
        raise DataIntegrityError(
            f"Participation {participation.participation_id!r} has numbers "
            f"outside [{config.min_number}, {config.max_number}]: {out_of_range}",
            participation.participation_id,
        )


@dataclass(frozen=True)
class DrawMask:
    """A draw paired with its precomputed number set."""

    draw: DrawInput
    numbers: NumberSet


def build_draw_masks(
    draws: Iterable[DrawInput], config: ContestConfig
) -> list[DrawMask]:
    return [
        DrawMask(
            draw=draw,
            numbers=NumberSet.from_numbers(
                draw.numbers, config.min_number, config.max_number
            ),
        )
        for draw in draws
    ]


def accumulate_hits(ticket: NumberSet, draws: Iterable[NumberSet]) -> NumberSet:
    """Return the ticket numbers hit by any of ``draws``.

    The result is the union of each draw's intersection with the ticket, so a
    number stays credited once hit and is never counted twice. Union and
    intersection commute, so the order of ``draws`` is irrelevant.
    """

    hits = NumberSet(ticket.low, ticket.high)
    for draw in draws:
        hits = hits | (ticket & draw)
    return hits


@dataclass(frozen=True)
class TicketScore:
    """Accumulated hits of one participation."""

    participation: ParticipationInput
    hit_numbers: tuple[int, ...]

    @property
    def score(self) -> int:
        return len(self.hit_numbers)


def score_participation(
    participation: ParticipationInput,
    eligible: Iterable[DrawMask],
    config: ContestConfig,
) -> TicketScore:
    """Score ``participation`` against its already-eligible draw masks."""
    ticket = NumberSet.from_numbers(
        participation.numbers, config.min_number, config.max_number
    )
    hits = accumulate_hits(ticket, (draw_mask.numbers for draw_mask in eligible))
    return TicketScore(participation=participation, hit_numbers=hits.to_tuple())


__all__ = [
    "DrawMask",
    "NumberSet",
    "TicketScore",
    "accumulate_hits",
    "build_draw_masks",
    "score_participation",
    "validate_ticket",
]
