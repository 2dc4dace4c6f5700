"""Ranking engine that turns draws and tickets into a ranked prize split."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from .anti_fraud import first_eligible_index, partition_by_cutoff
from .categories import categorize, ranking_sort_key
from .draws import draws_up_to, resolve_cutoff, sort_draws
from .errors import DataIntegrityError
from .hits import TicketScore, build_draw_masks, score_participation, validate_ticket
from .prizes import allocate_prizes
from .types import (
    PRIZE_CATEGORIES,
    Category,
    ContestConfig,
    DrawInput,
    ParticipationInput,
    RankingEntry,
    RankingResult,
    RankingSummary,
)

logger = logging.getLogger(__name__)


class RankingEngine:
    """Computes rankings for a contest without touching storage or the clock.

    Every call reads only its arguments and builds fresh output, so an
    instance can be shared between threads and contests.
    """

    def __init__(self, *, strict: bool = False) -> None:
        """Create a ranking engine.

        Parameters
        ----------
        strict : bool, default: False
            When ``True`` a malformed ticket or a draw of another contest
            raises :class:`~poolrank.ranking.errors.DataIntegrityError`.
            Otherwise it is logged and left out of the ranking. Skipped
            tickets are counted in
            ``RankingSummary.malformed_participations_count``.
        """

        self._strict = strict

    def calculate(
        self,
        contest: ContestConfig,
        draws: Iterable[DrawInput],
        participations: Iterable[ParticipationInput],
        total_revenue: float = 0.0,
        selected_draw_id: Any = None,
    ) -> RankingResult:
        """Rank ``participations`` against ``draws`` and split the revenue.

        Parameters
        ----------
        contest : ContestConfig
            Contest range, ticket size and percentage split.
        draws : Iterable[DrawInput]
            Published draws in any order.
        participations : Iterable[ParticipationInput]
            Paid tickets in any order.
        total_revenue : float, default: 0.0
            Confirmed revenue the percentages apply to.
        selected_draw_id : Any, default: None
            Compute the ranking as it stood right after this draw. Unknown
            ids fall back to the full draw history.

        Returns
        -------
        RankingResult
            Ranked entries, summary and prize distribution.

        Notes
        -----
        The pipeline runs these steps:

        1. Validate the contest configuration.
        2. Sort the draws of this contest, truncate them to the selected draw
           and derive the cutoff timestamp from the draw data.
        3. Drop malformed tickets and tickets created after the cutoff.
        4. Accumulate hits of every ticket over the draws held at or after
           its creation.
        5. Categorize, allocate prizes and assign positions.

        Raises
        ------
        ConfigurationError
            If the contest range or percentage split is invalid.
        DataIntegrityError
            If the engine is strict and a ticket is malformed or a draw
            belongs to another contest.
        """

        contest.validate()

        sorted_draws = sort_draws(self._drop_foreign_draws(contest, draws))
        working_draws = draws_up_to(sorted_draws, selected_draw_id)
        cutoff = resolve_cutoff(sorted_draws, selected_draw_id)
        logger.debug(
            f"Ranking contest {contest.contest_id!r} with "
            f"{len(working_draws)}/{len(sorted_draws)} draws, cutoff={cutoff}"
        )

        well_formed, malformed_count = self._drop_malformed(contest, participations)
        valid, invalid = partition_by_cutoff(well_formed, cutoff)
        if invalid:
            logger.info(
                f"Excluded {len(invalid)} participation(s) of contest "
                f"{contest.contest_id!r} created after the cutoff {cutoff}"
            )

        scored = self._score(contest, working_draws, valid)
        scored.sort(key=ranking_sort_key)

        categorization = categorize(
            [ticket.score for ticket in scored], contest.numbers_per_participation
        )
        winners = {
            category: categorization.count(category) for category in PRIZE_CATEGORIES
        }
        prizes = allocate_prizes(
            total_revenue,
            contest,
            winners,
            {
                category: categorization.winning_score(category)
                for category in PRIZE_CATEGORIES
            },
        )
        amounts = {
            payout.category: payout.per_winner for payout in prizes.payouts
        }
        amounts[Category.NONE] = 0.0

        entries = tuple(
            _build_entry(ticket, category, amounts[category], position)
            for position, (ticket, category) in enumerate(
                zip(scored, categorization.categories), start=1
            )
        )

        summary = RankingSummary(
            top_winners_count=winners[Category.TOP],
            second_winners_count=winners[Category.SECOND],
            lowest_winners_count=winners[Category.LOWEST],
            max_score=max((entry.score for entry in entries), default=0),
            second_winning_score=categorization.second_score,
            lowest_winning_score=categorization.lowest_score,
            has_any_winner=any(winners.values()),
            invalid_participations_count=len(invalid),
            malformed_participations_count=malformed_count,
        )
        return RankingResult(
            entries=entries,
            summary=summary,
            prizes=prizes,
            cutoff=cutoff,
            draws_used=tuple(draw.draw_id for draw in working_draws),
        )

    def _drop_foreign_draws(
        self, contest: ContestConfig, draws: Iterable[DrawInput]
    ) -> list[DrawInput]:
        kept: list[DrawInput] = []
        for draw in draws:
            if (
                contest.contest_id is not None
                and draw.contest_id is not None
                and draw.contest_id != contest.contest_id
            ):
                message = (
                    f"Draw {draw.draw_id!r} belongs to contest {draw.contest_id!r}, "
                    f"not {contest.contest_id!r}"
                )
                if self._strict:
                    raise DataIntegrityError(message)
                logger.warning(f"Skipping draw: {message}")
                continue
            kept.append(draw)
        return kept

    def _drop_malformed(
        self, contest: ContestConfig, participations: Iterable[ParticipationInput]
    ) -> tuple[list[ParticipationInput], int]:
        kept: list[ParticipationInput] = []
        dropped = 0
        for participation in participations:
            try:
                validate_ticket(participation, contest)
            except DataIntegrityError as exc:
                if self._strict:
                    raise
                logger.warning(f"Skipping malformed participation: {exc}")
                dropped += 1
                continue
            kept.append(participation)
        return kept, dropped

    @staticmethod
    def _score(
        contest: ContestConfig,
        working_draws: list[DrawInput],
        participations: list[ParticipationInput],
    ) -> list[TicketScore]:
        masks = build_draw_masks(working_draws, contest)
        draw_dates = [draw.draw_date for draw in working_draws]
        return [
            score_participation(
                participation,
                masks[first_eligible_index(draw_dates, participation.created_at) :],
                contest,
            )
            for participation in participations
        ]


def _build_entry(
    ticket: TicketScore, category: Category, prize_amount: float, position: int
) -> RankingEntry:
    participation = ticket.participation
    return RankingEntry(
        participation_id=participation.participation_id,
        user_id=participation.user_id,
        owner_name=participation.owner_name,
        ticket_code=participation.ticket_code,
        numbers=participation.numbers,
        created_at=participation.created_at,
        hit_numbers=ticket.hit_numbers,
        score=ticket.score,
        category=category,
        prize_amount=prize_amount,
        position=position,
    )


def calculate_ranking(
    contest: ContestConfig,
    draws: Iterable[DrawInput],
    participations: Iterable[ParticipationInput],
    total_revenue: float = 0.0,
    selected_draw_id: Optional[Any] = None,
    *,
    strict: bool = False,
) -> RankingResult:
    """Shortcut for ``RankingEngine(strict=strict).calculate(...)``."""
    return RankingEngine(strict=strict).calculate(
        contest,
        draws,
        participations,
        total_revenue=total_revenue,
        selected_draw_id=selected_draw_id,
    )


__all__ = ["RankingEngine", "calculate_ranking"]
