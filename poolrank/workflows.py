import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .db.utils import as_utc
from .models import Contest, Discount, Draw, Participation, Payment
from .models.utils import (
    DRAW_CODE_PREFIX,
    TICKET_CODE_PREFIX,
    generate_unique_code,
    is_valid_code,
)
from .ranking.engine import RankingEngine
from .ranking.hits import validate_ticket
from .ranking.types import ContestStatus, ParticipationInput, RankingResult

logger = logging.getLogger(__name__)


def create_contest(
    session: Session,
    *,
    name: str,
    min_number: int,
    max_number: int,
    numbers_per_participation: int,
    first_place_pct: float = 65.0,
    second_place_pct: float = 10.0,
    lowest_place_pct: float = 7.0,
    admin_fee_pct: float = 18.0,
    participation_value: Optional[float] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    status: str = ContestStatus.DRAFT.value,
    description: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Contest:
    """Create and persist a contest after validating its configuration.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    name : str
        Display name of the contest.
    min_number, max_number : int
        Inclusive range tickets choose from.
    numbers_per_participation : int
        Ticket size.
    first_place_pct, second_place_pct, lowest_place_pct, admin_fee_pct : float
        Revenue split. Must add up to 100.
    participation_value : Optional[float], default: None
        Ticket price.
    start_date, end_date : Optional[datetime], default: None
        Window in which tickets are sold.
    status : str, default: "draft"
        Initial lifecycle status.

    Returns
    -------
    Contest
        The persisted contest with its ``id`` populated.

    Raises
    ------
    ConfigurationError
        If the number range or the percentages are invalid.
    ValueError
        If ``end_date`` is before ``start_date`` or the price is negative.
    """

    if start_date is not None and end_date is not None and end_date < start_date:
        raise ValueError("end_date must not be before start_date")
    if participation_value is not None and participation_value < 0:
        raise ValueError("participation_value must not be negative")

    contest = Contest(
        name=name,
        min_number=min_number,
        max_number=max_number,
        numbers_per_participation=numbers_per_participation,
        first_place_pct=first_place_pct,
        second_place_pct=second_place_pct,
        lowest_place_pct=lowest_place_pct,
        admin_fee_pct=admin_fee_pct,
        participation_value=participation_value,
        start_date=start_date,
        end_date=end_date,
        status=status,
        description=description,
        created_by=created_by,
    )
    contest.to_config().validate()

    session.add(contest)
    session.flush()
    logger.info(f"Created contest {contest.id} ({contest.name})")
    return contest


def can_accept_participations(contest: Contest, now: datetime) -> bool:
    """Return ``True`` if tickets may be bought for ``contest`` at ``now``.

    The contest must be active and ``now`` must fall inside its sales window.
    Published draws do not close sales; the contest stays open until its
    status changes.
    """

    if contest.status != ContestStatus.ACTIVE.value:
        return False
    now = as_utc(now)
    start = as_utc(contest.start_date)
    end = as_utc(contest.end_date)
    if start is not None and now < start:
        return False
    if end is not None and end < now:
        return False
    return True


@dataclass(frozen=True)
class ContestPhase:
    """Display state of a contest."""

    phase: str
    label: str
    accepts_participations: bool
    message: str


def contest_phase(contest: Contest, now: datetime, has_draws: bool = False) -> ContestPhase:
    """Describe where ``contest`` is in its lifecycle at ``now``.

    The phase is one of ``finished``, ``inactive``, ``upcoming``,
    ``awaiting_result``, ``ongoing`` or ``accepting``.
    """

    if contest.status == ContestStatus.FINISHED.value:
        return ContestPhase("finished", "Finished", False, "This contest has finished")
    if contest.status != ContestStatus.ACTIVE.value:
        label = "Draft" if contest.status == ContestStatus.DRAFT.value else "Cancelled"
        return ContestPhase("inactive", label, False, "This contest is not active")

    now = as_utc(now)
    start = as_utc(contest.start_date)
    end = as_utc(contest.end_date)
    if start is not None and now < start:
        return ContestPhase(
            "upcoming", "Upcoming", False, "This contest has not started yet"
        )
    if end is not None and end < now:
        return ContestPhase(
            "awaiting_result",
            "Awaiting result",
            False,
            "Sales are closed. Waiting for the draw results.",
        )
    if has_draws:
        return ContestPhase(
            "ongoing", "Ongoing", True, "Contest in progress. Draws have started."
        )
    return ContestPhase(
        "accepting",
        "Accepting participations",
        True,
        "You can join this contest",
    )


def create_discount(
    session: Session,
    *,
    code: str,
    name: str,
    discount_type: str,
    discount_value: float,
    start_date: datetime,
    end_date: datetime,
    contest: Optional[Contest] = None,
    max_uses: Optional[int] = None,
    description: Optional[str] = None,
) -> Discount:
    """Create a discount code, global or limited to ``contest``.

    Raises
    ------
    ValueError
        If the window is empty, the code is taken, or the type or value are
        invalid.
    """

    if as_utc(end_date) <= as_utc(start_date):
        raise ValueError("end_date must be after start_date")
    if Discount.get_by_code(session, code) is not None:
        raise ValueError(f"Discount code '{code.strip().upper()}' already exists")

    discount = Discount(
        code=code,
        name=name,
        discount_type=discount_type,
        discount_value=discount_value,
        start_date=start_date,
        end_date=end_date,
        contest_id=contest.id if contest is not None else None,
        max_uses=max_uses,
        description=description,
    )
    session.add(discount)
    session.flush()
    logger.info(f"Created discount {discount.id} ({discount.code})")
    return discount


@dataclass(frozen=True)
class AppliedDiscount:
    discount: Discount
    original_price: float
    final_price: float


def apply_discount(
    session: Session, contest: Contest, code: str, now: datetime
) -> AppliedDiscount:
    """Redeem ``code`` for one ticket of ``contest`` and count the use.

    Raises
    ------
    ValueError
        If the contest has no price, or the code is unknown, limited to
        another contest, inactive, outside its window or used up.
    """

    if contest.participation_value is None:
        raise ValueError(f"Contest {contest.id} has no ticket price to discount")
    discount = Discount.get_by_code(session, code)
    if discount is None:
        raise ValueError(f"Unknown discount code '{code}'")
    if not discount.applies_to(contest.id):
        raise ValueError(f"Discount {discount.code} is not valid for contest {contest.id}")
    if not discount.is_available(now):
        raise ValueError(f"Discount {discount.code} is not available")

    original = contest.participation_value
    final = discount.price_for(original, now)
    discount.current_uses += 1
    session.flush()
    logger.info(
        f"Discount {discount.code} applied to contest {contest.id}: {original} -> {final}"
    )
    return AppliedDiscount(discount=discount, original_price=original, final_price=final)


def create_participation(
    session: Session,
    contest: Contest,
    user_id: str,
    numbers: Iterable[int],
    *,
    owner_name: Optional[str] = None,
    created_at: Optional[datetime] = None,
    discount_code: Optional[str] = None,
) -> Participation:
    """Register a pending ticket for ``user_id`` in ``contest``.

    The ticket only takes part in the ranking once its payment is confirmed
    with :func:`confirm_payment`. ``amount_due`` starts at the contest price,
    reduced by ``discount_code`` when one is given.

    Raises
    ------
    ValueError
        If the contest is not persisted, does not accept participations at
        ``created_at``, or the discount code cannot be redeemed.
    DataIntegrityError
        If ``numbers`` is not a valid ticket for the contest.
    """

    if contest.id is None:
        raise ValueError("Contest must be persisted before joining it")

    now = as_utc(created_at) if created_at is not None else datetime.now(timezone.utc)
    if not can_accept_participations(contest, now):
        raise ValueError(f"Contest {contest.id} does not accept participations")

    chosen = sorted(int(n) for n in numbers)
    validate_ticket(
        ParticipationInput(participation_id=None, numbers=chosen, created_at=now),
        contest.to_config(),
    )

    amount_due = contest.participation_value
    discount = None
    if discount_code is not None:
        applied = apply_discount(session, contest, discount_code, now)
        amount_due = applied.final_price
        discount = applied.discount

    participation = Participation(
        contest=contest,
        user_id=user_id,
        numbers=chosen,
        owner_name=owner_name,
        ticket_code=generate_unique_code(
            TICKET_CODE_PREFIX, now, session, Participation.ticket_code
        ),
        created_at=now,
        amount_due=amount_due,
        discount=discount,
    )
    session.add(participation)
    session.flush()
    logger.info(
        f"Participation {participation.id} ({participation.ticket_code}) created "
        f"for user {user_id} in contest {contest.id}"
    )
    return participation


def confirm_payment(
    session: Session,
    participation: Participation,
    amount: float,
    *,
    external_id: Optional[str] = None,
    paid_at: Optional[datetime] = None,
) -> Payment:
    """Record a paid payment and activate ``participation``.

    Gateway callbacks are handled elsewhere; this only updates the ledger
    once the money is confirmed. Confirmations may arrive more than once:
    an already paid participation returns its existing payment, and a
    pending payment with the same ``external_id`` is marked paid in place.

    Raises
    ------
    ValueError
        If the participation is not persisted or cancelled, or
        ``external_id`` belongs to another participation or a refund.
    """

    if participation.id is None:
        raise ValueError("Participation must be persisted before confirming payment")
    if participation.status == "cancelled":
        raise ValueError("Cannot confirm payment for a cancelled participation")

    when = paid_at if paid_at is not None else datetime.now(timezone.utc)
    payment = _known_payment(session, participation, external_id)
    if payment is None:
        payment = next(
            (p for p in participation.payments if p.status == "paid"), None
        )
    if payment is not None and payment.status == "paid":
        participation.status = "active"
        logger.info(
            f"Payment {payment.id} for participation {participation.id} "
            "was already confirmed"
        )
        return payment

    if payment is None:
        payment = Payment(
            participation=participation,
            amount=amount,
            status="paid",
            external_id=external_id,
            paid_at=when,
        )
        session.add(payment)
    else:
        payment.amount = amount
        payment.status = "paid"
        payment.paid_at = when
    participation.status = "active"
    session.flush()
    logger.info(
        f"Payment {payment.id} of {amount} confirmed for participation {participation.id}"
    )
    return payment


def _known_payment(
    session: Session, participation: Participation, external_id: Optional[str]
) -> Optional[Payment]:
    if external_id is None:
        return None
    payment = session.scalar(select(Payment).where(Payment.external_id == external_id))
    if payment is None:
        return None
    if payment.participation_id != participation.id:
        raise ValueError(
            f"Payment '{external_id}' belongs to participation {payment.participation_id}"
        )
    if payment.status == "refunded":
        raise ValueError(f"Payment '{external_id}' was refunded")
    return payment


def publish_draw(
    session: Session,
    contest: Contest,
    numbers: Iterable[int],
    *,
    draw_date: Optional[datetime] = None,
    code: Optional[str] = None,
) -> Draw:
    """Publish a draw of unique numbers for an active contest.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    contest : Contest
        Persisted, active contest.
    numbers : Iterable[int]
        Drawn numbers. Any count is allowed but all must be unique and inside
        the contest range.
    draw_date : Optional[datetime], default: None
        Reveal time; defaults to now.
    code : Optional[str], default: None
        ``DRW-YYYYMMDD-XXXXXX`` code. Generated when omitted.

    Raises
    ------
    ValueError
        If the contest is not active or the numbers or code are invalid.
    """

    if contest.id is None:
        raise ValueError("Contest must be persisted before publishing draws")
    if contest.status != ContestStatus.ACTIVE.value:
        raise ValueError(f"Contest {contest.id} is not active")

    drawn = sorted(int(n) for n in numbers)
    if not drawn:
        raise ValueError("A draw must contain at least one number")
    if len(set(drawn)) != len(drawn):
        raise ValueError("Draw numbers must be unique")
    if drawn[0] < contest.min_number or drawn[-1] > contest.max_number:
        raise ValueError(
            f"Draw numbers must be within [{contest.min_number}, {contest.max_number}]"
        )

    when = as_utc(draw_date) if draw_date is not None else datetime.now(timezone.utc)
    if code is None:
        code = generate_unique_code(DRAW_CODE_PREFIX, when, session, Draw.code)
    elif not is_valid_code(DRAW_CODE_PREFIX, code):
        raise ValueError(f"Invalid draw code '{code}'")

    draw = Draw(contest_id=contest.id, numbers=drawn, draw_date=when, code=code)
    session.add(draw)
    session.flush()
    logger.info(f"Draw {draw.id} ({draw.code}) published for contest {contest.id}")
    return draw


def contest_total_revenue(session: Session, contest: Contest) -> float:
    """Sum the paid payments of the active participations of ``contest``."""
    stmt = (
        select(func.coalesce(func.sum(Payment.amount), 0.0))
        .join(Participation, Payment.participation_id == Participation.id)
        .where(
            Participation.contest_id == contest.id,
            Participation.status == "active",
            Payment.status == "paid",
        )
    )
    return float(session.scalar(stmt) or 0.0)


def build_contest_ranking(
    session: Session,
    contest: Contest,
    selected_draw_id: Optional[Any] = None,
    *,
    engine: Optional[RankingEngine] = None,
) -> RankingResult:
    """Load a contest's draws, paid tickets and revenue and rank them.

    Parameters
    ----------
    session : Session
        Session used to query the contest data.
    contest : Contest
        Persisted contest to rank.
    selected_draw_id : Optional[Any], default: None
        Show the ranking as it stood right after this draw.
    engine : Optional[RankingEngine], default: None
        Engine override, e.g. a strict one.

    Returns
    -------
    RankingResult
        Ranked entries, summary and prize split.
    """

    if contest.id is None:
        raise ValueError("Contest must be persisted before ranking it")

    draws = [draw.to_input() for draw in Draw.list_by_contest(session, contest.id)]
    participations = [
        participation.to_input()
        for participation in Participation.list_active_by_contest(session, contest.id)
    ]
    revenue = contest_total_revenue(session, contest)
    active_engine = engine or RankingEngine()
    return active_engine.calculate(
        contest.to_config(),
        draws,
        participations,
        total_revenue=revenue,
        selected_draw_id=selected_draw_id,
    )


def finish_contest_if_completed(
    session: Session,
    contest: Contest,
    *,
    engine: Optional[RankingEngine] = None,
) -> bool:
    """Mark ``contest`` finished once a ticket has hit all of its numbers.

    Returns
    -------
    bool
        ``True`` when the status changed to ``finished``.
    """

    if contest.status != ContestStatus.ACTIVE.value:
        return False
    ranking = build_contest_ranking(session, contest, engine=engine)
    if ranking.summary.top_winners_count == 0:
        return False
    contest.status = ContestStatus.FINISHED.value
    session.flush()
    logger.info(
        f"Contest {contest.id} finished with "
        f"{ranking.summary.top_winners_count} top winner(s)"
    )
    return True


@dataclass(frozen=True)
class DailyRevenue:
    day: date
    revenue: float
    participations: int


def revenue_by_day(session: Session, contest: Contest) -> list[DailyRevenue]:
    """Group paid revenue and active tickets by the day tickets were bought.

    Only days with activity are returned, oldest first.
    """

    revenue: dict[date, float] = defaultdict(float)
    counts: dict[date, int] = defaultdict(int)
    for participation in Participation.list_active_by_contest(session, contest.id):
        day = as_utc(participation.created_at).date()
        counts[day] += 1
        revenue[day] += sum(
            payment.amount for payment in participation.payments if payment.status == "paid"
        )
    return [
        DailyRevenue(day=day, revenue=revenue[day], participations=counts[day])
        for day in sorted(counts)
    ]


@dataclass(frozen=True)
class ContestReport:
    """Figures shown on a contest report.

    ``report_type`` is ``initial`` before any draw, ``final`` once the
    contest finished with draws, ``intermediate`` in between.
    """

    contest: Contest
    draw: Optional[Draw]
    draws: list[Draw]
    participations: list[Participation]
    total_participants: int
    total_participations: int
    total_revenue: float
    report_type: str
    revenue_by_day: list[DailyRevenue]
    ranking: RankingResult


def contest_report(
    session: Session, contest: Contest, draw_id: Optional[Any] = None
) -> ContestReport:
    """Collect the data of a contest report, optionally as of ``draw_id``.

    Without ``draw_id`` the latest draw is reported. An unknown ``draw_id``
    leaves ``draw`` empty and ranks against every draw.
    """

    if contest.id is None:
        raise ValueError("Contest must be persisted before reporting on it")

    draws = list(reversed(Draw.list_by_contest(session, contest.id)))
    if draw_id is not None:
        draw = next((d for d in draws if d.id == draw_id), None)
    else:
        draw = draws[0] if draws else None

    participations = list(
        reversed(Participation.list_active_by_contest(session, contest.id))
    )

    if not draws:
        report_type = "initial"
    elif contest.status == ContestStatus.FINISHED.value:
        report_type = "final"
    else:
        report_type = "intermediate"

    return ContestReport(
        contest=contest,
        draw=draw,
        draws=draws,
        participations=participations,
        total_participants=len({p.user_id for p in participations}),
        total_participations=len(participations),
        total_revenue=contest_total_revenue(session, contest),
        report_type=report_type,
        revenue_by_day=revenue_by_day(session, contest),
        ranking=build_contest_ranking(
            session, contest, selected_draw_id=draw.id if draw is not None else None
        ),
    )
