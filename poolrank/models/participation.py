"""Tickets bought by users and their payment ledger."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    JSON,
    DateTime,
    Float,
    ForeignKey,
    String,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship, validates

from poolrank.db.utils import as_utc, dt_iso
from poolrank.ranking.types import ParticipationInput

from .base import ID_TYPE, Base, utcnow

if TYPE_CHECKING:
    from .contest import Contest
    from .discount import Discount

PARTICIPATION_STATUSES = ("pending", "active", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "refunded")


class Participation(Base):
    """A ticket of ``numbers_per_participation`` numbers in a contest.

    Only ``active`` (paid) participations take part in the ranking.
    """

    __tablename__ = "participations"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)

    contest_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("contests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    """Foreign key referencing :class:`Contest`."""

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    """Identifier of the owner in the authentication system."""

    owner_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Display name shown in the ranking."""

    numbers: Mapped[list[int]] = mapped_column(JSON, nullable=False)
    """Chosen numbers, ascending."""

    ticket_code: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    """Human readable ``TKT-YYYYMMDD-XXXXXX`` code."""

    amount_due: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    """Price to pay after any discount."""

    discount_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("discounts.id", ondelete="SET NULL"), nullable=True
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    """One of ``pending``, ``active`` or ``cancelled``."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    """Purchase time. Draws before it never count for this ticket."""

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    contest: Mapped["Contest"] = relationship(back_populates="participations")
    discount: Mapped[Optional["Discount"]] = relationship()
    payments: Mapped[list["Payment"]] = relationship(
        back_populates="participation",
        cascade="all, delete-orphan",
    )

    __table_args__ = (UniqueConstraint("ticket_code"),)

    def __init__(
        self,
        *,
        contest_id: Optional[int] = None,
        contest: Optional["Contest"] = None,
        user_id: str,
        numbers: list[int],
        owner_name: Optional[str] = None,
        ticket_code: Optional[str] = None,
        status: str = "pending",
        created_at: Optional[datetime] = None,
        amount_due: Optional[float] = None,
        discount: Optional["Discount"] = None,
    ) -> None:
        if contest is not None:
            self.contest = contest
        if contest_id is not None:
            self.contest_id = contest_id
        self.user_id = user_id
        self.numbers = sorted(numbers)
        self.owner_name = owner_name
        self.ticket_code = ticket_code
        self.status = status
        self.created_at = created_at if created_at is not None else utcnow()
        self.amount_due = amount_due
        if discount is not None:
            self.discount = discount

    @validates("status")
    def _validate_status(self, _key: str, value: str) -> str:
        if value not in PARTICIPATION_STATUSES:
            raise ValueError(f"Unknown participation status '{value}'")
        return value

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<Participation(id={id}, contest_id={contest}, status={status})>".format(
            id=self.id, contest=self.contest_id, status=self.status
        )

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def to_input(self) -> ParticipationInput:
        return ParticipationInput(
            participation_id=self.id,
            numbers=self.numbers,
            created_at=as_utc(self.created_at),
            user_id=self.user_id,
            owner_name=self.owner_name,
            ticket_code=self.ticket_code,
        )

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "contest_id": self.contest_id,
            "user_id": self.user_id,
            "owner_name": self.owner_name,
            "numbers": list(self.numbers),
            "ticket_code": self.ticket_code,
            "status": self.status,
            "amount_due": self.amount_due,
            "discount_id": self.discount_id,
            "created_at": dt_iso(self.created_at),
        }

    @classmethod
    def list_active_by_contest(
        cls, session: Session, contest_id: int
    ) -> list["Participation"]:
        """Return the paid participations of a contest, oldest first."""
        stmt = (
            select(cls)
            .where(cls.contest_id == contest_id, cls.status == "active")
            .order_by(cls.created_at.asc(), cls.id.asc())
        )
        return list(session.scalars(stmt).all())

    @classmethod
    def list_by_user(
        cls, session: Session, contest_id: int, user_id: str
    ) -> list["Participation"]:
        """Return a user's participations in a contest, newest first."""
        stmt = (
            select(cls)
            .where(cls.contest_id == contest_id, cls.user_id == user_id)
            .order_by(cls.created_at.desc(), cls.id.desc())
        )
        return list(session.scalars(stmt).all())


class Payment(Base):
    """Ledger row recording money received for a participation."""

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)

    participation_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("participations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    amount: Mapped[float] = mapped_column(Float, nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    """One of ``pending``, ``paid`` or ``refunded``."""

    external_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    """Identifier assigned by the payment gateway."""

    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    participation: Mapped["Participation"] = relationship(back_populates="payments")

    __table_args__ = (UniqueConstraint("external_id"),)

    @validates("status")
    def _validate_status(self, _key: str, value: str) -> str:
        if value not in PAYMENT_STATUSES:
            raise ValueError(f"Unknown payment status '{value}'")
        return value

    @validates("amount")
    def _validate_amount(self, _key: str, value: float) -> float:
        if value < 0:
            raise ValueError("Payment amount must not be negative")
        return value
