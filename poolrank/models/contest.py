"""Contest model: number range, ticket size and prize split."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Float, Integer, String, Text, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship, validates

from poolrank.db.utils import dt_iso
from poolrank.ranking.types import ContestConfig, ContestStatus

from .base import ID_TYPE, Base, utcnow

if TYPE_CHECKING:
    from .draw import Draw
    from .participation import Participation

CONTEST_STATUSES = tuple(status.value for status in ContestStatus)


class Contest(Base):
    """A numbers contest users buy tickets for."""

    __tablename__ = "contests"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    """Display name."""

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    min_number: Mapped[int] = mapped_column(Integer, nullable=False)
    """Smallest number a ticket may choose."""

    max_number: Mapped[int] = mapped_column(Integer, nullable=False)
    """Largest number a ticket may choose."""

    numbers_per_participation: Mapped[int] = mapped_column(Integer, nullable=False)
    """How many unique numbers every ticket holds."""

    first_place_pct: Mapped[float] = mapped_column(Float, nullable=False, default=65.0)
    """Share of the revenue paid to tickets that hit all their numbers."""

    second_place_pct: Mapped[float] = mapped_column(Float, nullable=False, default=10.0)
    """Share of the revenue paid to the second best score."""

    lowest_place_pct: Mapped[float] = mapped_column(Float, nullable=False, default=7.0)
    """Share of the revenue paid to the lowest positive score."""

    admin_fee_pct: Mapped[float] = mapped_column(Float, nullable=False, default=18.0)
    """Share of the revenue kept by the operator."""

    participation_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    """Ticket price."""

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ContestStatus.DRAFT.value
    )
    """One of ``draft``, ``active``, ``finished`` or ``cancelled``."""

    start_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    end_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    draws: Mapped[list["Draw"]] = relationship(
        back_populates="contest",
        cascade="all, delete-orphan",
        order_by="Draw.draw_date",
    )
    """Draws published for this contest, oldest first."""

    participations: Mapped[list["Participation"]] = relationship(
        back_populates="contest",
        cascade="all, delete-orphan",
    )

    def __init__(
        self,
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
        status: str = ContestStatus.DRAFT.value,
        description: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        created_by: Optional[str] = None,
    ) -> None:
        self.name = name
        self.min_number = min_number
        self.max_number = max_number
        self.numbers_per_participation = numbers_per_participation
        self.first_place_pct = first_place_pct
        self.second_place_pct = second_place_pct
        self.lowest_place_pct = lowest_place_pct
        self.admin_fee_pct = admin_fee_pct
        self.participation_value = participation_value
        self.status = status
        self.description = description
        self.start_date = start_date
        self.end_date = end_date
        self.created_by = created_by

    @validates("status")
    def _validate_status(self, _key: str, value: str) -> str:
        if value not in CONTEST_STATUSES:
            raise ValueError(f"Unknown contest status '{value}'")
        return value

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<Contest(id={id}, name={name}, status={status})>".format(
            id=self.id, name=self.name, status=self.status
        )

    def to_config(self) -> ContestConfig:
        """Return the engine-facing configuration of this contest."""
        return ContestConfig(
            contest_id=self.id,
            min_number=self.min_number,
            max_number=self.max_number,
            numbers_per_participation=self.numbers_per_participation,
            first_place_pct=self.first_place_pct,
            second_place_pct=self.second_place_pct,
            lowest_place_pct=self.lowest_place_pct,
            admin_fee_pct=self.admin_fee_pct,
            status=ContestStatus(self.status),
        )

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "min_number": self.min_number,
            "max_number": self.max_number,
            "numbers_per_participation": self.numbers_per_participation,
            "first_place_pct": self.first_place_pct,
            "second_place_pct": self.second_place_pct,
            "lowest_place_pct": self.lowest_place_pct,
            "admin_fee_pct": self.admin_fee_pct,
            "participation_value": self.participation_value,
            "status": self.status,
            "start_date": dt_iso(self.start_date),
            "end_date": dt_iso(self.end_date),
            "created_at": dt_iso(self.created_at),
        }

    @classmethod
    def get_by_id(cls, session: Session, contest_id: int) -> Optional["Contest"]:
        return session.get(cls, contest_id)

    @classmethod
    def list_active(cls, session: Session) -> list["Contest"]:
        """Return active contests, newest first."""
        stmt = (
            select(cls)
            .where(cls.status == ContestStatus.ACTIVE.value)
            .order_by(cls.created_at.desc(), cls.id.desc())
        )
        return list(session.scalars(stmt).all())
