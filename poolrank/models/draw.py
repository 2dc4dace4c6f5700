"""Draws published by administrators."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, String, UniqueConstraint, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from poolrank.db.utils import as_utc, dt_iso
from poolrank.ranking.types import DrawInput

from .base import ID_TYPE, Base, utcnow

if TYPE_CHECKING:
    from .contest import Contest


class Draw(Base):
    """A set of numbers revealed for a contest at ``draw_date``."""

    __tablename__ = "draws"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)

    contest_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("contests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    """Foreign key referencing :class:`Contest`."""

    numbers: Mapped[list[int]] = mapped_column(JSON, nullable=False)
    """Unique drawn numbers, ascending."""

    draw_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    """When the numbers were revealed. Drives the late-ticket rules."""

    code: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    """Human readable ``DRW-YYYYMMDD-XXXXXX`` code."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    contest: Mapped["Contest"] = relationship(back_populates="draws")

    __table_args__ = (UniqueConstraint("code"),)

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<Draw(id={self.id}, contest_id={self.contest_id}, code={self.code})>"

    def to_input(self) -> DrawInput:
        return DrawInput(
            draw_id=self.id,
            numbers=self.numbers,
            draw_date=as_utc(self.draw_date),
            code=self.code,
            contest_id=self.contest_id,
        )

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "contest_id": self.contest_id,
            "numbers": list(self.numbers),
            "draw_date": dt_iso(self.draw_date),
            "code": self.code,
        }

    @classmethod
    def list_by_contest(cls, session: Session, contest_id: int) -> list["Draw"]:
        """Return the draws of a contest, oldest first."""
        stmt = (
            select(cls)
            .where(cls.contest_id == contest_id)
            .order_by(cls.draw_date.asc(), cls.id.asc())
        )
        return list(session.scalars(stmt).all())

    @classmethod
    def get_by_code(cls, session: Session, code: str) -> Optional["Draw"]:
        return session.scalar(select(cls).where(cls.code == code))
