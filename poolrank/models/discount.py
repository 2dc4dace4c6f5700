"""Promotional discounts applied to ticket prices."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    or_,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship, validates

from poolrank.db.utils import as_utc, dt_iso

from .base import ID_TYPE, Base, utcnow

if TYPE_CHECKING:
    from .contest import Contest

DISCOUNT_TYPES = ("percentage", "fixed")


def discounted_price(
    original_price: float, discount_type: str, discount_value: float
) -> float:
    """Return ``original_price`` after a percentage or fixed discount.

    Parameters
    ----------
    original_price : float
        Price before the discount.
    discount_type : str
        ``"percentage"`` takes ``discount_value`` percent off, ``"fixed"``
        subtracts ``discount_value``.
    discount_value : float
        Size of the discount.

    Returns
    -------
    float
        The discounted price, never below zero.

    Raises
    ------
    ValueError
        If ``discount_type`` is unknown.
    """

    if discount_type == "percentage":
        reduced = original_price - original_price * discount_value / 100
    elif discount_type == "fixed":
        reduced = original_price - discount_value
    else:
        raise ValueError(f"Unknown discount type '{discount_type}'")
    return max(0.0, reduced)


class Discount(Base):
    """A discount code, global or limited to one contest."""

    __tablename__ = "discounts"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)

    code: Mapped[str] = mapped_column(String(64), nullable=False)
    """Upper-case code typed by the buyer."""

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    discount_type: Mapped[str] = mapped_column(String(20), nullable=False)
    """One of ``percentage`` or ``fixed``."""

    discount_value: Mapped[float] = mapped_column(Float, nullable=False)

    contest_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("contests.id", ondelete="CASCADE"), nullable=True, index=True
    )
    """Contest the code is limited to. ``None`` makes it global."""

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    max_uses: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    """Usage cap. ``None`` means unlimited."""

    current_uses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    contest: Mapped[Optional["Contest"]] = relationship()

    __table_args__ = (UniqueConstraint("code"),)

    def __init__(
        self,
        *,
        code: str,
        name: str,
        discount_type: str,
        discount_value: float,
        start_date: datetime,
        end_date: datetime,
        contest_id: Optional[int] = None,
        max_uses: Optional[int] = None,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> None:
        self.code = code
        self.name = name
        self.discount_type = discount_type
        self.discount_value = discount_value
        self.start_date = start_date
        self.end_date = end_date
        self.contest_id = contest_id
        self.max_uses = max_uses
        self.current_uses = 0
        self.description = description
        self.is_active = is_active

    @validates("code")
    def _normalize_code(self, _key: str, value: str) -> str:
        code = value.strip().upper()
        if not code:
            raise ValueError("Discount code must not be empty")
        return code

    @validates("discount_type")
    def _validate_type(self, _key: str, value: str) -> str:
        if value not in DISCOUNT_TYPES:
            raise ValueError(f"Unknown discount type '{value}'")
        return value

    @validates("discount_value")
    def _validate_value(self, _key: str, value: float) -> float:
        if value <= 0:
            raise ValueError("Discount value must be greater than zero")
        if self.discount_type == "percentage" and value > 100:
            raise ValueError("Percentage discounts must be between 0 and 100")
        return value

    @validates("max_uses")
    def _validate_max_uses(self, _key: str, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 1:
            raise ValueError("max_uses must be at least 1")
        return value

    def is_available(self, now: datetime) -> bool:
        """Return ``True`` if the code can be redeemed at ``now``."""
        if not self.is_active:
            return False
        now = as_utc(now)
        if now < as_utc(self.start_date) or as_utc(self.end_date) < now:
            return False
        if self.max_uses is not None and self.current_uses >= self.max_uses:
            return False
        return True

    def applies_to(self, contest_id: Optional[int]) -> bool:
        return self.contest_id is None or self.contest_id == contest_id

    def price_for(self, original_price: float, now: datetime) -> float:
        """Discounted price at ``now``; the original price when unavailable."""
        if not self.is_available(now):
            return original_price
        return discounted_price(original_price, self.discount_type, self.discount_value)

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "discount_type": self.discount_type,
            "discount_value": self.discount_value,
            "contest_id": self.contest_id,
            "start_date": dt_iso(self.start_date),
            "end_date": dt_iso(self.end_date),
            "max_uses": self.max_uses,
            "current_uses": self.current_uses,
            "is_active": self.is_active,
        }

    @classmethod
    def get_by_code(cls, session: Session, code: str) -> Optional["Discount"]:
        return session.scalar(select(cls).where(cls.code == code.strip().upper()))

    @classmethod
    def list_available(
        cls, session: Session, now: datetime, contest_id: Optional[int] = None
    ) -> list["Discount"]:
        """Return codes redeemable at ``now``, newest first.

        With ``contest_id`` both global codes and codes of that contest are
        returned, otherwise only global ones.
        """
        scope = (
            or_(cls.contest_id == contest_id, cls.contest_id.is_(None))
            if contest_id is not None
            else cls.contest_id.is_(None)
        )
        stmt = (
            select(cls)
            .where(cls.is_active.is_(True), scope)
            .order_by(cls.created_at.desc(), cls.id.desc())
        )
        return [d for d in session.scalars(stmt).all() if d.is_available(now)]
