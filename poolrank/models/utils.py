"""Utility helpers for the models package."""

from __future__ import annotations

import re
import secrets
import string
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import InstrumentedAttribute, Session

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_SUFFIX_LENGTH = 6
TICKET_CODE_PREFIX = "TKT"
DRAW_CODE_PREFIX = "DRW"


def generate_code(prefix: str, now: datetime) -> str:
    """Return a ``PREFIX-YYYYMMDD-XXXXXX`` code stamped with ``now``'s date."""
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_SUFFIX_LENGTH))
    return f"{prefix}-{now:%Y%m%d}-{suffix}"


def is_valid_code(prefix: str, code: Optional[str]) -> bool:
    """Return ``True`` when ``code`` matches ``PREFIX-YYYYMMDD-XXXXXX``."""
    if not code:
        return False
    pattern = rf"{re.escape(prefix)}-\d{{8}}-[A-Z0-9]{{{CODE_SUFFIX_LENGTH}}}"
    return re.fullmatch(pattern, code) is not None


def generate_unique_code(
    prefix: str,
    now: datetime,
    session: Optional[Session] = None,
    column: Optional[InstrumentedAttribute] = None,
    max_attempts: int = 32,
) -> str:
    """Return a code that is not yet used in ``column``.

    When a session and column are provided, the helper retries if the
    generated value is already stored or pending in the session.
    """

    attempts = 0
    while attempts < max_attempts:
        candidate = generate_code(prefix, now)

        if session is not None and column is not None:
            owner = column.class_
            key = column.key
            collision = any(
                isinstance(obj, owner) and getattr(obj, key, None) == candidate
                for obj in session.new
            )
            if collision or session.scalar(
                select(column).where(column == candidate)
            ) is not None:
                attempts += 1
                continue

        return candidate

    raise RuntimeError(f"Unable to generate a unique {prefix} code after multiple attempts")
