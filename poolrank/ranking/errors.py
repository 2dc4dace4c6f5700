"""Exceptions raised by the ranking engine."""

from __future__ import annotations


class RankingError(Exception):
    """Base class for every error raised while computing a ranking."""


class ConfigurationError(RankingError, ValueError):
    """The contest configuration cannot produce a valid prize split.

    Raised before any payout is computed, e.g. when the four percentages do
    not add up to 100 or the number range cannot hold a full ticket.
    """


class DataIntegrityError(RankingError, ValueError):
    """A ticket or draw does not belong to its contest as given.

    Attributes
    ----------
    participation_id : object
        Identifier of the offending participation, when known.
    """

    def __init__(self, message: str, participation_id: object = None) -> None:
        super().__init__(message)
        self.participation_id = participation_id


__all__ = ["ConfigurationError", "DataIntegrityError", "RankingError"]
