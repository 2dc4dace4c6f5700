"""Ranking and prize distribution engine."""

from .engine import RankingEngine, calculate_ranking
from .errors import ConfigurationError, DataIntegrityError, RankingError
from .hits import NumberSet
from .types import (
    Category,
    CategoryPayout,
    ContestConfig,
    ContestStatus,
    DrawInput,
    ParticipationInput,
    PrizeDistribution,
    RankingEntry,
    RankingResult,
    RankingSummary,
)

__all__ = [
    "Category",
    "CategoryPayout",
    "ConfigurationError",
    "ContestConfig",
    "ContestStatus",
    "DataIntegrityError",
    "DrawInput",
    "NumberSet",
    "ParticipationInput",
    "PrizeDistribution",
    "RankingEngine",
    "RankingEntry",
    "RankingError",
    "RankingResult",
    "RankingSummary",
    "calculate_ranking",
]
