"""Core configuration and errors for Harbour Battles."""

from harbour_battles.core.config import (
    DEFAULT_DATABASE_URL,
    BattleConfig,
    MatchupConfig,
    ProjectSeed,
    RankingConfig,
    VotingConfig,
    load_config,
    load_projects,
)
from harbour_battles.core.errors import (
    BattleError,
    ConcurrencyExhausted,
    ConfigurationError,
    Conflict,
    DuplicateProjectError,
    InsufficientPool,
    InvalidExplanation,
    InvalidInput,
    MissingFieldError,
    NotFound,
    SameProject,
    StaleRating,
    StoreTimeout,
    Transient,
    UnknownProject,
)

__all__ = [
    "DEFAULT_DATABASE_URL",
    "BattleConfig",
    "MatchupConfig",
    "ProjectSeed",
    "RankingConfig",
    "VotingConfig",
    "load_config",
    "load_projects",
    "BattleError",
    "ConcurrencyExhausted",
    "ConfigurationError",
    "Conflict",
    "DuplicateProjectError",
    "InsufficientPool",
    "InvalidExplanation",
    "InvalidInput",
    "MissingFieldError",
    "NotFound",
    "SameProject",
    "StaleRating",
    "StoreTimeout",
    "Transient",
    "UnknownProject",
]
