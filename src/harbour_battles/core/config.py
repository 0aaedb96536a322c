"""Configuration schemas and loading for Harbour Battles."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from harbour_battles.core.errors import DuplicateProjectError, MissingFieldError

DEFAULT_DATABASE_URL = "duckdb:///battles.duckdb"


class ProjectSeed(BaseModel):
    """A project entry in a seed file.

    Only ``id`` and ``title`` are required. The link fields are display
    metadata passed through to the presentation layer untouched.
    """

    id: str
    title: str
    hours: float | None = None
    repo_url: str | None = None
    deploy_url: str | None = None
    readme_url: str | None = None
    screenshot_url: str | None = None
    rating: float | None = None

    @field_validator("id", "title")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            msg = "Project id and title cannot be empty"
            raise ValueError(msg)
        return v.strip()


class RankingConfig(BaseModel):
    """Elo configuration.

    Attributes:
        initial_rating: Baseline rating for new projects.
        k_factor: Sensitivity constant for each vote.
        scale: Logistic scale in rating points (400 for classic Elo).
    """

    initial_rating: float = 1500.0
    k_factor: float = Field(default=32.0, gt=0)
    scale: float = Field(default=400.0, gt=0)


class MatchupConfig(BaseModel):
    """Matchup selection configuration.

    Attributes:
        candidate_pool_size: How many exposure-weighted candidates to draw
            before picking the closest-rated pair.
        exposure_slack: How many more showings than the anchor an opponent may
            have. Keeps exposure counts within ``exposure_slack + 1`` of the
            least-shown project.
        avoid_repeat: Skip the pair a voter saw last time when another exists.
        recent_voter_cap: How many voters' last pairs to remember.
    """

    candidate_pool_size: int = Field(default=8, ge=2)
    exposure_slack: int = Field(default=2, ge=0)
    avoid_repeat: bool = True
    recent_voter_cap: int = Field(default=10_000, ge=1)


class VotingConfig(BaseModel):
    """Vote validation and rating update configuration.

    Attributes:
        min_explanation_words: Minimum whitespace-delimited words in a reason.
        stale_rating_tolerance: Largest allowed gap between a submitted rating
            and the stored one. None disables the check.
        max_update_attempts: Compare-and-set attempts before giving up.
        store_timeout_seconds: Timeout for each store call and lock wait.
    """

    min_explanation_words: int = Field(default=10, ge=1)
    stale_rating_tolerance: float | None = Field(default=32.0, ge=0)
    max_update_attempts: int = Field(default=5, ge=1)
    store_timeout_seconds: float = Field(default=5.0, gt=0)


class BattleConfig(BaseModel):
    """Complete engine configuration."""

    database_url: str = DEFAULT_DATABASE_URL
    seed: int | None = 42
    ranking: RankingConfig = Field(default_factory=RankingConfig)
    matchup: MatchupConfig = Field(default_factory=MatchupConfig)
    voting: VotingConfig = Field(default_factory=VotingConfig)
    projects: list[ProjectSeed] = Field(default_factory=list)

    @field_validator("projects")
    @classmethod
    def validate_unique_projects(cls, v: list[ProjectSeed]) -> list[ProjectSeed]:
        seen: set[str] = set()
        for project in v:
            if project.id in seen:
                msg = f"Duplicate project ID '{project.id}'"
                raise ValueError(msg)
            seen.add(project.id)
        return v


def _read_yaml(path: str | Path) -> Any:
    config_path = Path(path)
    if not config_path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    with config_path.open(encoding="utf-8") as f:
        return yaml.safe_load(f)


def load_config(path: str | Path) -> BattleConfig:
    """Load and validate configuration from YAML file.

    Args:
        path: Path to YAML configuration file.

    Returns:
        Validated BattleConfig instance.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        pydantic.ValidationError: If config is invalid.
    """
    data = _read_yaml(path) or {}
    return BattleConfig.model_validate(data)


def load_projects(path: str | Path) -> list[ProjectSeed]:
    """Load a project seed file.

    Accepts either a bare YAML list or a mapping with a ``projects`` key.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        MissingFieldError: If the mapping has no ``projects`` key.
        DuplicateProjectError: If two entries share an ID.
    """
    data = _read_yaml(path)
    if isinstance(data, dict):
        if "projects" not in data:
            raise MissingFieldError("projects", str(path))
        data = data["projects"]

    projects = [ProjectSeed.model_validate(item) for item in data or []]
    seen: set[str] = set()
    for project in projects:
        if project.id in seen:
            raise DuplicateProjectError(project.id)
        seen.add(project.id)
    return projects
