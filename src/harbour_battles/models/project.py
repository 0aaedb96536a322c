from datetime import UTC, datetime

from sqlalchemy import Column, Double
from sqlmodel import Field, SQLModel

DEFAULT_RATING = 1500.0


class Project(SQLModel, table=True):
    """A competing entry with its current rating and exposure statistics."""

    id: str = Field(primary_key=True)
    title: str
    hours: float | None = None
    repo_url: str | None = None
    deploy_url: str | None = None
    readme_url: str | None = None
    screenshot_url: str | None = None
    rating: float = Field(default=DEFAULT_RATING, sa_column=Column(Double, nullable=False))
    exposure_count: int = 0
    last_shown_at: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def display_fields(self) -> dict:
        """Fields the presentation layer renders on a project card."""
        return {
            "id": self.id,
            "title": self.title,
            "rating": self.rating,
            "hours": self.hours,
            "repo_url": self.repo_url,
            "deploy_url": self.deploy_url,
            "readme_url": self.readme_url,
            "screenshot_url": self.screenshot_url,
        }
