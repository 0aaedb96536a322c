import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, Double
from sqlmodel import Field, SQLModel


class Vote(SQLModel, table=True):
    """An accepted pairwise vote. Append-only."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    voter_id: str = Field(index=True)
    winner_id: str
    loser_id: str
    explanation: str
    winner_rating_before: float = Field(sa_column=Column(Double, nullable=False))
    loser_rating_before: float = Field(sa_column=Column(Double, nullable=False))
    winner_rating_after: float = Field(sa_column=Column(Double, nullable=False))
    loser_rating_after: float = Field(sa_column=Column(Double, nullable=False))
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class AuditEntry(SQLModel, table=True):
    """Moderation record for a vote, kept for abuse review."""

    __tablename__ = "audit_entry"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    vote_id: str
    voter_id: str = Field(index=True)
    winner_id: str
    loser_id: str
    explanation: str
    word_count: int
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
