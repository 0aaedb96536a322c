"""Database rating store using SQLModel."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

import structlog
from sqlalchemy import func, or_, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.pool import NullPool
from sqlmodel import Session, SQLModel, col, create_engine, select

from harbour_battles.core.config import DEFAULT_DATABASE_URL
from harbour_battles.models import AuditEntry, Project, Vote

from .base import StoreConflict, StoreTransaction, check_deadline

logger = structlog.get_logger()


class _DBTransaction:
    """Session-bound writes committed by ``DBRatingStore.transaction``."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, project_id: str) -> Project | None:
        return self._session.get(Project, project_id)

    def compare_and_set(
        self, project_id: str, expected_rating: float, new_rating: float
    ) -> bool:
        statement = (
            update(Project)
            .where(col(Project.id) == project_id, col(Project.rating) == expected_rating)
            .values(rating=new_rating)
            .returning(col(Project.id))
        )
        try:
            row = self._session.exec(statement).first()  # type: ignore[call-overload]
        except DBAPIError as e:
            raise StoreConflict(str(e)) from e
        return row is not None

    def add_vote(self, vote: Vote) -> None:
        self._session.add(vote)

    def add_audit_entry(self, entry: AuditEntry) -> None:
        self._session.add(entry)


class DBRatingStore:
    """RatingStore backed by DuckDB (or any SQLAlchemy URL) through SQLModel.

    Compare-and-set is a single conditional ``UPDATE ... RETURNING`` so the
    database decides atomically whether the expected rating still holds.
    """

    def __init__(self, database_url: str = DEFAULT_DATABASE_URL) -> None:
        """Initialize the store and create tables.

        Args:
            database_url: SQLAlchemy URL, e.g. ``duckdb:///battles.duckdb``.
                In-memory URLs do not work with NullPool; use
                MemoryRatingStore instead.
        """
        self.database_url = database_url
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        # Use NullPool to avoid connection pooling issues on Windows
        self._engine = create_engine(database_url, poolclass=NullPool, connect_args=connect_args)
        SQLModel.metadata.create_all(self._engine)
        logger.info("store_init", url=database_url)

    def add_project(self, project: Project) -> bool:
        with Session(self._engine) as session:
            if session.get(Project, project.id) is not None:
                return False
            session.add(Project.model_validate(project.model_dump()))
            try:
                session.commit()
            except IntegrityError:
                return False
            return True

    def get(self, project_id: str) -> Project | None:
        with Session(self._engine) as session:
            return session.get(Project, project_id)

    def list_projects(self) -> list[Project]:
        with Session(self._engine) as session:
            return list(session.exec(select(Project).order_by(col(Project.id))).all())

    def compare_and_set(
        self, project_id: str, expected_rating: float, new_rating: float
    ) -> bool:
        with self.transaction() as txn:
            return txn.compare_and_set(project_id, expected_rating, new_rating)

    def increment_exposure(self, project_id: str, shown_at: datetime) -> None:
        statement = (
            update(Project)
            .where(col(Project.id) == project_id)
            .values(exposure_count=col(Project.exposure_count) + 1, last_shown_at=shown_at)
        )
        with Session(self._engine) as session:
            try:
                session.exec(statement)  # type: ignore[call-overload]
                session.commit()
            except DBAPIError as e:
                raise StoreConflict(str(e)) from e

    @contextmanager
    def transaction(self, deadline: float | None = None) -> Iterator[StoreTransaction]:
        with Session(self._engine) as session:
            yield _DBTransaction(session)
            check_deadline(deadline)
            try:
                session.commit()
            except DBAPIError as e:
                raise StoreConflict(str(e)) from e

    def list_votes(self, voter_id: str | None = None) -> list[Vote]:
        statement = select(Vote).order_by(col(Vote.created_at))
        if voter_id is not None:
            statement = statement.where(Vote.voter_id == voter_id)
        with Session(self._engine) as session:
            return list(session.exec(statement).all())

    def list_audit_entries(
        self,
        voter_id: str | None = None,
        project_id: str | None = None,
        limit: int | None = None,
    ) -> list[AuditEntry]:
        statement = select(AuditEntry).order_by(col(AuditEntry.created_at).desc())
        if voter_id is not None:
            statement = statement.where(AuditEntry.voter_id == voter_id)
        if project_id is not None:
            statement = statement.where(
                or_(AuditEntry.winner_id == project_id, AuditEntry.loser_id == project_id)
            )
        if limit is not None:
            statement = statement.limit(limit)
        with Session(self._engine) as session:
            return list(session.exec(statement).all())

    def vote_tallies(self) -> dict[str, tuple[int, int]]:
        with Session(self._engine) as session:
            wins = dict(
                session.exec(
                    select(Vote.winner_id, func.count()).group_by(col(Vote.winner_id))
                ).all()
            )
            losses = dict(
                session.exec(
                    select(Vote.loser_id, func.count()).group_by(col(Vote.loser_id))
                ).all()
            )
        ids = set(wins) | set(losses)
        return {pid: (int(wins.get(pid, 0)), int(losses.get(pid, 0))) for pid in ids}

    def close(self) -> None:
        self._engine.dispose()
