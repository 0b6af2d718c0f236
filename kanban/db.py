from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, Integer, String, create_engine, delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from .errors import StoreFailure, VersionConflict
from .models import Board
from .utils import now_utc


logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class BoardRecord(Base):
    """One row per board; columns, tasks and subtasks live in ``document``."""

    __tablename__ = "boards"
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(140))
    owner: Mapped[str | None] = mapped_column(String(128), nullable=True)
    version: Mapped[int] = mapped_column(Integer, default=0)
    document: Mapped[Dict[str, Any]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)


def make_engine(database_url: str):
    if database_url.startswith("sqlite"):
        kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # Every connection to an in-memory database is a new database.
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


class SqlStore:
    """Board document store on top of a SQLAlchemy engine."""

    def __init__(self, database_url: str) -> None:
        self.engine = make_engine(database_url)
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def init_db(self) -> None:
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as exc:
            logger.exception("creating board table failed")
            raise StoreFailure() from exc

    def list_boards(self) -> List[Board]:
        try:
            with self.SessionLocal() as session:
                rows = session.scalars(select(BoardRecord).order_by(BoardRecord.created_at, BoardRecord.id))
                return [Board.from_document(row.document) for row in rows]
        except SQLAlchemyError as exc:
            logger.exception("listing boards failed")
            raise StoreFailure() from exc

    def get_board(self, board_id: str) -> Optional[Board]:
        try:
            with self.SessionLocal() as session:
                row = session.get(BoardRecord, board_id)
                return Board.from_document(row.document) if row is not None else None
        except SQLAlchemyError as exc:
            logger.exception("loading board %s failed", board_id)
            raise StoreFailure() from exc

    def save_board(self, board: Board, expected_version: Optional[int] = None) -> Board:
        values = {
            "name": board.name,
            "owner": board.owner,
            "version": board.version,
            "document": board.to_document(),
            "updated_at": board.updated_at,
        }
        try:
            with self.SessionLocal.begin() as session:
                if expected_version is not None:
                    result = session.execute(
                        update(BoardRecord)
                        .where(BoardRecord.id == board.id, BoardRecord.version == expected_version)
                        .values(**values)
                    )
                    if result.rowcount != 1:
                        raise VersionConflict(details={"boardId": board.id})
                    return board
                row = session.get(BoardRecord, board.id)
                if row is None:
                    session.add(BoardRecord(id=board.id, created_at=board.created_at, **values))
                else:
                    for key, value in values.items():
                        setattr(row, key, value)
        except SQLAlchemyError as exc:
            logger.exception("saving board %s failed", board.id)
            raise StoreFailure() from exc
        return board

    def delete_board(self, board_id: str) -> bool:
        try:
            with self.SessionLocal.begin() as session:
                result = session.execute(delete(BoardRecord).where(BoardRecord.id == board_id))
                return result.rowcount > 0
        except SQLAlchemyError as exc:
            logger.exception("deleting board %s failed", board_id)
            raise StoreFailure() from exc

    def close(self) -> None:
        self.engine.dispose()
