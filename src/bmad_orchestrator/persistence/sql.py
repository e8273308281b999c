"""
SQLAlchemy workflow repository

SQLAlchemy 2.0 style. Each workflow is one row holding the full JSON
snapshot plus a few indexed columns for listing. Blocking session work
runs in a worker thread via ``asyncio.to_thread``.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import asyncio
import logging

from sqlalchemy import JSON, Column, DateTime, Integer, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..core.exceptions import PersistenceError

Base = declarative_base()

logger = logging.getLogger("persistence.sql")


class TimestampMixin:
    """
    Mixin for common timestamp columns.

    Provides:
    - created_at: Auto-set on insert
    - updated_at: Auto-updated on update
    """
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )


class WorkflowRecord(Base, TimestampMixin):
    """Persisted workflow snapshot"""
    __tablename__ = "workflows"

    id = Column(String(36), primary_key=True)
    name = Column(String(200), nullable=False, default="")
    status = Column(String(40), nullable=False, index=True)
    template = Column(String(200), nullable=True)
    user_id = Column(String(100), nullable=True, index=True)
    current_step = Column(Integer, nullable=False, default=0)
    snapshot = Column(JSON, nullable=False)

    def __repr__(self) -> str:
        return f"<WorkflowRecord(id={self.id}, status={self.status})>"


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if database_url.startswith("sqlite"):
        kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url == "sqlite://":
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **kwargs)
    return create_engine(
        database_url,
        pool_pre_ping=True,  # Verify connection before use
        echo=echo,
        pool_size=5,
        max_overflow=10
    )


class SqlWorkflowRepository:
    """
    Workflow snapshots stored in a relational database.

    Usage:
        repo = SqlWorkflowRepository("sqlite:///./bmad.db")
        repo.init_db()
        await repo.save_workflow(workflow.to_dict())
    """

    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None):
        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            engine = create_db_engine(database_url)
        self.engine = engine
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def init_db(self) -> None:
        """Initialize database (create all tables)"""
        Base.metadata.create_all(bind=self.engine)

    # ============== Async API ==============

    async def save_workflow(self, snapshot: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._save, snapshot)

    async def load_workflow(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._load, workflow_id)

    async def list_workflows(
        self, limit: int = 50, user_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._list, limit, user_id)

    async def delete_workflow(self, workflow_id: str) -> bool:
        return await asyncio.to_thread(self._delete, workflow_id)

    # ============== Session work ==============

    def _save(self, snapshot: Dict[str, Any]) -> None:
        workflow_id = snapshot["id"]
        metadata = snapshot.get("metadata") or {}
        db = self.SessionLocal()
        try:
            record = db.get(WorkflowRecord, workflow_id)
            if record is None:
                record = WorkflowRecord(id=workflow_id)
                db.add(record)
            record.name = snapshot.get("name") or ""
            record.status = snapshot["status"]
            record.template = metadata.get("template")
            record.user_id = metadata.get("user_id")
            record.current_step = snapshot.get("current_step", 0)
            record.snapshot = snapshot
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to save workflow {workflow_id}: {e}")
            raise PersistenceError("Failed to save workflow snapshot", workflow_id, e) from e
        finally:
            db.close()

    def _load(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        db = self.SessionLocal()
        try:
            record = db.get(WorkflowRecord, workflow_id)
            return dict(record.snapshot) if record is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to load workflow {workflow_id}: {e}")
            raise PersistenceError("Failed to load workflow snapshot", workflow_id, e) from e
        finally:
            db.close()

    def _list(self, limit: int, user_id: Optional[str]) -> List[Dict[str, Any]]:
        db = self.SessionLocal()
        try:
            query = db.query(WorkflowRecord)
            if user_id is not None:
                query = query.filter(WorkflowRecord.user_id == user_id)
            records = query.order_by(WorkflowRecord.created_at.desc()).limit(limit).all()
            return [dict(r.snapshot) for r in records]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list workflows: {e}")
            raise PersistenceError("Failed to list workflow snapshots", None, e) from e
        finally:
            db.close()

    def _delete(self, workflow_id: str) -> bool:
        db = self.SessionLocal()
        try:
            record = db.get(WorkflowRecord, workflow_id)
            if record is None:
                return False
            db.delete(record)
            db.commit()
            return True
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError("Failed to delete workflow snapshot", workflow_id, e) from e
        finally:
            db.close()
