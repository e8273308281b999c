"""
Persistence Module - workflow snapshot storage

Classes:
    WorkflowRepository: backend protocol
    InMemoryWorkflowRepository: process-local store
    SqlWorkflowRepository: SQLAlchemy store
"""

from .repository import WorkflowRepository
from .inmemory import InMemoryWorkflowRepository
from .sql import SqlWorkflowRepository, WorkflowRecord, create_db_engine

__all__ = [
    "WorkflowRepository",
    "InMemoryWorkflowRepository",
    "SqlWorkflowRepository",
    "WorkflowRecord",
    "create_db_engine",
]
