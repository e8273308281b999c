"""
BMAD Orchestrator API

FastAPI application exposing the workflow orchestrator.
"""
from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..broadcast.websocket import ConnectionManager
from ..config import Settings, get_settings
from ..core.exceptions import (
    AgentNotFoundError,
    CheckpointNotFoundError,
    InvalidTransitionError,
    OrchestratorNotInitializedError,
    PersistenceError,
    WorkflowNotFoundError,
    WorkflowValidationError,
)
from ..orchestrator.orchestrator import Orchestrator
from ..persistence.inmemory import InMemoryWorkflowRepository
from ..persistence.sql import SqlWorkflowRepository
from .agents import router as agents_router
from .websocket import router as websocket_router
from .workflows import router as workflows_router

logger = logging.getLogger("api")


def build_orchestrator(settings: Settings, connections: ConnectionManager) -> Orchestrator:
    """Wire the orchestrator with SQL persistence when a database is configured."""
    if settings.database_url:
        repository = SqlWorkflowRepository(settings.database_url)
        repository.init_db()
    else:
        repository = InMemoryWorkflowRepository()
    return Orchestrator(settings=settings, repository=repository, broadcaster=connections)


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map orchestrator errors to HTTP status codes."""

    @app.exception_handler(WorkflowValidationError)
    async def validation_error(request: Request, exc: WorkflowValidationError):
        return JSONResponse(
            status_code=400,
            content={"detail": str(exc), "error": type(exc).__name__, "errors": exc.errors},
        )

    @app.exception_handler(WorkflowNotFoundError)
    async def workflow_not_found(request: Request, exc: WorkflowNotFoundError):
        return _error(404, exc)

    @app.exception_handler(CheckpointNotFoundError)
    async def checkpoint_not_found(request: Request, exc: CheckpointNotFoundError):
        return _error(404, exc)

    @app.exception_handler(AgentNotFoundError)
    async def agent_not_found(request: Request, exc: AgentNotFoundError):
        return _error(404, exc)

    @app.exception_handler(InvalidTransitionError)
    async def invalid_transition(request: Request, exc: InvalidTransitionError):
        return _error(409, exc)

    @app.exception_handler(OrchestratorNotInitializedError)
    async def not_initialized(request: Request, exc: OrchestratorNotInitializedError):
        return _error(503, exc)

    @app.exception_handler(PersistenceError)
    async def persistence_error(request: Request, exc: PersistenceError):
        logger.error(f"Persistence failure: {exc}")
        return _error(503, exc)


def create_app(
    settings: Optional[Settings] = None,
    orchestrator: Optional[Orchestrator] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    An injected orchestrator is used as-is (tests); otherwise one is built
    from settings at startup and shut down on exit.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown events."""
        connections = ConnectionManager()
        instance = orchestrator or build_orchestrator(settings, connections)
        if instance.broadcaster is None:
            instance.broadcaster = connections
        await instance.initialize()

        app.state.connections = connections
        app.state.orchestrator = instance
        yield
        await instance.shutdown()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="""
    BMAD Orchestrator API

    Drives multi-agent software delivery workflows:
    - **Workflows**: start, pause, resume, cancel, roll back
    - **Elicitation**: answer agent questions to continue a paused step
    - **Agents**: registered agent definitions
    - **WebSocket**: live agent activity per workflow
    """,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Register routers
    app.include_router(workflows_router)
    app.include_router(agents_router)
    app.include_router(websocket_router)

    @app.get("/", tags=["health"])
    def root():
        """Root endpoint returning API info."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
            "redoc": "/redoc",
        }

    @app.get("/health", tags=["health"])
    def health_check():
        """Health check endpoint for container orchestration."""
        return {"status": "healthy"}

    @app.get("/api/health", tags=["health"])
    def system_health(request: Request):
        """Orchestrator health summary."""
        return request.app.state.orchestrator.get_system_health()

    return app


app = create_app()
