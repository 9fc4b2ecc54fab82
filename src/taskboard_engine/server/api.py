"""HTTP adapter exposing dependency edits, layout and status transitions.

All routes live under ``/api/v1``.  Engine errors are translated to HTTP
status codes by a single exception handler; bodies are always
``{"error": <code>, "message": <text>, "details": {...}}``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Optional

from fastapi import APIRouter, FastAPI, Path as PathParam, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from ..config import EngineConfig
from ..constants import EVENTS_FILE, STATE_DIR_NAME
from ..errors import (
    DependencyError,
    InvalidStatus,
    LayoutCycleDetected,
    NotFound,
    PersistenceFailure,
    TaskboardError,
    TransitionInProgress,
)
from ..events import EventLog
from ..logging_utils import configure_logging
from ..notifications import NotificationCenter
from ..persistence.file_repo import FileProjectRepository
from ..persistence.interfaces import PersistenceCollaborator
from ..workflow.state_machine import WorkflowStateMachine
from ..workspace import WorkspaceRegistry

PROJECT_ID_PATTERN = r"^[A-Za-z0-9._-]+$"
ProjectId = Annotated[str, PathParam(pattern=PROJECT_ID_PATTERN)]

_STATUS_CODES: list[tuple[type[TaskboardError], int]] = [
    (DependencyError, 400),
    (InvalidStatus, 400),
    (NotFound, 404),
    (TransitionInProgress, 409),
    (PersistenceFailure, 503),
    (LayoutCycleDetected, 500),
]


def status_code_for(exc: TaskboardError) -> int:
    for error_cls, code in _STATUS_CODES:
        if isinstance(exc, error_cls):
            return code
    return 500


# ---------------------------------------------------------------------------
# Pydantic request / response models
# ---------------------------------------------------------------------------

class AddDependencyRequest(BaseModel):
    task_id: str
    depends_on_task_id: str


class TransitionRequest(BaseModel):
    status: str
    timeout: Optional[float] = Field(default=None, gt=0)


class DependencyResponse(BaseModel):
    dependency: dict[str, Any]


class DependencyListResponse(BaseModel):
    dependencies: list[dict[str, Any]]
    total: int


class GraphResponse(BaseModel):
    nodes: list[dict[str, Any]]
    edges: list[dict[str, Any]]


class BoardResponse(BaseModel):
    columns: dict[str, list[dict[str, Any]]]


class TransitionResponse(BaseModel):
    outcome: dict[str, Any]
    task: dict[str, Any]


class StateMachineResponse(BaseModel):
    states: list[str]
    transitions: dict[str, list[str]]
    guards: dict[str, str]
    initial: str


class NotificationListResponse(BaseModel):
    notifications: list[dict[str, Any]]


class ActivityResponse(BaseModel):
    events: list[dict[str, Any]]


# ---------------------------------------------------------------------------
# Router factory
# ---------------------------------------------------------------------------

def create_project_router(registry: WorkspaceRegistry) -> APIRouter:
    """Create the ``/api/v1/projects`` router bound to *registry*."""
    router = APIRouter(prefix="/api/v1/projects/{project_id}", tags=["projects"])

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    @router.get("/dependencies", response_model=DependencyListResponse)
    async def list_dependencies(
        project_id: ProjectId,
        task_id: Optional[str] = Query(None),
    ) -> DependencyListResponse:
        workspace = await registry.get(project_id)
        edges = [e.to_dict() for e in workspace.engine.edges(task_id)]
        return DependencyListResponse(dependencies=edges, total=len(edges))

    @router.post("/dependencies", response_model=DependencyResponse, status_code=201)
    async def add_dependency(
        body: AddDependencyRequest,
        project_id: ProjectId,
    ) -> DependencyResponse:
        workspace = await registry.get(project_id)
        edge = await workspace.engine.add_dependency(body.task_id, body.depends_on_task_id)
        return DependencyResponse(dependency=edge.to_dict())

    @router.delete("/dependencies/{edge_id}")
    async def remove_dependency(
        edge_id: str,
        project_id: ProjectId,
    ) -> dict[str, Any]:
        workspace = await registry.get(project_id)
        edge = await workspace.engine.remove_dependency(edge_id)
        return {"status": "deleted", "dependency": edge.to_dict()}

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @router.get("/graph", response_model=GraphResponse)
    async def get_graph(project_id: ProjectId) -> GraphResponse:
        workspace = await registry.get(project_id)
        return GraphResponse(**workspace.graph_view())

    @router.get("/board", response_model=BoardResponse)
    async def get_board(project_id: ProjectId) -> BoardResponse:
        workspace = await registry.get(project_id)
        return BoardResponse(columns=workspace.board_view())

    @router.get("/activity", response_model=ActivityResponse)
    async def get_activity(
        project_id: ProjectId,
        task_id: Optional[str] = Query(None),
        limit: int = Query(100, ge=1, le=1000),
    ) -> ActivityResponse:
        if task_id:
            events = registry.events.for_entity(task_id, limit)
        else:
            events = registry.events.recent(limit)
        return ActivityResponse(events=[e for e in events if e.get("project_id") == project_id])

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    @router.post("/tasks/{task_id}/transition", response_model=TransitionResponse)
    async def transition_task(
        task_id: str,
        body: TransitionRequest,
        project_id: ProjectId,
    ) -> Any:
        workspace = await registry.get(project_id)
        outcome = await workspace.coordinator.transition(task_id, body.status, timeout=body.timeout)
        if outcome.error is not None:
            content = outcome.error.to_dict()
            content["outcome"] = outcome.to_dict()
            return JSONResponse(status_code=503, content=content)
        task = workspace.board.require(task_id)
        return TransitionResponse(outcome=outcome.to_dict(), task=task.to_dict())

    return router


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(
    project_dir: Optional[Path] = None,
    persistence: Optional[PersistenceCollaborator] = None,
    config: Optional[EngineConfig] = None,
    enable_cors: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        project_dir: Directory holding ``.taskboard/``; defaults to the cwd.
        persistence: Collaborator to use; defaults to the YAML file repository
            under *project_dir*.
        config: Engine settings; defaults to ``.taskboard/config.yaml``.
        enable_cors: Whether to enable CORS.

    Returns:
        Configured FastAPI app.
    """
    project_dir = (project_dir or Path.cwd()).resolve()
    config = config or EngineConfig.load(project_dir)
    configure_logging(config.log_level)

    events = EventLog(
        project_dir / STATE_DIR_NAME / EVENTS_FILE,
        enabled=config.events_enabled,
    )
    notifications = NotificationCenter()
    registry = WorkspaceRegistry(
        persistence or FileProjectRepository(project_dir),
        config,
        events=events,
        notifications=notifications,
    )

    app = FastAPI(
        title="Taskboard Engine",
        description="Task dependency graph and workflow transitions",
        version="0.1.0",
    )
    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.project_dir = project_dir
    app.state.config = config
    app.state.registry = registry
    app.state.notifications = notifications

    @app.exception_handler(TaskboardError)
    async def handle_engine_error(request: Request, exc: TaskboardError) -> JSONResponse:
        status_code = status_code_for(exc)
        if isinstance(exc, LayoutCycleDetected):
            logger.error("Layout defect on {}: {}", request.url.path, exc)
        elif status_code >= 500:
            logger.warning("{} {} failed: {}", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.get("/")
    async def root() -> dict[str, str]:
        return {"name": "Taskboard Engine", "version": "0.1.0", "status": "running"}

    @app.get("/api/v1/meta/state-machine", response_model=StateMachineResponse)
    async def get_state_machine() -> StateMachineResponse:
        described = WorkflowStateMachine().describe(
            require_dependencies_done=config.require_dependencies_done
        )
        return StateMachineResponse(**described)

    @app.get("/api/v1/notifications", response_model=NotificationListResponse)
    async def drain_notifications() -> NotificationListResponse:
        return NotificationListResponse(notifications=[n.to_dict() for n in notifications.drain()])

    app.include_router(create_project_router(registry))
    return app
