"""FastAPI application exposing accounts, tasks and dashboard analytics."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .accounts import AccountService
from .analytics import DEFAULT_WINDOW_DAYS, AnalyticsService, CompletionRatePoint, PriorityCount
from .config import Settings
from .database import Database
from .errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    TaskManagerError,
    UnauthenticatedError,
    ValidationError,
)
from .models import Priority, Task, TaskStatus, User
from .security import BearerAuth, TokenService
from .tasks import TaskService

logger = logging.getLogger("taskmanager.api")

_STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (UnauthenticatedError, status.HTTP_401_UNAUTHORIZED),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_400_BAD_REQUEST),
    (InternalError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)

_GENERIC_ERROR_MESSAGE = "Internal server error"


class SignupRequest(BaseModel):
    username: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class AuthResponse(BaseModel):
    id: str
    username: str
    email: str
    token: str


class TaskCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING

    @field_validator("title")
    @classmethod
    def _normalize_title(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Title is required")
        return stripped


class TaskUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = Field(default=None, alias="dueDate")
    priority: Optional[Priority] = None
    status: Optional[TaskStatus] = None


class TaskResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    description: Optional[str]
    due_date: Optional[datetime] = Field(alias="dueDate")
    priority: Priority
    status: TaskStatus
    user: str
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


class MessageResponse(BaseModel):
    message: str


class PriorityCountResponse(BaseModel):
    priority: str
    count: int


class CompletionRateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: str
    completion_rate: float = Field(alias="completionRate")
    completed: int
    total: int


def task_to_response(task: Task) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        title=task.title,
        description=task.description,
        due_date=task.due_date,
        priority=task.priority,
        status=task.status,
        user=task.user_id,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def auth_to_response(user: User, token: str) -> AuthResponse:
    return AuthResponse(id=user.id, username=user.username, email=user.email, token=token)


def priority_to_response(entry: PriorityCount) -> PriorityCountResponse:
    return PriorityCountResponse(priority=entry.priority, count=entry.count)


def completion_to_response(point: CompletionRatePoint) -> CompletionRateResponse:
    return CompletionRateResponse(
        date=point.date,
        completion_rate=point.completion_rate,
        completed=point.completed,
        total=point.total,
    )


def _status_for(exc: TaskManagerError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _field_name(location: object) -> str:
    parts = [str(part) for part in location if part not in ("body", "query", "path")]  # type: ignore[union-attr]
    return ".".join(parts)


def register_error_handlers(app: FastAPI) -> None:
    """Translate typed failures into HTTP responses."""

    @app.exception_handler(TaskManagerError)
    async def handle_task_manager_error(request: Request, exc: TaskManagerError) -> JSONResponse:
        status_code = _status_for(exc)
        headers: Optional[Dict[str, str]] = None
        message = exc.message
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("Request %s %s failed: %s", request.method, request.url.path, exc)
            message = _GENERIC_ERROR_MESSAGE
        elif status_code == status.HTTP_401_UNAUTHORIZED:
            headers = {"WWW-Authenticate": "Bearer"}
        return JSONResponse(status_code=status_code, content={"detail": message}, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": _field_name(error.get("loc", ())), "message": str(error.get("msg", ""))}
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Validation failed", "errors": errors},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error while serving %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": _GENERIC_ERROR_MESSAGE},
        )


def create_app(
    *,
    settings: Settings,
    database: Database | None = None,
    initialize_database: bool = True,
    now: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    """Instantiate the task management API."""

    if database is None:
        database = Database(settings.database_path)
    if initialize_database:
        database.initialize()

    tokens = TokenService(settings.secret_key, ttl=settings.token_ttl, now=now)
    auth = BearerAuth(tokens, database)
    accounts = AccountService(database, tokens)
    task_service = TaskService(database)
    analytics = AnalyticsService(database, now=now)

    app = FastAPI(
        title="Task Management API",
        description="API for managing personal tasks and dashboard analytics",
        version="1.0.0",
        docs_url="/api-docs",
        redoc_url=None,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.state.database = database
    app.state.settings = settings
    app.state.tokens = tokens
    register_error_handlers(app)

    async def get_current_user(request: Request) -> User:
        return await auth(request)

    @app.get("/")
    async def index() -> Dict[str, str]:
        return {
            "message": "Welcome to the Task Management API",
            "documentation": "/api-docs",
        }

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    auth_router = APIRouter(prefix="/api/auth", tags=["Authentication"])

    @auth_router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
    def signup(payload: SignupRequest) -> AuthResponse:
        user, token = accounts.register(payload.username, payload.email, payload.password)
        return auth_to_response(user, token)

    @auth_router.post("/login", response_model=AuthResponse)
    def login(payload: LoginRequest) -> AuthResponse:
        user, token = accounts.login(payload.email, payload.password)
        return auth_to_response(user, token)

    task_router = APIRouter(prefix="/api/tasks", tags=["Tasks"])

    @task_router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
    def create_task(
        payload: TaskCreateRequest,
        current_user: User = Depends(get_current_user),
    ) -> TaskResponse:
        task = task_service.create(payload.model_dump(), current_user.id)
        return task_to_response(task)

    @task_router.get("", response_model=List[TaskResponse])
    def list_tasks(
        status_filter: Optional[TaskStatus] = Query(default=None, alias="status"),
        search: Optional[str] = None,
        sort_by: Optional[str] = Query(default=None, alias="sortBy"),
        current_user: User = Depends(get_current_user),
    ) -> List[TaskResponse]:
        tasks = task_service.list(current_user.id, status=status_filter, search=search, sort_by=sort_by)
        return [task_to_response(task) for task in tasks]

    @task_router.get("/{task_id}", response_model=TaskResponse)
    def read_task(task_id: str, current_user: User = Depends(get_current_user)) -> TaskResponse:
        return task_to_response(task_service.get(task_id, current_user.id))

    @task_router.put("/{task_id}", response_model=TaskResponse)
    def update_task(
        task_id: str,
        payload: TaskUpdateRequest,
        current_user: User = Depends(get_current_user),
    ) -> TaskResponse:
        task = task_service.update(task_id, current_user.id, payload.model_dump(exclude_unset=True))
        return task_to_response(task)

    @task_router.delete("/{task_id}", response_model=MessageResponse)
    def delete_task(task_id: str, current_user: User = Depends(get_current_user)) -> MessageResponse:
        task_service.delete(task_id, current_user.id)
        return MessageResponse(message="Task removed")

    dashboard_router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])

    @dashboard_router.get("/priority-distribution", response_model=List[PriorityCountResponse])
    def priority_distribution(current_user: User = Depends(get_current_user)) -> List[PriorityCountResponse]:
        return [priority_to_response(entry) for entry in analytics.priority_distribution(current_user.id)]

    @dashboard_router.get("/completion-rate", response_model=List[CompletionRateResponse])
    def completion_rate(
        days: int = DEFAULT_WINDOW_DAYS,
        current_user: User = Depends(get_current_user),
    ) -> List[CompletionRateResponse]:
        return [completion_to_response(point) for point in analytics.completion_rate(current_user.id, days)]

    @dashboard_router.get("/upcoming-deadlines", response_model=List[TaskResponse])
    def upcoming_deadlines(
        days: int = DEFAULT_WINDOW_DAYS,
        current_user: User = Depends(get_current_user),
    ) -> List[TaskResponse]:
        return [task_to_response(task) for task in analytics.upcoming_deadlines(current_user.id, days)]

    app.include_router(auth_router)
    app.include_router(task_router)
    app.include_router(dashboard_router)

    return app


__all__ = ["create_app", "register_error_handlers", "task_to_response"]
