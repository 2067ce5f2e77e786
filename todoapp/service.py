"""HTTP API for accounts and owner-scoped to-do tasks."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import InternalError, NotFoundError, TodoError, ValidationError
from .models import Task, TaskStats, TaskStatus, User
from .security import BearerAuth
from .sessions import SessionClaims, SessionIssuer
from .storage import StorageBackend
from .tasks import TaskQuery, TaskStore
from .users import CredentialStore

logger = logging.getLogger("todoapp.service")


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class UserResponse(_CamelModel):
    id: str
    username: str
    email: str
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


class AuthResponse(BaseModel):
    user: UserResponse
    token: str


class ProfileResponse(BaseModel):
    user: UserResponse


class TaskResponse(_CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    status: TaskStatus
    user_id: str = Field(alias="userId")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


class StatsResponse(_CamelModel):
    total: int
    completed: int
    incomplete: int
    completion_rate: int = Field(alias="completionRate")


class FiltersResponse(_CamelModel):
    status: str
    sort_by: str = Field(alias="sortBy")
    sort_order: str = Field(alias="sortOrder")
    search: str


class TaskListResponse(BaseModel):
    tasks: List[TaskResponse]
    stats: StatsResponse
    filters: FiltersResponse


class RegisterRequest(BaseModel):
    username: Optional[str] = Field(default=None, max_length=64)
    email: Optional[str] = Field(default=None, max_length=254)
    password: Optional[str] = Field(default=None, max_length=256)


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class CreateTaskRequest(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    status: Optional[TaskStatus] = None


class UpdateTaskRequest(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    status: Optional[TaskStatus] = None


def _user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _task_to_response(task: Task) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        title=task.title,
        description=task.description,
        status=task.status,
        user_id=task.owner_id,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def _stats_to_response(stats: TaskStats) -> StatsResponse:
    return StatsResponse(
        total=stats.total,
        completed=stats.completed,
        incomplete=stats.incomplete,
        completion_rate=stats.completion_rate,
    )


def _error_response(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def _describe_validation_error(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    if location:
        return f"Invalid value for {'.'.join(location)}"
    return "Invalid request body"


def register_error_handlers(app: FastAPI) -> None:
    """Render every failure as ``{"error": message}``."""

    @app.exception_handler(TodoError)
    async def handle_todo_error(request: Request, exc: TodoError) -> JSONResponse:
        if isinstance(exc, InternalError):
            logger.error("Internal error on %s %s", request.method, request.url.path, exc_info=exc)
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
        return _error_response(exc.status_code, exc.message, headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(status.HTTP_400_BAD_REQUEST, _describe_validation_error(exc))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    # Starlette re-raises after this handler responds; the server logs the traceback.
    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def register_auth_routes(
    app: FastAPI,
    users: CredentialStore,
    issuer: SessionIssuer,
    *,
    current_claims: BearerAuth,
    demo_enabled: bool,
    demo_email: str,
) -> None:
    def _authenticated(user: User) -> AuthResponse:
        return AuthResponse(user=_user_to_response(user), token=issuer.issue(user.id, user.email))

    @app.post("/auth/register", status_code=status.HTTP_201_CREATED, response_model=AuthResponse)
    def register(request: RegisterRequest) -> AuthResponse:
        user = users.create(request.username or "", request.email or "", request.password or "")
        return _authenticated(user)

    @app.post("/auth/login", response_model=AuthResponse)
    def login(request: LoginRequest) -> AuthResponse:
        if not request.email or not request.password:
            raise ValidationError("Email and password are required")
        user = users.authenticate(request.email, request.password)
        logger.info("User %s logged in", user.id)
        return _authenticated(user)

    @app.post("/auth/demo", response_model=AuthResponse)
    def demo_login() -> AuthResponse:
        user = users.find_by_email(demo_email) if demo_enabled else None
        if user is None:
            raise NotFoundError("Demo user not found")
        logger.info("Demo login for user %s", user.id)
        return _authenticated(user)

    @app.get("/auth/profile", response_model=ProfileResponse)
    def profile(claims: SessionClaims = Depends(current_claims)) -> ProfileResponse:
        user = users.find_by_id(claims.user_id)
        if user is None:
            raise NotFoundError("User not found")
        return ProfileResponse(user=_user_to_response(user))


def register_task_routes(
    app: FastAPI,
    tasks: TaskStore,
    *,
    current_claims: BearerAuth,
) -> None:
    @app.get("/tasks", response_model=TaskListResponse)
    def list_tasks(
        status_filter: str = Query(default="all", alias="status"),
        sort_by: str = Query(default="createdAt", alias="sortBy"),
        sort_order: str = Query(default="desc", alias="sortOrder"),
        search: str = Query(default="", max_length=200),
        claims: SessionClaims = Depends(current_claims),
    ) -> TaskListResponse:
        query = TaskQuery(status=status_filter, search=search, sort_by=sort_by, sort_order=sort_order)
        matching = tasks.query(claims.user_id, query)
        return TaskListResponse(
            tasks=[_task_to_response(task) for task in matching],
            stats=_stats_to_response(tasks.get_stats(claims.user_id)),
            filters=FiltersResponse(
                status=query.status,
                sort_by=query.sort_by,
                sort_order=query.sort_order,
                search=query.search,
            ),
        )

    @app.get("/tasks/stats", response_model=StatsResponse)
    def task_stats(claims: SessionClaims = Depends(current_claims)) -> StatsResponse:
        return _stats_to_response(tasks.get_stats(claims.user_id))

    @app.get("/tasks/{task_id}", response_model=TaskResponse)
    def get_task(task_id: str, claims: SessionClaims = Depends(current_claims)) -> TaskResponse:
        task = tasks.get_by_id(task_id, claims.user_id)
        if task is None:
            raise NotFoundError("Task not found")
        return _task_to_response(task)

    @app.post("/tasks", status_code=status.HTTP_201_CREATED, response_model=TaskResponse)
    def create_task(
        request: CreateTaskRequest,
        claims: SessionClaims = Depends(current_claims),
    ) -> TaskResponse:
        task = tasks.create(
            claims.user_id,
            request.title or "",
            description=request.description,
            status=request.status.value if request.status is not None else None,
        )
        return _task_to_response(task)

    @app.put("/tasks/{task_id}", response_model=TaskResponse)
    def update_task(
        task_id: str,
        request: UpdateTaskRequest,
        claims: SessionClaims = Depends(current_claims),
    ) -> TaskResponse:
        fields: Dict[str, Any] = request.model_dump(exclude_unset=True)
        task = tasks.update(task_id, claims.user_id, **fields)
        if task is None:
            raise NotFoundError("Task not found")
        return _task_to_response(task)

    @app.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_task(task_id: str, claims: SessionClaims = Depends(current_claims)) -> Response:
        if not tasks.delete(task_id, claims.user_id):
            raise NotFoundError("Task not found")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.patch("/tasks/{task_id}/toggle", response_model=TaskResponse)
    def toggle_task(task_id: str, claims: SessionClaims = Depends(current_claims)) -> TaskResponse:
        task = tasks.toggle_status(task_id, claims.user_id)
        if task is None:
            raise NotFoundError("Task not found")
        return _task_to_response(task)


def create_app(
    *,
    backend: StorageBackend,
    issuer: SessionIssuer,
    demo_enabled: bool = True,
    demo_email: str = "demo@example.com",
) -> FastAPI:
    """Create the JSON API application around an initialised storage backend."""

    users = CredentialStore(backend)
    tasks = TaskStore(backend)
    current_claims = BearerAuth(issuer)

    app = FastAPI(title="Todo API")
    app.state.backend = backend
    app.state.users = users
    app.state.tasks = tasks
    app.state.issuer = issuer

    register_error_handlers(app)

    @app.get("/health")
    def healthcheck() -> Dict[str, str]:
        try:
            backend.get_user("id", "")
            database = "Connected"
        except InternalError:
            database = "Disconnected"
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": "Todo API",
            "database": database,
        }

    register_auth_routes(
        app,
        users,
        issuer,
        current_claims=current_claims,
        demo_enabled=demo_enabled,
        demo_email=demo_email,
    )
    register_task_routes(app, tasks, current_claims=current_claims)

    return app


__all__ = ["create_app", "register_error_handlers"]
