from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskboard.auth import get_current_username, login, refresh_access, register, require_owner
from taskboard.auth.deps import get_config
from taskboard.config import Config, load_config
from taskboard.db import connect, init_db
from taskboard.errors import (
    AppError,
    ConflictError,
    NotFoundError,
    OwnershipError,
    ValidationError,
    store_errors,
)
from taskboard.tasks.crud import (
    MUTABLE_FIELDS,
    add_task,
    delete_tasks,
    get_task,
    list_tasks,
    update_task,
)


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


# -----------------------------
# Request models
# -----------------------------


class RegisterRequest(BaseModel):
    # email/password are checked by the session layer so a missing field gets
    # the same message whether it was omitted or blank.
    firstname: Optional[str] = Field(default=None, max_length=15)
    lastname: Optional[str] = Field(default=None, max_length=30)
    email: Optional[str] = Field(default=None, max_length=30)
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


class AddTaskRequest(BaseModel):
    task_id: str = Field(min_length=1)
    username: str = Field(min_length=1, max_length=15)
    task_priority: str = Field(default="", max_length=6)
    datetime: str = ""
    task_description: str = ""
    is_completed: bool = False


class UpdateTaskRequest(BaseModel):
    task_id: Optional[str] = None
    # Optional owner assertion; checked against the caller when present.
    username: Optional[str] = None
    task_description: Optional[str] = None
    task_priority: Optional[str] = Field(default=None, max_length=6)
    datetime: Optional[str] = None
    is_completed: Optional[bool] = None


# -----------------------------
# Errors
# -----------------------------


def _error_response(request: Request, status_code: int, message: str, headers: Dict[str, str] | None = None) -> JSONResponse:
    hdrs = dict(headers or {})
    # A token renewed by the auth gate must reach the client even when the
    # endpoint itself failed afterwards.
    renewed = getattr(request.state, "renewed_access_token", None)
    cfg = getattr(request.app.state, "cfg", None)
    if renewed and cfg is not None:
        hdrs[cfg.AUTH_NEW_TOKEN_HEADER] = str(renewed)
    return JSONResponse(status_code=status_code, content={"error": message}, headers=hdrs)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        if exc.status_code >= 500:
            _debug(f"{request.method} {request.url.path} -> {exc.status_code} {exc.message}")
        return _error_response(request, exc.status_code, exc.message, exc.headers)

    @app.exception_handler(StarletteHTTPException)
    async def _handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error_response(request, exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errs = exc.errors()
        if not errs:
            return _error_response(request, 400, "Invalid request")
        first = errs[0]
        # Drop the leading "body"/"query" marker from the location.
        loc = [str(p) for p in first.get("loc", ())][1:]
        field = ".".join(loc) or "request"
        return _error_response(request, 400, f"Invalid {field}: {first.get('msg', 'invalid value')}")


# -----------------------------
# Cookies (refresh token)
# -----------------------------


def _cookie_secure(cfg: Config) -> bool:
    # Browsers require Secure when SameSite=None
    if (cfg.AUTH_COOKIE_SAMESITE or "lax").lower() == "none":
        return True
    return bool(cfg.AUTH_COOKIE_SECURE)


def _set_refresh_cookie(response: Response, *, refresh_token: str, cfg: Config) -> None:
    response.set_cookie(
        key=cfg.AUTH_COOKIE_NAME,
        value=refresh_token,
        httponly=True,
        samesite=(cfg.AUTH_COOKIE_SAMESITE or "lax").lower(),
        secure=_cookie_secure(cfg),
        max_age=int(cfg.AUTH_REFRESH_EXPIRE_DAYS) * 24 * 3600,
        path=cfg.AUTH_COOKIE_PATH or "/",
        domain=cfg.AUTH_COOKIE_DOMAIN,
    )


def _clear_refresh_cookie(response: Response, cfg: Config) -> None:
    response.delete_cookie(key=cfg.AUTH_COOKIE_NAME, path=cfg.AUTH_COOKIE_PATH or "/", domain=cfg.AUTH_COOKIE_DOMAIN)


# -----------------------------
# App
# -----------------------------


def create_app(cfg: Config | None = None) -> FastAPI:
    cfg = cfg or load_config()
    app = FastAPI(title="Taskboard", version="0.1.0")
    app.state.cfg = cfg

    origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials="*" not in origins,
            allow_methods=["*"],
            allow_headers=["*"],
            # Clients must be able to read the renewed access token.
            expose_headers=[cfg.AUTH_NEW_TOKEN_HEADER],
        )

    register_exception_handlers(app)

    @app.on_event("startup")
    def _on_startup() -> None:
        init_db(cfg.DB_DSN)
        _debug("Startup complete")

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    # -----------------------------
    # Health
    # -----------------------------

    @app.get("/")
    def index() -> Dict[str, Any]:
        return {"message": "Task API is working!"}

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"status": "ok"}

    # -----------------------------
    # Auth
    # -----------------------------

    @app.post("/register", status_code=201)
    def auth_register(payload: RegisterRequest, cfg: Config = Depends(get_config)) -> Dict[str, Any]:
        with store_errors("Error registering user", context="register"):
            with connect(cfg.DB_DSN) as conn:
                register(
                    conn,
                    cfg,
                    firstname=payload.firstname,
                    lastname=payload.lastname,
                    email=payload.email,
                    password=payload.password,
                )
        return {"message": "User registered successfully"}

    @app.post("/login")
    def auth_login(payload: LoginRequest, response: Response, cfg: Config = Depends(get_config)) -> Dict[str, Any]:
        with store_errors("Error logging in", context="login"):
            with connect(cfg.DB_DSN) as conn:
                result = login(conn, cfg, email=payload.email, password=payload.password)

        _set_refresh_cookie(response, refresh_token=result.refresh_token, cfg=cfg)
        return {
            "message": "Login successful.",
            "access_token": result.access_token,
            "token_type": "bearer",
            "user": result.user,
        }

    @app.post("/refresh")
    def auth_refresh(
        request: Request,
        payload: Optional[RefreshRequest] = None,
        cfg: Config = Depends(get_config),
    ) -> Dict[str, Any]:
        token = (payload.refresh_token if payload is not None else None) or request.cookies.get(cfg.AUTH_COOKIE_NAME)
        with store_errors("Error refreshing token", context="refresh"):
            with connect(cfg.DB_DSN) as conn:
                outcome = refresh_access(conn, cfg, token)
        return {
            "message": "New access token generated.",
            "tokens": {"access_token": outcome.renewed_access_token},
        }

    @app.post("/logout")
    def auth_logout(response: Response, cfg: Config = Depends(get_config)) -> Dict[str, Any]:
        _clear_refresh_cookie(response, cfg)
        return {"message": "Logged out."}

    # -----------------------------
    # Tasks
    # -----------------------------

    @app.post("/addTask")
    def tasks_add(
        payload: AddTaskRequest,
        username: str = Depends(get_current_username),
        cfg: Config = Depends(get_config),
    ) -> Dict[str, Any]:
        require_owner(username, payload.username)

        with store_errors("Task adding failed.", context="addTask"):
            with connect(cfg.DB_DSN) as conn:
                if get_task(conn, payload.task_id) is not None:
                    raise ConflictError("Task already exists")
                add_task(
                    conn,
                    task_id=payload.task_id,
                    username=username,
                    task_priority=payload.task_priority,
                    datetime=payload.datetime,
                    task_description=payload.task_description,
                    is_completed=payload.is_completed,
                )
        return {"message": "Task added successfully."}

    @app.get("/getTasks")
    def tasks_get(
        username: Optional[str] = Query(None),
        auth_username: str = Depends(get_current_username),
        cfg: Config = Depends(get_config),
    ) -> Dict[str, Any]:
        if not username:
            raise ValidationError("Username is required")
        require_owner(auth_username, username)

        with store_errors("Failed to fetch tasks", context="getTasks"):
            with connect(cfg.DB_DSN) as conn:
                tasks: List[Dict[str, Any]] = list_tasks(conn, username)
        return {"message": "Task fetching successful.", "tasks": tasks}

    @app.delete("/deleteTask")
    def tasks_delete(
        username: Optional[str] = Query(None),
        task_id: Optional[str] = Query(None),
        auth_username: str = Depends(get_current_username),
        cfg: Config = Depends(get_config),
    ) -> Dict[str, Any]:
        if not username:
            raise ValidationError("Username is required")
        require_owner(auth_username, username)

        with store_errors("Failed to delete tasks", context="deleteTask"):
            with connect(cfg.DB_DSN) as conn:
                n = delete_tasks(conn, username=username, task_id=task_id)

        if task_id:
            if n == 0:
                raise NotFoundError("Task not found")
            return {"message": "Task deleted successfully"}
        if n == 0:
            raise NotFoundError("No tasks found for this user")
        return {"message": "All tasks deleted successfully"}

    @app.put("/updateTask")
    def tasks_update(
        payload: UpdateTaskRequest,
        username: str = Depends(get_current_username),
        cfg: Config = Depends(get_config),
    ) -> Dict[str, Any]:
        if not payload.task_id:
            raise ValidationError("Task ID is required")
        require_owner(username, payload.username)

        provided = payload.model_dump(exclude_unset=True)
        fields = {k: v for k, v in provided.items() if k in MUTABLE_FIELDS and v is not None}
        if not fields:
            raise ValidationError("No valid fields provided for update")

        with store_errors("Failed to update task", context="updateTask"):
            with connect(cfg.DB_DSN) as conn:
                row = get_task(conn, payload.task_id)
                if row is None:
                    raise NotFoundError("Task not found")
                if row["username"] != username:
                    raise OwnershipError("Task belongs to another user")
                task = update_task(conn, payload.task_id, fields)
                if task is None:
                    raise NotFoundError("Task not found")
        return {"message": "Task updated successfully", "task": task}


app = create_app()
