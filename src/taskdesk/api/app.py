# src/taskdesk/api/app.py

"""
REST surface.

Every route answers with the {"data": ..., "error": ...} envelope. Routes do
no ownership filtering of their own: they build a caller-scoped DataClient
from the bearer token and let the row-level policies decide.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel

from ..admin.admin_service import AdminService
from ..auth.identity import derive_identity
from ..core.state import AppState
from ..data.client import DataClient
from ..errors import AuthenticationError, TaskdeskError, ValidationError
from ..tasks.task_service import TaskService
from .envelope import fail, internal_error, ok

logger = logging.getLogger(__name__)


class SignUpBody(BaseModel):
    email: str
    password: str
    full_name: str | None = None


class SignInBody(BaseModel):
    email: str
    password: str


class RefreshBody(BaseModel):
    refresh_token: str


class ProfileBody(BaseModel):
    full_name: str | None = None


class RoleBody(BaseModel):
    role: str


def _state(request: Request) -> AppState:
    return request.app.state.taskdesk


def _token_from(request: Request) -> str | None:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def bearer_token(request: Request) -> str:
    token = _token_from(request)
    if token is None:
        raise AuthenticationError("Auth session missing", code="session_missing")
    return token


def caller_client(request: Request, token: str = Depends(bearer_token)) -> DataClient:
    return _state(request).client_for(token)


def create_app(state: AppState) -> FastAPI:
    app = FastAPI(title=str(getattr(state.settings, "app_name", "taskdesk")))
    app.state.taskdesk = state

    @app.exception_handler(TaskdeskError)
    async def _taskdesk_error_handler(request: Request, exc: TaskdeskError):
        return fail(exc)

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = [str(part) for part in first.get("loc", ()) if part != "body"]
        field = loc[-1] if loc else "body"
        return fail(ValidationError(field, str(first.get("msg") or "Invalid request")))

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return internal_error()

    # ---- auth ----

    @app.post("/auth/signup")
    def signup(request: Request, body: SignUpBody):
        st = _state(request)
        resp = st.provider.sign_up(body.email, body.password, full_name=body.full_name)
        identity = derive_identity(st.database, resp.user)
        return ok({"user": identity.to_dict(), "session": resp.session.to_dict()})

    @app.post("/auth/signin")
    def signin(request: Request, body: SignInBody):
        session = _state(request).provider.sign_in_with_password(body.email, body.password)
        return ok(session.to_dict())

    @app.post("/auth/refresh")
    def refresh(request: Request, body: RefreshBody):
        session = _state(request).provider.refresh_session(body.refresh_token)
        return ok(session.to_dict())

    @app.post("/auth/signout")
    def signout(request: Request, token: str = Depends(bearer_token)):
        _state(request).provider.sign_out(token)
        return ok(None)

    @app.get("/auth/session")
    def current_session(request: Request):
        token = _token_from(request)
        if token is None:
            return ok(None)
        st = _state(request)
        try:
            user = st.provider.get_user(token)
        except AuthenticationError:
            return ok(None)
        return ok(derive_identity(st.database, user).to_dict())

    # ---- tasks ----

    @app.get("/tasks")
    def list_tasks(client: DataClient = Depends(caller_client)):
        return ok([t.to_dict() for t in TaskService(client).list_tasks()])

    @app.get("/tasks/{task_id}")
    def get_task(task_id: str, client: DataClient = Depends(caller_client)):
        return ok(TaskService(client).get_task(task_id).to_dict())

    @app.post("/tasks")
    def create_task(payload: dict[str, Any] = Body(...), client: DataClient = Depends(caller_client)):
        return ok(TaskService(client).create_task(payload).to_dict(), status_code=201)

    @app.put("/tasks/{task_id}")
    def update_task(
        task_id: str,
        payload: dict[str, Any] = Body(...),
        client: DataClient = Depends(caller_client),
    ):
        return ok(TaskService(client).update_task(task_id, payload).to_dict())

    @app.delete("/tasks/{task_id}")
    def delete_task(task_id: str, client: DataClient = Depends(caller_client)):
        TaskService(client).delete_task(task_id)
        return ok({"id": task_id})

    # ---- profiles / roles ----

    @app.get("/profiles")
    def list_profiles(client: DataClient = Depends(caller_client)):
        return ok([p.to_dict() for p in AdminService(client).list_profiles()])

    @app.put("/profiles/{profile_id}")
    def update_profile(profile_id: str, body: ProfileBody, client: DataClient = Depends(caller_client)):
        return ok(AdminService(client).update_profile(profile_id, body.full_name).to_dict())

    @app.get("/user_roles")
    def list_roles(client: DataClient = Depends(caller_client)):
        return ok([r.to_dict() for r in AdminService(client).list_roles()])

    @app.put("/user_roles/{assignment_id}")
    def update_role(assignment_id: str, body: RoleBody, client: DataClient = Depends(caller_client)):
        return ok(AdminService(client).set_role(assignment_id, body.role).to_dict())

    @app.get("/health")
    def health():
        return ok({"status": "ok"})

    return app
