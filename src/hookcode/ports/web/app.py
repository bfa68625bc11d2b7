"""HTTP port: a thin FastAPI adapter over daemon ops.

Every route returns the daemon response envelope ``{"ok", "result", "error"}``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, Header
from fastapi.responses import JSONResponse

from ... import __version__
from ...daemon.server import apply_observability_settings, call_daemon
from ...kernel.settings import get_observability_settings

_STATUS_BY_CODE = {
    "unknown_op": 404,
    "robot_not_found": 404,
    "version_conflict": 409,
    "robot_in_use": 409,
    "internal_error": 500,
}


def _reply(body: Dict[str, Any]) -> JSONResponse:
    if body.get("ok"):
        return JSONResponse(body)
    code = str((body.get("error") or {}).get("code") or "")
    return JSONResponse(body, status_code=_STATUS_BY_CODE.get(code, 400))


def create_app() -> FastAPI:
    apply_observability_settings(get_observability_settings())
    app = FastAPI(title="hookcode automation", version=__version__)

    @app.get("/api/v1/ping")
    def ping() -> JSONResponse:
        return _reply(call_daemon("ping"))

    @app.get("/api/v1/repos/{repo_id}/automation")
    def automation_get(repo_id: str) -> JSONResponse:
        return _reply(call_daemon("repo_automation_get", {"repo_id": repo_id}))

    @app.put("/api/v1/repos/{repo_id}/automation")
    def automation_update(repo_id: str, body: Dict[str, Any] = Body(...)) -> JSONResponse:
        return _reply(
            call_daemon(
                "repo_automation_update",
                {"repo_id": repo_id, "config": body.get("config"), "expected_revision": body.get("expected_revision")},
            )
        )

    @app.post("/api/v1/repos/{repo_id}/automation/dispatch")
    def automation_dispatch(repo_id: str, body: Dict[str, Any] = Body(...)) -> JSONResponse:
        return _reply(call_daemon("repo_automation_dispatch", {**body, "repo_id": repo_id}))

    @app.get("/api/v1/repos/{repo_id}/automation/usages")
    def automation_usages(repo_id: str, robot_id: str = "") -> JSONResponse:
        return _reply(call_daemon("repo_automation_usages", {"repo_id": repo_id, "robot_id": robot_id}))

    @app.post("/api/v1/repos/{repo_id}/webhook/{provider}")
    def webhook(
        repo_id: str,
        provider: str,
        payload: Dict[str, Any] = Body(...),
        x_gitlab_event: Optional[str] = Header(default=None),
        x_github_event: Optional[str] = Header(default=None),
    ) -> JSONResponse:
        event_name = x_gitlab_event if provider == "gitlab" else x_github_event
        return _reply(
            call_daemon(
                "repo_automation_dispatch",
                {"repo_id": repo_id, "provider": provider, "event_name": event_name, "payload": payload},
            )
        )

    @app.get("/api/v1/repos/{repo_id}/robots")
    def robots_list(repo_id: str) -> JSONResponse:
        return _reply(call_daemon("repo_robot_list", {"repo_id": repo_id}))

    @app.post("/api/v1/repos/{repo_id}/robots")
    def robots_upsert(repo_id: str, body: Dict[str, Any] = Body(...)) -> JSONResponse:
        return _reply(call_daemon("repo_robot_upsert", {"repo_id": repo_id, "robot": body}))

    @app.post("/api/v1/repos/{repo_id}/robots/{robot_id}/default")
    def robots_set_default(repo_id: str, robot_id: str) -> JSONResponse:
        return _reply(call_daemon("repo_robot_set_default", {"repo_id": repo_id, "robot_id": robot_id}))

    @app.delete("/api/v1/repos/{repo_id}/robots/{robot_id}")
    def robots_delete(repo_id: str, robot_id: str) -> JSONResponse:
        return _reply(call_daemon("repo_robot_delete", {"repo_id": repo_id, "robot_id": robot_id}))

    return app
