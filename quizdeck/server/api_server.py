"""FastAPI server that exposes the shared session store to student devices."""

from __future__ import annotations

from threading import Thread
import logging
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel
import uvicorn

from quizdeck.constants.about import APP_NAME, APP_VERSION
from quizdeck.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from quizdeck.core.models import RemoteSessionRecord
from quizdeck.core.services.code_lookup import normalize_code, resolve_session
from quizdeck.core.slide_renderer import renderer
from quizdeck.store.paths import session_path
from quizdeck.store.realtime import LocalRealtimeStore
from quizdeck.store.shared_store import SharedSessionStore

logger = logging.getLogger(__name__)


class StoreValuePayload(BaseModel):
    """Payload schema for replacing a node."""

    value: Any = None


class StoreMergePayload(BaseModel):
    """Payload schema for a field-level update."""

    fields: dict[str, Any]


def _get_store_dependency(store: SharedSessionStore):
    def dependency() -> SharedSessionStore:
        return store

    return dependency


def create_api_app(store: SharedSessionStore) -> FastAPI:
    """Create a FastAPI application wired to the provided shared store."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION)
    store_dep = _get_store_dependency(store)

    @app.get("/store/{path:path}")
    def read_node(path: str, shared: SharedSessionStore = Depends(store_dep)) -> dict[str, Any]:
        return {"path": path, "value": shared.read(path)}

    @app.put("/store/{path:path}")
    def write_node(
        path: str,
        payload: StoreValuePayload,
        shared: SharedSessionStore = Depends(store_dep),
    ) -> dict[str, Any]:
        if not path.strip("/"):
            raise HTTPException(status_code=422, detail="Refusing to replace the store root.")
        try:
            shared.write(path, payload.value)
        except (IndexError, ValueError) as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return {"path": path}

    @app.patch("/store/{path:path}")
    def merge_node(
        path: str,
        payload: StoreMergePayload,
        shared: SharedSessionStore = Depends(store_dep),
    ) -> dict[str, Any]:
        try:
            shared.merge(path, payload.fields)
        except (IndexError, ValueError) as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return {"path": path, "updated": sorted(payload.fields)}

    @app.get("/codes/{code}")
    async def lookup_code(code: str, shared: SharedSessionStore = Depends(store_dep)) -> dict[str, Any]:
        found = await resolve_session(LocalRealtimeStore(shared), code)
        if found is None:
            raise HTTPException(status_code=404, detail="Invalid join code.")
        session_id, raw_record = found
        record = RemoteSessionRecord.from_record(raw_record, session_id)
        return {
            "code": normalize_code(code),
            "session_id": session_id,
            "title": record.quiz.title if record.quiz else None,
            "is_active": record.is_active,
        }

    @app.get("/sessions/{session_id}/slides/{index}", response_class=HTMLResponse)
    def render_slide(
        session_id: str,
        index: int,
        shared: SharedSessionStore = Depends(store_dep),
    ) -> str:
        raw_record = shared.read(session_path(session_id))
        if not isinstance(raw_record, dict):
            raise HTTPException(status_code=404, detail="Unknown session.")
        record = RemoteSessionRecord.from_record(raw_record, session_id)
        slide = record.quiz.slide_at(index) if record.quiz else None
        if slide is None:
            raise HTTPException(status_code=404, detail="Unknown slide.")
        return renderer.render_slide(slide, title=record.quiz.title)

    return app


def start_api_server(
    store: SharedSessionStore,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(store)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="QuizDeckApiServer", daemon=True)
    thread.start()
    logger.info("API server listening on %s:%d", host, port)
    return thread
