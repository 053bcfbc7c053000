from __future__ import annotations

import logging
import math
import os
import time
import uuid
from collections import OrderedDict
from typing import Callable, Optional, Tuple

import pandas as pd
from fastapi import Depends, FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import ExportAckResponse, FilterSpecModel
from core.data import RecordSource, get_record_source
from core.metrics_debug import compute_data_quality
from core.metrics_overview import compute_overview
from core.records import FIELD_NAMES
from core.session import ViewState, clear_filters, mount, request_export, update_filters


CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]
MAX_SESSIONS = int(os.environ.get("CUR_MAX_SESSIONS", "256"))
SESSION_IDLE_SECONDS = float(os.environ.get("CUR_SESSION_IDLE_SECONDS", "3600"))

app = FastAPI(title="CUR Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class SessionStore:
    """In-process view states, one per dashboard session.

    Sessions idle for longer than ``max_idle_seconds`` are discarded, and once
    ``max_sessions`` is reached the least recently used session is dropped.
    """

    def __init__(
        self,
        *,
        max_sessions: int = MAX_SESSIONS,
        max_idle_seconds: float = SESSION_IDLE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_sessions = max(1, int(max_sessions))
        self.max_idle_seconds = max_idle_seconds
        self._clock = clock
        self._sessions: "OrderedDict[str, Tuple[ViewState, float]]" = OrderedDict()

    def _expire(self) -> None:
        cutoff = self._clock() - self.max_idle_seconds
        for session_id in [sid for sid, (_, seen) in self._sessions.items() if seen < cutoff]:
            del self._sessions[session_id]
            logger.info("Expired idle session %s", session_id)

    def create(self, state: ViewState) -> str:
        self._expire()
        while len(self._sessions) >= self.max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            logger.info("Evicted session %s", evicted)
        session_id = uuid.uuid4().hex
        self._sessions[session_id] = (state, self._clock())
        return session_id

    def get(self, session_id: str) -> Optional[ViewState]:
        self._expire()
        entry = self._sessions.get(session_id)
        if entry is None:
            return None
        self._sessions[session_id] = (entry[0], self._clock())
        self._sessions.move_to_end(session_id)
        return entry[0]

    def discard(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        self._expire()
        return len(self._sessions)


sessions = SessionStore()


def get_session_store() -> SessionStore:
    return sessions


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with NaN/inf costs mapped to null."""

    def _safe_float(value: float) -> Optional[float]:
        if math.isnan(value) or math.isinf(value):
            return None
        return value

    return JSONResponse(status_code=status_code, content=jsonable_encoder(data, custom_encoder={float: _safe_float}))


def _error(status_code: int, message: str, error_type: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, "type": error_type})


def _not_found(session_id: str) -> JSONResponse:
    return _error(404, f"Unknown session: {session_id}", "SessionNotFound")


@app.post("/sessions")
def create_session(
    include_charts: bool = Query(default=True),
    source: RecordSource = Depends(get_record_source),
    store: SessionStore = Depends(get_session_store),
):
    try:
        state = mount(source)
        session_id = store.create(state)
        logger.info("Created session %s", session_id)
        return _json({"session_id": session_id, **compute_overview(state, include_charts=include_charts)})
    except Exception as exc:
        logger.exception("create_session failed")
        return _error(500, str(exc), type(exc).__name__)


@app.get("/sessions/{session_id}")
def get_session(
    session_id: str,
    include_charts: bool = Query(default=True),
    store: SessionStore = Depends(get_session_store),
):
    state = store.get(session_id)
    if state is None:
        return _not_found(session_id)
    try:
        return _json({"session_id": session_id, **compute_overview(state, include_charts=include_charts)})
    except Exception as exc:
        logger.exception("get_session failed")
        return _error(500, str(exc), type(exc).__name__)


@app.post("/sessions/{session_id}/filters")
def session_update_filters(
    session_id: str,
    filters: FilterSpecModel,
    include_charts: bool = Query(default=False),
    store: SessionStore = Depends(get_session_store),
):
    state = store.get(session_id)
    if state is None:
        return _not_found(session_id)
    try:
        update_filters(state, filters)
        return _json({"session_id": session_id, **compute_overview(state, include_charts=include_charts)})
    except Exception as exc:
        logger.exception("update_filters failed")
        return _error(500, str(exc), type(exc).__name__)


@app.post("/sessions/{session_id}/filters/clear")
def session_clear_filters(
    session_id: str,
    include_charts: bool = Query(default=False),
    store: SessionStore = Depends(get_session_store),
):
    state = store.get(session_id)
    if state is None:
        return _not_found(session_id)
    try:
        clear_filters(state)
        return _json({"session_id": session_id, **compute_overview(state, include_charts=include_charts)})
    except Exception as exc:
        logger.exception("clear_filters failed")
        return _error(500, str(exc), type(exc).__name__)


@app.post("/sessions/{session_id}/download-report", response_model=ExportAckResponse)
def session_download_report(session_id: str, store: SessionStore = Depends(get_session_store)):
    state = store.get(session_id)
    if state is None:
        return _not_found(session_id)
    return _json(request_export(state))


@app.get("/sessions/{session_id}/data-quality")
def session_data_quality(session_id: str, store: SessionStore = Depends(get_session_store)):
    state = store.get(session_id)
    if state is None:
        return _not_found(session_id)
    try:
        return _json(compute_data_quality(state))
    except Exception as exc:
        logger.exception("data_quality failed")
        return _error(500, str(exc), type(exc).__name__)


@app.get("/sessions/{session_id}/export")
def session_export_csv(session_id: str, store: SessionStore = Depends(get_session_store)):
    state = store.get(session_id)
    if state is None:
        return _not_found(session_id)
    export_df = pd.DataFrame([item.to_record() for item in state.filtered_line_items], columns=list(FIELD_NAMES))
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(
        content=csv_bytes,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=cur_line_items.csv"},
    )


@app.delete("/sessions/{session_id}")
def end_session(session_id: str, store: SessionStore = Depends(get_session_store)):
    if not store.discard(session_id):
        return _not_found(session_id)
    logger.info("Ended session %s", session_id)
    return _json({"session_id": session_id, "status": "closed"})
