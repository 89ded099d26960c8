"""
FastAPI layer exposing editing sessions.

Endpoints:
 - GET /health
 - POST /sessions
 - GET|DELETE /sessions/{session_id}
 - POST /sessions/{session_id}/image
 - GET /sessions/{session_id}/image
 - POST /sessions/{session_id}/edits
 - POST /sessions/{session_id}/undo | /redo | /reset
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional, Tuple

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel, HttpUrl
import requests

from . import config
from .chroma_key import ChromaKeyConfig
from .exceptions import DecodeError, ExternalEditFailure, InvalidStateError, InvalidUploadError
from .history import Snapshot
from .model_client import ImageEditor
from .prompts import EditKind
from .session import EditSession, SessionRegistry, SessionState

settings = config.get_settings()
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

router = APIRouter()


class LoadImageRequest(BaseModel):
    imageUrl: Optional[HttpUrl] = None
    imageBase64: Optional[str] = None
    dataUrl: Optional[str] = None
    mimeType: Optional[str] = None
    filename: Optional[str] = None


class EditRequest(BaseModel):
    kind: EditKind


class SessionCreatedResponse(BaseModel):
    sessionId: str


class SessionStateResponse(BaseModel):
    sessionId: str
    filename: Optional[str] = None
    length: int
    currentIndex: int
    mimeType: Optional[str] = None
    canUndo: bool
    canRedo: bool
    canDownload: bool
    isLoading: bool
    error: Optional[str] = None


class HistoryStepResponse(BaseModel):
    changed: bool
    state: SessionStateResponse


def _state_response(state: SessionState) -> SessionStateResponse:
    return SessionStateResponse(
        sessionId=state.session_id,
        filename=state.filename,
        length=state.length,
        currentIndex=state.current_index,
        mimeType=state.mime_type,
        canUndo=state.can_undo,
        canRedo=state.can_redo,
        canDownload=state.can_download,
        isLoading=state.is_loading,
        error=state.error,
    )


def _get_session(request: Request, session_id: str) -> EditSession:
    registry: SessionRegistry = request.app.state.registry
    try:
        return registry.get(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Session not found") from exc


def _download_image(url: str, max_bytes: int) -> Tuple[bytes, Optional[str]]:
    """Fetch an image, refusing bodies larger than `max_bytes` before buffering them."""
    with requests.get(url, timeout=(5, settings.request_timeout_seconds), stream=True) as resp:
        resp.raise_for_status()
        declared = resp.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > max_bytes:
            raise InvalidUploadError(f"Image is too large ({declared} bytes, limit {max_bytes}).")

        chunks = []
        received = 0
        for chunk in resp.iter_content(chunk_size=64 * 1024):
            received += len(chunk)
            if received > max_bytes:
                raise InvalidUploadError(f"Image is too large (over {max_bytes} bytes).")
            chunks.append(chunk)

        content_type = resp.headers.get("Content-Type")
    mime_type = content_type.split(";")[0].strip() if content_type else None
    return b"".join(chunks), mime_type


def _resolve_upload(body: LoadImageRequest) -> Snapshot:
    if body.dataUrl:
        try:
            return Snapshot.from_data_url(body.dataUrl)
        except ValueError as ve:
            raise HTTPException(status_code=400, detail=str(ve)) from ve

    if body.imageBase64:
        try:
            data = base64.b64decode(body.imageBase64, validate=True)
        except binascii.Error as exc:
            raise HTTPException(status_code=400, detail="imageBase64 is not valid base64") from exc
        return Snapshot(data=data, mime_type=body.mimeType or "")

    if body.imageUrl:
        try:
            data, mime_type = _download_image(str(body.imageUrl), settings.max_upload_bytes)
        except InvalidUploadError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to download image: %s", exc)
            raise HTTPException(status_code=400, detail="Could not download image") from exc
        return Snapshot(data=data, mime_type=body.mimeType or mime_type or "")

    raise HTTPException(status_code=400, detail="Provide one of imageUrl, imageBase64 or dataUrl")


@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/sessions", response_model=SessionCreatedResponse, status_code=201)
def create_session(request: Request):
    session = request.app.state.registry.create()
    return SessionCreatedResponse(sessionId=session.session_id)


@router.get("/sessions/{session_id}", response_model=SessionStateResponse)
def get_session_state(session_id: str, request: Request):
    return _state_response(_get_session(request, session_id).state())


@router.delete("/sessions/{session_id}", status_code=204)
def delete_session(session_id: str, request: Request):
    _get_session(request, session_id)
    request.app.state.registry.delete(session_id)
    return Response(status_code=204)


@router.post("/sessions/{session_id}/image", response_model=SessionStateResponse)
def load_image(session_id: str, body: LoadImageRequest, request: Request):
    session = _get_session(request, session_id)
    snapshot = _resolve_upload(body)
    try:
        session.load_upload(snapshot.data, snapshot.mime_type, filename=body.filename)
    except InvalidUploadError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except InvalidStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _state_response(session.state())


@router.get("/sessions/{session_id}/image")
def get_image(session_id: str, request: Request, download: bool = False):
    session = _get_session(request, session_id)
    current = session.current()
    if current is None:
        raise HTTPException(status_code=404, detail="No image loaded")
    headers = {}
    if download:
        if not session.can_download:
            raise HTTPException(status_code=409, detail="Nothing to download until an edit has been applied")
        headers["Content-Disposition"] = f'attachment; filename="{session.download_name()}"'
    return Response(content=current.data, media_type=current.mime_type, headers=headers)


@router.post("/sessions/{session_id}/edits", response_model=SessionStateResponse)
def apply_edit(session_id: str, body: EditRequest, request: Request):
    session = _get_session(request, session_id)
    try:
        session.apply_edit(body.kind)
    except InvalidStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except DecodeError as exc:
        raise HTTPException(status_code=422, detail=session.error or str(exc)) from exc
    except ExternalEditFailure as exc:
        raise HTTPException(status_code=502, detail=session.error or str(exc)) from exc
    return _state_response(session.state())


def _history_step(session: EditSession, step) -> HistoryStepResponse:
    try:
        changed = step()
    except InvalidStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return HistoryStepResponse(changed=bool(changed), state=_state_response(session.state()))


@router.post("/sessions/{session_id}/undo", response_model=HistoryStepResponse)
def undo(session_id: str, request: Request):
    session = _get_session(request, session_id)
    return _history_step(session, session.undo)


@router.post("/sessions/{session_id}/redo", response_model=HistoryStepResponse)
def redo(session_id: str, request: Request):
    session = _get_session(request, session_id)
    return _history_step(session, session.redo)


@router.post("/sessions/{session_id}/reset", response_model=SessionStateResponse)
def reset(session_id: str, request: Request):
    session = _get_session(request, session_id)
    try:
        session.reset()
    except InvalidStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _state_response(session.state())


def create_app(editor: Optional[ImageEditor] = None) -> FastAPI:
    """
    Build the application with a fresh session registry.

    `editor` defaults to the shared Gemini client, resolved on the first edit.
    """
    app = FastAPI(title="Image Edit Service", version="0.1.0")
    app.state.registry = SessionRegistry(
        editor=editor,
        key=ChromaKeyConfig.from_settings(settings),
        workers=settings.chroma_key_workers,
        max_upload_bytes=settings.max_upload_bytes,
    )
    app.include_router(router)
    return app


app = create_app()
