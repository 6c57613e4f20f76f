"""Chat Sessions — sidebar CRUD over the session store.

Invariants:
    - Every failure answers with the route-specific Chinese message plus detail
    - Missing id (DELETE) / missing id or name (PATCH) → 400 before touching the store
    - POST with empty or absent name → "新会话-<first 8 chars of id>"

Design Decisions:
    - Bodies read with request.json() so malformed JSON maps to the route's
      500 body instead of FastAPI's 422 (ADR: wire-compatible error bodies)
    - DELETE carries its id in a JSON body, matching the browser client
"""

import logging
import uuid
from typing import Any

from fastapi import APIRouter, Depends, Request

from chatstream.api.dependencies import get_session_store
from chatstream.core.domain_types import default_session_name
from chatstream.core.errors import MissingParameterError, SessionOperationError
from chatstream.core.store_protocols import SessionStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/chat/sessions", tags=["sessions"])

LIST_ERROR = "获取会话列表失败"
CREATE_ERROR = "新建会话失败"
DELETE_ERROR = "删除会话失败"
RENAME_ERROR = "重命名会话失败"
MISSING_ID = "缺少 id"
MISSING_PARAMS = "缺少参数"


async def _read_json(request: Request, error_message: str) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError as e:
        raise SessionOperationError(error_message, str(e)) from e
    if not isinstance(body, dict):
        raise SessionOperationError(error_message, "request body must be a JSON object")
    return body


def _failure(error_message: str, e: Exception) -> SessionOperationError:
    logger.error("%s: %s", error_message, e, exc_info=True)
    return SessionOperationError(error_message, str(e))


@router.get("")
async def list_sessions(store: SessionStore = Depends(get_session_store)):
    try:
        sessions = await store.list_all()
    except Exception as e:
        raise _failure(LIST_ERROR, e) from e
    return {"sessions": sessions}


@router.post("")
async def create_session(
    request: Request, store: SessionStore = Depends(get_session_store),
):
    body = await _read_json(request, CREATE_ERROR)
    session_id = str(uuid.uuid4())
    name = body.get("name")
    if not isinstance(name, str) or not name.strip():
        name = default_session_name(session_id)
    try:
        await store.create(session_id, name)
    except Exception as e:
        raise _failure(CREATE_ERROR, e) from e
    return {"id": session_id}


@router.delete("")
async def delete_session(
    request: Request, store: SessionStore = Depends(get_session_store),
):
    body = await _read_json(request, DELETE_ERROR)
    session_id = body.get("id")
    if not session_id:
        raise MissingParameterError(MISSING_ID, "id")
    try:
        await store.delete(str(session_id))
    except Exception as e:
        raise _failure(DELETE_ERROR, e) from e
    return {"success": True}


@router.patch("")
async def rename_session(
    request: Request, store: SessionStore = Depends(get_session_store),
):
    body = await _read_json(request, RENAME_ERROR)
    session_id, name = body.get("id"), body.get("name")
    if not session_id or not name:
        raise MissingParameterError(MISSING_PARAMS, "id" if not session_id else "name")
    try:
        await store.rename(str(session_id), str(name))
    except Exception as e:
        raise _failure(RENAME_ERROR, e) from e
    return {"success": True}
