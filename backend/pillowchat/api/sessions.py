"""
Session API endpoints - Create, list, rename, delete and activate sessions.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ..core.runtime import ChatRuntime, get_chat_runtime
from ..models import ChatSession, SessionSummary

router = APIRouter(prefix="/sessions", tags=["sessions"])


class RenameRequest(BaseModel):
    title: str = Field(..., min_length=1)


class ActiveSessionRequest(BaseModel):
    session_id: Optional[str] = None


class ActiveSessionResponse(BaseModel):
    active_session_id: Optional[str] = None


def _get_session_or_404(runtime: ChatRuntime, session_id: str) -> ChatSession:
    session = runtime.store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session


@router.get("", response_model=List[SessionSummary])
async def list_sessions(runtime: ChatRuntime = Depends(get_chat_runtime)):
    """List sessions, most recently updated first."""
    return runtime.store.list_sessions()


@router.post("", response_model=ChatSession, status_code=status.HTTP_201_CREATED)
async def create_session(runtime: ChatRuntime = Depends(get_chat_runtime)):
    """Create an empty session and make it active."""
    session_id = runtime.store.create_session()
    runtime.snapshots.request()
    return runtime.store.get_session(session_id)


@router.get("/active", response_model=ActiveSessionResponse)
async def get_active_session(runtime: ChatRuntime = Depends(get_chat_runtime)):
    return ActiveSessionResponse(active_session_id=runtime.store.active_session_id)


@router.put("/active", response_model=ActiveSessionResponse)
async def set_active_session(
    request: ActiveSessionRequest,
    runtime: ChatRuntime = Depends(get_chat_runtime),
):
    """Select the active session, or clear the selection with a null id."""
    if request.session_id is not None:
        _get_session_or_404(runtime, request.session_id)
    runtime.store.set_active_session(request.session_id)
    runtime.snapshots.request()
    return ActiveSessionResponse(active_session_id=runtime.store.active_session_id)


@router.get("/{session_id}", response_model=ChatSession)
async def get_session(session_id: str, runtime: ChatRuntime = Depends(get_chat_runtime)):
    return _get_session_or_404(runtime, session_id)


@router.patch("/{session_id}", response_model=ChatSession)
async def rename_session(
    session_id: str,
    request: RenameRequest,
    runtime: ChatRuntime = Depends(get_chat_runtime),
):
    session = _get_session_or_404(runtime, session_id)
    runtime.store.rename_session(session_id, request.title)
    runtime.snapshots.request()
    return session


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(session_id: str, runtime: ChatRuntime = Depends(get_chat_runtime)):
    _get_session_or_404(runtime, session_id)
    runtime.store.delete_session(session_id)
    runtime.snapshots.request()
