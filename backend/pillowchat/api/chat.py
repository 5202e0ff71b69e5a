"""
Chat API endpoints - Send, regenerate and cancel generations.
Generations can be awaited as a whole or relayed as Server-Sent Events.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from ..core.errors import ConfigurationError, TransportError
from ..core.generation import Generation, GenerationHook
from ..core.runtime import ChatRuntime, get_chat_runtime
from ..core.session_store import StoreEvent
from ..models import Message
from ..utils.attachments import Attachment

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

GenerationRunner = Callable[[GenerationHook], Awaitable[Optional[Generation]]]


class SendMessageRequest(BaseModel):
    content: str = Field(..., min_length=1)
    attachment_base64: Optional[str] = None
    attachment_media_type: Optional[str] = None


class AnalyzeImageRequest(BaseModel):
    image_url: str
    prompt: str = "Analyze this image and describe what you see:"


class GenerateImageRequest(BaseModel):
    prompt: str = Field(..., min_length=1)


class GenerationResponse(BaseModel):
    generation_id: str
    session_id: str
    message_id: str
    state: str
    error: Optional[str] = None
    message: Optional[Message] = None


class NotificationResponse(BaseModel):
    title: str
    description: str
    variant: str


def _generation_response(runtime: ChatRuntime, generation: Generation) -> GenerationResponse:
    return GenerationResponse(
        generation_id=generation.id,
        session_id=generation.session_id,
        message_id=generation.message_id,
        state=generation.state.value,
        error=generation.error,
        message=runtime.store.get_message(generation.session_id, generation.message_id),
    )


def _parse_attachment(request: SendMessageRequest) -> Optional[Attachment]:
    if not request.attachment_base64:
        return None
    media_type = request.attachment_media_type or "image/png"
    try:
        attachment = Attachment.from_base64(request.attachment_base64, media_type)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if not attachment.is_image:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported image type: {media_type}"
        )
    return attachment


def _require_configured(runtime: ChatRuntime) -> None:
    if not runtime.controller.is_configured:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No OpenRouter API key configured."
        )


def _sse(event: Dict[str, Any]) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


def _stream_generation(
    runtime: ChatRuntime,
    run: GenerationRunner,
    skipped_event: Optional[Dict[str, Any]] = None,
) -> StreamingResponse:
    """
    Run a generation in the background and relay its message as SSE frames.

    The generation keeps running if the client disconnects, so the session
    always reaches a terminal state.

    Args:
        runtime: Chat runtime
        run: Starts the generation, given the on_start hook
        skipped_event: Final frame when ``run`` starts nothing; an error frame if None
    """
    queue: asyncio.Queue = asyncio.Queue()
    target: Dict[str, str] = {}

    def on_start(generation: Generation) -> None:
        target["message_id"] = generation.message_id
        queue.put_nowait(("start", generation))

    def on_store_event(event: StoreEvent) -> None:
        if event.kind == "message_updated" and event.message_id == target.get("message_id"):
            message = runtime.store.get_message(event.session_id, event.message_id)
            if message is not None:
                queue.put_nowait(("update", message))

    unsubscribe = runtime.store.subscribe(on_store_event)
    task = asyncio.create_task(run(on_start))

    def on_done(finished: asyncio.Task) -> None:
        unsubscribe()
        runtime.snapshots.request()
        queue.put_nowait(("end", None))

    task.add_done_callback(on_done)

    async def event_generator():
        relayed = ""
        while True:
            kind, item = await queue.get()
            if kind == "start":
                yield _sse({
                    "type": "start",
                    "generation_id": item.id,
                    "session_id": item.session_id,
                    "message_id": item.message_id,
                })
            elif kind == "update":
                if item.generating and item.content.startswith(relayed):
                    delta = item.content[len(relayed):]
                    if delta:
                        yield _sse({"type": "delta", "content": delta})
                relayed = item.content
            else:
                break

        if task.cancelled():
            yield _sse({"type": "error", "error": "Generation task was cancelled"})
            return
        error = task.exception()
        if error is not None:
            yield _sse({"type": "error", "error": str(error)})
            return
        generation = task.result()
        if generation is None:
            yield _sse(skipped_event or {"type": "error", "error": "Message could not be sent"})
            return
        message = runtime.store.get_message(generation.session_id, generation.message_id)
        yield _sse({
            "type": "error" if generation.error else "done",
            "state": generation.state.value,
            "content": message.content if message else generation.content,
            "error": generation.error,
        })

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        }
    )


@router.post("/message")
async def send_message(
    request: SendMessageRequest,
    stream: bool = Query(False, description="Enable streaming output"),
    runtime: ChatRuntime = Depends(get_chat_runtime),
):
    """
    Send a message to the active session (created if needed).

    Returns:
        GenerationResponse (stream=false) or StreamingResponse (stream=true)
    """
    attachment = _parse_attachment(request)
    _require_configured(runtime)

    if stream:
        return _stream_generation(
            runtime,
            lambda on_start: runtime.controller.send(request.content, attachment, on_start=on_start),
        )

    try:
        generation = await runtime.controller.send(request.content, attachment)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    finally:
        runtime.snapshots.request()

    if generation is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Message could not be sent")
    return _generation_response(runtime, generation)


@router.post("/regenerate/{message_id}")
async def regenerate_response(
    message_id: str,
    stream: bool = Query(False, description="Enable streaming output"),
    runtime: ChatRuntime = Depends(get_chat_runtime),
):
    """
    Regenerate an assistant message of the active session in place.
    Invalid targets are ignored and reported with state "idle".
    """
    _require_configured(runtime)

    if stream:
        return _stream_generation(
            runtime,
            lambda on_start: runtime.controller.regenerate(message_id, on_start=on_start),
            skipped_event={"type": "idle", "message_id": message_id},
        )

    try:
        generation = await runtime.controller.regenerate(message_id)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if generation is None:
        return {"state": "idle", "message_id": message_id}
    runtime.snapshots.request()
    return _generation_response(runtime, generation)


@router.post("/cancel")
async def cancel_generation(runtime: ChatRuntime = Depends(get_chat_runtime)):
    """Stop the most recent live generation."""
    generation = runtime.controller.cancel()
    if generation is None:
        return {"state": "idle"}
    runtime.snapshots.request()
    return _generation_response(runtime, generation)


@router.post("/analyze-image")
async def analyze_image(
    request: AnalyzeImageRequest,
    runtime: ChatRuntime = Depends(get_chat_runtime),
):
    try:
        analysis = await runtime.controller.analyze_image(request.image_url, request.prompt)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except TransportError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    return {"analysis": analysis}


@router.post("/generate-image")
async def generate_image(
    request: GenerateImageRequest,
    runtime: ChatRuntime = Depends(get_chat_runtime),
):
    try:
        image_url = await runtime.controller.generate_image(request.prompt)
    except ConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except TransportError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)
    return {"image_url": image_url}


@router.get("/notifications", response_model=List[NotificationResponse])
async def get_notifications(runtime: ChatRuntime = Depends(get_chat_runtime)):
    """Most recent notifications, oldest first."""
    return [
        NotificationResponse(title=n.title, description=n.description, variant=n.variant)
        for n in runtime.recent_notifications()
    ]
