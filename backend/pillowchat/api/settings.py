"""
Settings API endpoints.
The API key is write-only: responses only report whether one is set.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..core.runtime import ChatRuntime, get_chat_runtime
from ..models import ChatSettings

router = APIRouter(prefix="/settings", tags=["settings"])


class SettingsUpdate(BaseModel):
    """Partial settings update; omitted fields keep their current value."""
    api_key: Optional[str] = None
    preferred_text_model: Optional[str] = None
    preferred_image_model: Optional[str] = None
    system_prompt: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=100, le=4096)
    enable_image_analysis: Optional[bool] = None
    enable_chat_history: Optional[bool] = None
    auto_save_chats: Optional[bool] = None
    message_templates: Optional[List[str]] = None


class SettingsResponse(BaseModel):
    has_api_key: bool
    preferred_text_model: str
    preferred_image_model: str
    system_prompt: str
    temperature: float
    max_tokens: int
    enable_image_analysis: bool
    enable_chat_history: bool
    auto_save_chats: bool
    message_templates: List[str]

    @classmethod
    def from_settings(cls, settings: ChatSettings) -> "SettingsResponse":
        data = settings.model_dump(exclude={"api_key"})
        return cls(has_api_key=bool(settings.api_key), **data)


@router.get("", response_model=SettingsResponse)
async def get_settings(runtime: ChatRuntime = Depends(get_chat_runtime)):
    return SettingsResponse.from_settings(runtime.controller.settings)


@router.put("", response_model=SettingsResponse)
async def update_settings(
    update: SettingsUpdate,
    runtime: ChatRuntime = Depends(get_chat_runtime),
):
    """Merge a settings update; in-flight generations keep their snapshot."""
    changes = update.model_dump(exclude_unset=True, exclude_none=True)
    merged = runtime.controller.settings.model_copy(update=changes)
    runtime.controller.update_settings(merged)
    runtime.snapshots.request()
    return SettingsResponse.from_settings(merged)
