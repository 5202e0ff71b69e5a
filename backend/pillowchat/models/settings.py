"""
User-facing chat settings.
"""

from typing import List
from pydantic import BaseModel, Field

DEFAULT_SYSTEM_PROMPT = (
    "You are Pillow AI, a helpful and intelligent assistant. Be conversational, "
    "accurate, and provide detailed responses when appropriate."
)

DEFAULT_MESSAGE_TEMPLATES = [
    "Explain this concept in simple terms:",
    "Analyze this image and describe what you see:",
    "Create a detailed plan for:",
    "Compare and contrast:",
    "Summarize the key points of:",
    "Generate creative ideas for:",
    "Review and improve this text:",
    "What are the pros and cons of:",
]


class ChatSettings(BaseModel):
    """Settings read by each generation. Ranges are enforced when constructed from input."""
    api_key: str = ""
    preferred_text_model: str = "google/gemma-2-9b-it:free"
    preferred_image_model: str = "black-forest-labs/flux-schnell:free"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2048, ge=100, le=4096)

    # Feature toggles
    enable_image_analysis: bool = True
    enable_chat_history: bool = True
    auto_save_chats: bool = True

    message_templates: List[str] = Field(
        default_factory=lambda: list(DEFAULT_MESSAGE_TEMPLATES)
    )
