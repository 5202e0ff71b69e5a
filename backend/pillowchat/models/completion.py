"""
Response models for non-streaming chat completions.
"""

from typing import List, Optional
from pydantic import BaseModel, Field


class CompletionMessage(BaseModel):
    content: Optional[str] = None


class CompletionChoice(BaseModel):
    message: CompletionMessage = Field(default_factory=CompletionMessage)
    finish_reason: Optional[str] = None


class CompletionUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletion(BaseModel):
    """Body of a non-streaming ``chat/completions`` response."""
    id: str = ""
    choices: List[CompletionChoice] = Field(default_factory=list)
    model: str = ""
    usage: CompletionUsage = Field(default_factory=CompletionUsage)

    @property
    def content(self) -> Optional[str]:
        """Content of the first choice, if any."""
        if not self.choices:
            return None
        return self.choices[0].message.content
