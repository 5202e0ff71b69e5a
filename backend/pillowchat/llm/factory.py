"""
Chat Transport Factory - Creates the configured transport instance.
"""

from typing import Optional

from ..config import settings
from .base import ChatTransport
from .openrouter_provider import OpenRouterTransport


def create_transport(api_key: str, **kwargs) -> Optional[ChatTransport]:
    """
    Create a chat transport for the given credential.

    Args:
        api_key: API key for OpenRouter
        **kwargs: Overrides for OpenRouterTransport parameters

    Returns:
        ChatTransport instance, or None if api_key is not configured
    """
    if not api_key:
        return None

    params = {
        "api_key": api_key,
        "base_url": settings.openrouter_base_url,
        "app_title": settings.openrouter_app_title,
        "referer": settings.openrouter_referer,
        "timeout": settings.request_timeout,
    }
    params.update(kwargs)
    return OpenRouterTransport(**params)
