"""
OpenRouter Chat Transport.
OpenAI-compatible chat/completions API with SSE streaming.
"""

import httpx
import logging
import time
from typing import Optional, List, Dict, Any

from ..core.errors import TransportError
from ..core.logging_config import filter_sensitive_data, truncate_large_data
from ..models.completion import ChatCompletion
from .base import (
    ChatTransport, LLMMessage, CompletionOptions,
    DeltaCallback, CompleteCallback, ErrorCallback, StopCheck,
)
from .stream_decoder import decode_stream

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterTransport(ChatTransport):
    """
    Transport for the OpenRouter API.
    A new httpx.AsyncClient is opened per call; ``http_transport`` may be
    supplied to route requests elsewhere (e.g. httpx.MockTransport in tests).
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        app_title: str = "Pillow AI",
        referer: str = "http://localhost:8000",
        timeout: float = 120.0,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, base_url, timeout)
        self.app_title = app_title
        self.referer = referer
        self.http_transport = http_transport

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.referer,
            "X-Title": self.app_title,
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.http_transport)

    def _build_payload(
        self,
        messages: List[LLMMessage],
        model: str,
        options: Optional[CompletionOptions],
        stream: bool,
    ) -> Dict[str, Any]:
        options = options or CompletionOptions()
        payload: Dict[str, Any] = {
            "model": model,
            "messages": self._format_messages(messages),
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
            "stream": stream,
        }
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"LLM API request: model={model}, stream={stream}, "
                f"{len(messages)} messages, headers={filter_sensitive_data(self._get_headers())}"
            )
        return payload

    @staticmethod
    def _error_message(response: httpx.Response, prefix: str = "OpenRouter API error") -> str:
        """Human-readable message from an error response body."""
        try:
            data = response.json()
        except ValueError:
            data = None

        if isinstance(data, dict):
            error = data.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
        return f"{prefix}: {response.status_code} {response.reason_phrase}"

    async def _raise_for_status(
        self, response: httpx.Response, prefix: str = "OpenRouter API error"
    ) -> None:
        if response.is_success:
            return
        await response.aread()
        logger.debug(
            f"LLM API error body: {truncate_large_data(response.text, max_length=1000)}"
        )
        raise TransportError(self._error_message(response, prefix), status_code=response.status_code)

    async def send_message(
        self,
        messages: List[LLMMessage],
        model: str,
        options: Optional[CompletionOptions] = None,
    ) -> ChatCompletion:
        """Send a non-streaming request and return the parsed completion."""
        start_time = time.time()
        url = f"{self.base_url}/chat/completions"
        payload = self._build_payload(messages, model, options, stream=False)

        try:
            async with self._client() as client:
                resp = await client.post(url, json=payload, headers=self._get_headers())
                await self._raise_for_status(resp)
                completion = ChatCompletion.model_validate(resp.json())
        except httpx.HTTPError as e:
            logger.error(f"LLM API call failed: {e!r}", extra={"extra_fields": {
                "model": model,
                "duration_ms": round((time.time() - start_time) * 1000, 2),
            }})
            raise TransportError(str(e) or e.__class__.__name__) from e
        except ValueError as e:
            # Undecodable body or unexpected shape on a 2xx response
            logger.error(f"LLM API returned an invalid body: {e}")
            raise TransportError(f"Invalid response from OpenRouter API: {e}") from e
        except TransportError as e:
            logger.error(f"LLM API call failed: {e}", extra={"extra_fields": {
                "model": model,
                "status_code": e.status_code,
                "duration_ms": round((time.time() - start_time) * 1000, 2),
            }})
            raise

        logger.info(
            "LLM API call completed",
            extra={"extra_fields": {
                "model": completion.model or model,
                "prompt_tokens": completion.usage.prompt_tokens,
                "completion_tokens": completion.usage.completion_tokens,
                "total_tokens": completion.usage.total_tokens,
                "duration_ms": round((time.time() - start_time) * 1000, 2),
            }}
        )
        return completion

    async def send_streaming(
        self,
        messages: List[LLMMessage],
        model: str,
        options: Optional[CompletionOptions],
        on_delta: DeltaCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
        should_stop: Optional[StopCheck] = None,
    ) -> None:
        """Stream a completion through the SSE decoder."""
        start_time = time.time()
        url = f"{self.base_url}/chat/completions"
        payload = self._build_payload(messages, model, options, stream=True)
        error: Optional[TransportError] = None
        content_length = 0

        def count_delta(text: str) -> None:
            nonlocal content_length
            content_length += len(text)
            on_delta(text)

        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", url, json=payload, headers=self._get_headers()
                ) as response:
                    await self._raise_for_status(response)
                    await decode_stream(response.aiter_bytes(), count_delta,
                                        should_stop=should_stop)
        except TransportError as e:
            error = e
        except httpx.HTTPError as e:
            error = TransportError(str(e) or e.__class__.__name__)

        duration_ms = round((time.time() - start_time) * 1000, 2)
        if error is not None:
            logger.error(
                f"LLM API stream failed: {error}",
                extra={"extra_fields": {
                    "model": model,
                    "status_code": error.status_code,
                    "duration_ms": duration_ms,
                }}
            )
            on_error(error)
            return

        logger.info(
            "LLM API stream completed",
            extra={"extra_fields": {
                "model": model,
                "duration_ms": duration_ms,
                "content_length": content_length,
            }}
        )
        on_complete()

    async def generate_image(
        self,
        prompt: str,
        model: str,
        width: int = 1024,
        height: int = 1024,
    ) -> str:
        """
        Request an image from the images/generations endpoint.

        Returns:
            URL of the first generated image, or "" if none was returned
        """
        url = f"{self.base_url}/images/generations"
        payload = {
            "model": model,
            "prompt": prompt,
            "size": f"{width}x{height}",
            "n": 1,
        }

        try:
            async with self._client() as client:
                resp = await client.post(url, json=payload, headers=self._get_headers())
                await self._raise_for_status(resp, prefix="OpenRouter Image API error")
                data = resp.json()
        except httpx.HTTPError as e:
            logger.error(f"Image generation failed: {e!r}")
            raise TransportError(str(e) or e.__class__.__name__) from e
        except ValueError as e:
            logger.error(f"Image generation returned an invalid body: {e}")
            raise TransportError(f"Invalid response from OpenRouter API: {e}") from e

        images = data.get("data") if isinstance(data, dict) else None
        if images and isinstance(images[0], dict):
            return images[0].get("url") or ""
        return ""
