"""
misanthropic - Client

Async client for the Messages API.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Mapping, Optional, Sequence, Union

import httpx

from .errors import AnthropicError, AuthenticationError, DecodeError, TransportError
from .models import ResponseMessage
from .streaming.stream import EventStream


__version__ = "0.5.1"

logger = logging.getLogger("misanthropic.client")


class Client:
    """
    Async client for the Messages API.

    Args:
        api_key: Your API key. If not provided, reads from ANTHROPIC_API_KEY env var.
        base_url: Base URL for the API. Defaults to https://api.anthropic.com/v1
        timeout: Request timeout in seconds. Defaults to 600, long enough
            for a full streamed response.
        beta: Beta feature names sent in the ``anthropic-beta`` header.
        http_client: An httpx.AsyncClient to use instead of creating one.
            It is not closed by ``aclose``.

    Example:
        >>> async with Client() as client:
        ...     stream = await client.stream(prompt)
        ...     async for text in stream.filter_transient_errors().text():
        ...         print(text, end="", flush=True)
    """

    ANTHROPIC_VERSION = "2023-06-01"
    DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
    PROMPT_CACHING_BETA = "prompt-caching-2024-07-31"
    USER_AGENT = f"misanthropic-python/{__version__}"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 600.0,
        beta: Optional[Sequence[str]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self.api_key:
            raise AuthenticationError(
                "API key required. Set ANTHROPIC_API_KEY environment variable or pass api_key parameter."
            )

        self.base_url = (
            base_url or os.getenv("ANTHROPIC_BASE_URL") or self.DEFAULT_BASE_URL
        ).rstrip("/")
        self.timeout = timeout
        self.beta = list(beta or [])

        self._client = http_client
        self._owns_client = http_client is None

        logger.info("Client created for %s", self.base_url)

    @property
    def headers(self) -> Dict[str, str]:
        """Headers sent with every request."""
        headers = {
            "x-api-key": self.api_key or "",
            "anthropic-version": self.ANTHROPIC_VERSION,
            "content-type": "application/json",
            "user-agent": self.USER_AGENT,
        }
        if self.beta:
            headers["anthropic-beta"] = ",".join(self.beta)
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def request(
        self,
        prompt: Mapping[str, Any],
    ) -> Union[EventStream, ResponseMessage]:
        """
        Send a prompt to the messages endpoint.

        Args:
            prompt: The request body. ``prompt["stream"]`` selects the
                response kind.

        Returns:
            An EventStream when streaming, otherwise the ResponseMessage.

        Raises:
            AnthropicError: If the API responds with an error
            TransportError: If the request cannot be sent
            DecodeError: If a non-streaming response body is not a message
        """
        if prompt.get("stream", False):
            return await self.stream(prompt)
        return await self.message(prompt)

    async def stream(self, prompt: Mapping[str, Any]) -> EventStream:
        """
        Send a prompt and stream the response.

        Returns:
            The EventStream. Close it (or use ``async with``) to release the
            connection early.
        """
        response = await self._send({**prompt, "stream": True})
        return EventStream.from_response(response)

    async def message(self, prompt: Mapping[str, Any]) -> ResponseMessage:
        """Send a prompt and wait for the complete response message."""
        response = await self._send({**prompt, "stream": False})
        try:
            return ResponseMessage.from_dict(response.json())
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"Could not decode message: {e!r}", cause=e) from e

    # ============================================================
    # Private methods
    # ============================================================

    async def _send(self, payload: Dict[str, Any]) -> httpx.Response:
        """POST to the messages endpoint, raising on an error response."""
        streaming = bool(payload["stream"])
        url = f"{self.base_url}/messages"

        client = self._get_client()
        http_request = client.build_request(
            "POST",
            url,
            content=json.dumps(payload),
            headers=self.headers,
        )

        logger.debug(
            "POST %s (model=%s, stream=%s)", url, payload.get("model"), streaming
        )

        try:
            response = await client.send(http_request, stream=streaming)
        except httpx.HTTPError as e:
            logger.error("Request to %s failed: %r", url, e)
            raise TransportError(f"Request failed: {e}", cause=e) from e

        if response.status_code != 200:
            raise await self._error_from_response(response)
        return response

    async def _error_from_response(self, response: httpx.Response) -> AnthropicError:
        """Read and close an error response, returning the API error."""
        try:
            await response.aread()
            try:
                data = response.json()
            except ValueError:
                data = {}
        finally:
            await response.aclose()

        if not isinstance(data, dict):
            data = {}

        error = AnthropicError.from_response(data, response.status_code)
        logger.warning("API error: %s", error)
        return error

    async def aclose(self) -> None:
        """Close the async HTTP client, if this client created it."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()
