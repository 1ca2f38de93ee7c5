"""HTTP transport for restpager.

Executes RequestDescriptors over a long-lived httpx.AsyncClient with
connection pooling. Retries rate-limited (429) responses using the
Retry-After header; every other failure is raised to the caller.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator

import httpx

from .config import ClientSettings
from .metrics import request_duration_seconds, requests_total, retries_total
from .request_builder import RequestDescriptor, flatten_query

logger = logging.getLogger("restpager.transport")

__all__ = [
    "ApiClientError",
    "HttpTransport",
    "RateLimitExceeded",
    "ResponseEnvelope",
]


class ApiClientError(Exception):
    """Raised when an API request fails.

    Wraps httpx errors and non-2xx responses for consistent error handling.

    Attributes:
        status_code: HTTP status of the failed response, if one was received
        response_body: Decoded body of the failed response, if any
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: Any = None,
    ):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


class RateLimitExceeded(ApiClientError):
    """Raised when 429 responses persist after all retries."""


@dataclass(frozen=True)
class ResponseEnvelope:
    """Headers and decoded body of one response.

    ``headers`` is an httpx.Headers instance, so lookups are
    case-insensitive.
    """

    body: Any
    headers: httpx.Headers
    status_code: int = 200


class HttpTransport:
    """Executes RequestDescriptors with httpx.

    One httpx.AsyncClient is kept per TLS verification mode, created on
    first use and reused for every later request.

    Example:
        >>> async with HttpTransport() as transport:
        ...     body = await transport.execute(descriptor)
    """

    DEFAULT_TIMEOUT = 30.0  # seconds
    CONNECT_TIMEOUT = 5.0  # seconds
    MAX_RETRIES = 3
    DEFAULT_RETRY_AFTER = 1.0  # seconds, when 429 carries no Retry-After
    MAX_BACKOFF = 60.0  # seconds

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        max_backoff: float = MAX_BACKOFF,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            timeout: Read/write/pool timeout in seconds
            max_retries: Retries after a 429 response
            max_backoff: Cap on a single Retry-After wait
            transport: Optional httpx transport (e.g. httpx.MockTransport)
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.max_backoff = max_backoff
        self._transport = transport
        self._clients: dict[bool, httpx.AsyncClient] = {}

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "HttpTransport":
        return cls(
            timeout=settings.timeout_seconds,
            max_retries=settings.max_retries,
            max_backoff=settings.max_backoff,
            transport=transport,
        )

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close every httpx client and release connections."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.aclose()

    def _client_for(self, verify: bool) -> httpx.AsyncClient:
        client = self._clients.get(verify)
        if client is None:
            client = httpx.AsyncClient(
                verify=verify,
                transport=self._transport,
                timeout=httpx.Timeout(self.timeout, connect=self.CONNECT_TIMEOUT),
                limits=httpx.Limits(
                    max_keepalive_connections=20,
                    max_connections=100,
                    keepalive_expiry=10.0,
                ),
                headers={"Accept": "application/json"},
            )
            self._clients[verify] = client
        return client

    @staticmethod
    def _request_kwargs(descriptor: RequestDescriptor) -> dict[str, Any]:
        # Merge into the URL's own query (a followed next link already has
        # page=N); httpx params= would replace it
        url = httpx.URL(descriptor.url)
        if descriptor.params:
            url = url.copy_merge_params(flatten_query(descriptor.params))
        return {
            "url": url,
            "headers": dict(descriptor.headers),
            "json": descriptor.body,
            "data": descriptor.form_data,
        }

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except (ValueError, UnicodeDecodeError):
            return response.text

    def _retry_after(self, response: httpx.Response) -> float:
        raw = response.headers.get("Retry-After")
        try:
            wait = float(raw) if raw is not None else self.DEFAULT_RETRY_AFTER
        except ValueError:
            logger.warning("Non-numeric Retry-After header: %r", raw)
            wait = self.DEFAULT_RETRY_AFTER
        return max(0.0, min(wait, self.max_backoff))

    def _raise_for_status(self, descriptor: RequestDescriptor, response: httpx.Response) -> None:
        if response.is_success:
            return
        body = self._decode(response)
        message = body.get("message", body) if isinstance(body, dict) else body
        logger.error(
            "request_rejected",
            extra={
                "method": descriptor.method,
                "url": descriptor.url,
                "status_code": response.status_code,
            },
        )
        raise ApiClientError(
            f"API error {response.status_code}: {message}",
            status_code=response.status_code,
            response_body=body,
        )

    async def _send(self, descriptor: RequestDescriptor) -> httpx.Response:
        """Send one descriptor, retrying on 429.

        Raises:
            RateLimitExceeded: 429 persisted after max_retries retries
            ApiClientError: Network failure or any other non-2xx status
        """
        client = self._client_for(descriptor.verify)
        kwargs = self._request_kwargs(descriptor)

        for attempt in range(self.max_retries + 1):
            start = time.monotonic()
            try:
                response = await client.request(descriptor.method, **kwargs)
            except httpx.HTTPError as e:
                requests_total.labels(method=descriptor.method, status="error").inc()
                logger.error(
                    "request_failed",
                    extra={
                        "method": descriptor.method,
                        "url": descriptor.url,
                        "error": str(e),
                    },
                )
                raise ApiClientError(f"HTTP error: {e}") from e
            finally:
                request_duration_seconds.labels(method=descriptor.method).observe(
                    time.monotonic() - start
                )

            requests_total.labels(
                method=descriptor.method, status=str(response.status_code)
            ).inc()
            logger.debug(
                "request_completed",
                extra={
                    "method": descriptor.method,
                    "url": str(response.request.url),
                    "status_code": response.status_code,
                },
            )

            if response.status_code == 429:
                if attempt < self.max_retries:
                    wait = self._retry_after(response)
                    retries_total.labels(reason="rate_limited").inc()
                    logger.warning(
                        "Rate limited. Retrying in %.1fs (attempt %d/%d)",
                        wait,
                        attempt + 1,
                        self.max_retries,
                    )
                    await asyncio.sleep(wait)
                    continue
                raise RateLimitExceeded(
                    f"Rate limit exceeded after {self.max_retries} retries",
                    status_code=429,
                    response_body=self._decode(response),
                )

            self._raise_for_status(descriptor, response)
            return response

        # Loop always returns or raises
        raise ApiClientError("Request failed after all retries")

    async def execute(self, descriptor: RequestDescriptor) -> Any:
        """Execute a buffered request.

        Returns:
            ResponseEnvelope when descriptor.full_response, else the decoded
            body (JSON when parseable, text otherwise, None when empty)
        """
        response = await self._send(descriptor)
        body = self._decode(response)
        if descriptor.full_response:
            return ResponseEnvelope(
                body=body,
                headers=response.headers,
                status_code=response.status_code,
            )
        return body

    @asynccontextmanager
    async def stream(self, descriptor: RequestDescriptor) -> AsyncIterator[httpx.Response]:
        """Open a streaming request.

        Yields the live httpx.Response with its body unread. The response
        is closed when the block exits, however it exits.

        Example:
            >>> async with transport.stream(descriptor) as response:
            ...     async for chunk in response.aiter_bytes():
            ...         sink.write(chunk)
        """
        client = self._client_for(descriptor.verify)
        try:
            async with client.stream(
                descriptor.method, **self._request_kwargs(descriptor)
            ) as response:
                requests_total.labels(
                    method=descriptor.method, status=str(response.status_code)
                ).inc()
                if not response.is_success:
                    await response.aread()
                    self._raise_for_status(descriptor, response)
                yield response
        except httpx.HTTPError as e:
            requests_total.labels(method=descriptor.method, status="error").inc()
            raise ApiClientError(f"HTTP error: {e}") from e
