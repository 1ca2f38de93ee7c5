"""Pagination engine for list endpoints.

Issues a list request, reads the Link and X-* pagination headers of the
response and keeps following ``rel="next"`` until the server stops
reporting one, the caller's max_pages bound is reached, or the caller
pinned a single page. Pages are concatenated in the order they were
served.

Metadata is returned only for a pinned page with show_pagination;
merged multi-page results are plain lists.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, AsyncContextManager, Mapping

import httpx

from .config import ClientSettings, get_settings
from .connection import ConnectionContext
from .logging_config import configure_logging
from .metrics import pages_fetched_total
from .request_builder import build_request
from .transport import ApiClientError, HttpTransport

logger = logging.getLogger("restpager.pagination")

__all__ = [
    "CancellationToken",
    "PaginatedPage",
    "PaginationCancelled",
    "PaginationEngine",
    "PaginationMetadata",
    "parse_link_header",
    "split_pagination_options",
]

# Caller-facing pagination controls; never sent as query parameters
_SHOW_PAGINATION_KEYS = ("showPagination", "show_pagination")
_MAX_PAGES_KEYS = ("maxPages", "max_pages")

_LINK_PART_RE = re.compile(r"\s*<([^>]*)>(.*)")
_REL_RE = re.compile(r';\s*rel\s*=\s*"?([^";]+)"?', re.IGNORECASE)


class PaginationCancelled(ApiClientError):
    """Raised when a CancellationToken stops a paginated call mid-chain."""


class CancellationToken:
    """Cooperative cancellation for multi-page fetches.

    Pass the same token to get_paginated() and call cancel() from anywhere;
    the chain stops before requesting its next page and already fetched
    pages are discarded.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str | None = None) -> None:
        self._cancelled = True
        self.reason = reason

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise PaginationCancelled(
                f"Pagination cancelled: {self.reason or 'no reason given'}"
            )


@dataclass(frozen=True)
class PaginationMetadata:
    """Pagination headers of a single response; absent headers are None."""

    total: int | None = None
    next: int | None = None
    current: int | None = None
    previous: int | None = None
    per_page: int | None = None
    total_pages: int | None = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "PaginationMetadata":
        return cls(
            total=_int_header(headers, "x-total"),
            next=_int_header(headers, "x-next-page"),
            current=_int_header(headers, "x-page"),
            previous=_int_header(headers, "x-prev-page"),
            per_page=_int_header(headers, "x-per-page"),
            total_pages=_int_header(headers, "x-total-pages"),
        )


@dataclass(frozen=True)
class PaginatedPage:
    """One pinned page together with its pagination metadata."""

    data: Any
    pagination: PaginationMetadata


def _int_header(headers: Mapping[str, str], name: str) -> int | None:
    """Read an integer header; missing, empty or non-numeric gives None."""
    raw = headers.get(name)
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def parse_link_header(value: str | None) -> dict[str, str]:
    """Parse an RFC 5988 Link header into {rel: url}.

    '<https://host/api/v4/projects?page=2>; rel="next", <...>; rel="last"'
    gives {"next": "https://host/api/v4/projects?page=2", "last": ...}.
    A missing or empty header gives {}.
    """
    links: dict[str, str] = {}
    if not value:
        return links

    for part in value.split(","):
        match = _LINK_PART_RE.match(part)
        if not match:
            continue
        url, params = match.groups()
        rel_match = _REL_RE.search(params)
        if not rel_match:
            continue
        # rel may carry several space-separated relation types
        for rel in rel_match.group(1).split():
            links.setdefault(rel.lower(), url.strip())
    return links


def split_pagination_options(
    options: Mapping[str, Any] | None,
) -> tuple[bool, int | None, dict[str, Any]]:
    """Separate pagination controls from query parameters.

    Returns:
        (show_pagination, max_pages, query_options). query_options keeps
        everything else, including a pinned ``page``.
    """
    query_options = dict(options or {})
    show_pagination = False
    max_pages = None
    for key in _SHOW_PAGINATION_KEYS:
        if key in query_options:
            show_pagination = bool(query_options.pop(key))
    for key in _MAX_PAGES_KEYS:
        if key in query_options:
            max_pages = query_options.pop(key)
    return show_pagination, max_pages, query_options


class PaginationEngine:
    """Request helper for one connection.

    Exposes get/post/put/delete over a ConnectionContext and an
    HttpTransport. get() walks Link-header pagination; the write
    operations issue exactly one request.

    Example:
        >>> async with PaginationEngine.from_settings() as api:
        ...     projects = await api.get("projects", {"perPage": 100, "maxPages": 5})
        ...     page = await api.get("projects", {"page": 2, "showPagination": True})
        ...     page.pagination.total_pages
    """

    def __init__(
        self,
        context: ConnectionContext,
        transport: HttpTransport,
        structured_query: bool = True,
    ) -> None:
        """Initialize the engine.

        Args:
            context: Connection every request is issued through
            transport: Executes the built requests
            structured_query: Pass queries as structured params; set False
                for transports that need the query serialized into the URL
        """
        self.context = context
        self.transport = transport
        self.structured_query = structured_query

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "PaginationEngine":
        """Build an engine (context + HttpTransport) from ClientSettings.

        Also applies the settings' log level and format.
        """
        settings = settings or get_settings()
        configure_logging(settings.log_level, settings.log_format)
        return cls(
            ConnectionContext.from_settings(settings),
            HttpTransport.from_settings(settings, transport=transport),
        )

    async def __aenter__(self) -> "PaginationEngine":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self.transport.close()

    # --- Public operations ---

    def get(
        self,
        endpoint: str,
        options: Mapping[str, Any] | None = None,
        *,
        stream: bool = False,
        cancel_token: CancellationToken | None = None,
    ):
        """Read an endpoint.

        With ``stream=True`` returns an async context manager yielding the
        live httpx.Response; no pagination is applied. Otherwise returns
        the get_paginated() coroutine, so callers ``await`` it.
        """
        if stream:
            return self.stream(endpoint, options)
        return self.get_paginated(endpoint, options, cancel_token=cancel_token)

    def stream(
        self, endpoint: str, options: Mapping[str, Any] | None = None
    ) -> AsyncContextManager[httpx.Response]:
        descriptor = build_request(
            self.context,
            endpoint,
            query=options,
            streaming=True,
            structured_query=self.structured_query,
        )
        return self.transport.stream(descriptor)

    async def get_paginated(
        self,
        endpoint: str,
        options: Mapping[str, Any] | None = None,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> Any:
        """Fetch a list endpoint, following next links.

        Args:
            endpoint: Path relative to the connection base URL
            options: Query parameters plus the controls ``page`` (pin one
                page, no following), ``maxPages`` (stop once the server's
                x-page reaches it) and ``showPagination`` (with a pinned
                page, return PaginatedPage)
            cancel_token: Checked before every page request

        Returns:
            List of records across all followed pages, or PaginatedPage
            when a page is pinned and showPagination is set

        Raises:
            ApiClientError: From the transport, on any page; earlier pages
                are discarded
            PaginationCancelled: cancel_token was cancelled
        """
        show_pagination, max_pages, query_options = split_pagination_options(options)
        pinned = query_options.get("page") is not None

        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        descriptor = build_request(
            self.context,
            endpoint,
            query=query_options,
            full_response=True,
            structured_query=self.structured_query,
        )
        response = await self.transport.execute(descriptor)
        pages_fetched_total.inc()

        links = parse_link_header(response.headers.get("link"))
        page = _int_header(response.headers, "x-page")
        # Server-reported page number, not a local counter
        if max_pages:
            under_max_page_limit = page is not None and page < max_pages
        else:
            under_max_page_limit = True

        logger.debug(
            "page_fetched",
            extra={
                "endpoint": endpoint,
                "page": page,
                "has_next": "next" in links,
                "pinned": pinned,
            },
        )

        next_endpoint = None
        if not pinned and under_max_page_limit and "next" in links:
            next_endpoint = self._relative_endpoint(links["next"])

        if next_endpoint is not None:
            more = await self.get_paginated(
                next_endpoint, options, cancel_token=cancel_token
            )
            data = [*(response.body or []), *(more or [])]
        else:
            data = response.body

        if pinned and show_pagination:
            return PaginatedPage(
                data=data,
                pagination=PaginationMetadata.from_headers(response.headers),
            )
        return data

    async def post(
        self,
        endpoint: str,
        options: Mapping[str, Any] | None = None,
        as_form: bool = False,
    ) -> Any:
        """Create a resource; options become the JSON (or form) body."""
        payload = dict(options or {})
        descriptor = build_request(
            self.context,
            endpoint,
            method="POST",
            body=None if as_form else payload,
            form_data=payload if as_form else None,
        )
        return await self.transport.execute(descriptor)

    async def put(
        self, endpoint: str, options: Mapping[str, Any] | None = None
    ) -> Any:
        """Update a resource; options become the JSON body."""
        descriptor = build_request(
            self.context, endpoint, method="PUT", body=dict(options or {})
        )
        return await self.transport.execute(descriptor)

    async def delete(
        self, endpoint: str, options: Mapping[str, Any] | None = None
    ) -> Any:
        """Delete a resource; options become query parameters."""
        descriptor = build_request(
            self.context,
            endpoint,
            method="DELETE",
            query=options,
            structured_query=self.structured_query,
        )
        return await self.transport.execute(descriptor)

    # --- Helpers ---

    def _relative_endpoint(self, url: str) -> str | None:
        """Strip the base URL from an absolute next link.

        Links pointing outside the connection's base URL are not followed.
        """
        base = self.context.base_url
        if url == base or url.startswith((base + "/", base + "?")):
            return url[len(base):]
        logger.warning(
            "Rejecting Link header URL not matching base_url: %.100s", url
        )
        return None
