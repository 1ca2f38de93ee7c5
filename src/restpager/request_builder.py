"""Request construction for the restpager transport.

Turns a ConnectionContext plus per-call inputs into a RequestDescriptor.
Everything in this module is pure: no I/O, no shared state, same inputs
give the same descriptor.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

import httpx

from .casing import decamelize_keys

if TYPE_CHECKING:
    from .connection import ConnectionContext

__all__ = ["RequestDescriptor", "build_request", "flatten_query", "url_join"]

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


@dataclass(frozen=True)
class RequestDescriptor:
    """One fully specified HTTP request, consumed once by the transport.

    Attributes:
        method: HTTP method (GET, POST, PUT, DELETE)
        url: Absolute request URL
        headers: Request headers (auth headers from the connection)
        params: Structured query parameters, already translated to wire names
        body: JSON body, already translated to wire names
        form_data: Form-encoded body, already translated to wire names
        full_response: Transport returns the full envelope instead of the body
        streaming: Transport hands back a live response instead of buffering
        verify: Verify TLS certificates
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, Any] | None = None
    body: dict[str, Any] | None = None
    form_data: dict[str, Any] | None = None
    full_response: bool = False
    streaming: bool = False
    verify: bool = True


def url_join(*parts: str) -> str:
    """Join URL segments with exactly one slash between them.

    Leading/trailing slashes on any segment do not matter, the scheme's
    '//' is preserved and a query segment attaches without a slash:

        >>> url_join("https://host/", "/api", "v4/", "?page=2")
        'https://host/api/v4?page=2'

    Normalization happens only where segments meet; characters inside a
    segment's own query string are never rewritten.
    """
    segments = [str(p) for p in parts if p is not None and str(p) != ""]
    if not segments:
        return ""

    last = len(segments) - 1
    url = ""
    for i, segment in enumerate(segments):
        if i > 0:
            segment = segment.lstrip("/")
        if i < last and not _SCHEME_RE.fullmatch(segment):
            segment = segment.rstrip("/")
        segment = _strip_slash_before_query(segment)
        if not segment:
            continue

        if not url:
            url = segment
        elif segment[0] in "?&":
            # Only the first '?' starts the query; later joins use '&'
            separator = "&" if "?" in url else "?"
            url = url.rstrip("/") + separator + segment[1:]
        elif segment[0] == "#":
            url = url.rstrip("/") + segment
        elif url.endswith("://"):
            url += segment
        else:
            url = f"{url}/{segment}"
    return url


def _strip_slash_before_query(segment: str) -> str:
    """'projects/?page=2' -> 'projects?page=2'; the query itself is untouched."""
    match = re.search(r"[?#]", segment)
    if not match:
        return segment
    head, tail = segment[: match.start()], segment[match.start():]
    if _SCHEME_RE.fullmatch(head):
        return segment
    return head.rstrip("/") + tail


def flatten_query(params: Mapping[str, Any]) -> list[tuple[str, Any]]:
    """Flatten nested query records into bracket-notation pairs.

    {"filter": {"state": "open"}, "ids": [1, 2]} becomes
    [("filter[state]", "open"), ("ids[]", 1), ("ids[]", 2)].
    None values are dropped.
    """
    pairs: list[tuple[str, Any]] = []

    def _walk(prefix: str, value: Any) -> None:
        if value is None:
            return
        if isinstance(value, Mapping):
            for key, inner in value.items():
                _walk(f"{prefix}[{key}]", inner)
        elif isinstance(value, (list, tuple)):
            for item in value:
                _walk(f"{prefix}[]", item)
        else:
            pairs.append((prefix, value))

    for key, value in params.items():
        _walk(str(key), value)
    return pairs


def build_request(
    context: ConnectionContext,
    endpoint: str,
    *,
    method: str = "GET",
    body: Mapping[str, Any] | None = None,
    query: Mapping[str, Any] | None = None,
    form_data: Mapping[str, Any] | None = None,
    full_response: bool = False,
    streaming: bool = False,
    structured_query: bool = True,
) -> RequestDescriptor:
    """Build the RequestDescriptor for one call.

    Args:
        context: Connection the request is issued through
        endpoint: Path relative to context.base_url
        method: HTTP method
        body: JSON body record, keys translated to snake_case
        query: Query record, keys translated recursively
        form_data: Form body record, keys translated to snake_case
        full_response: Ask the transport for headers + body
        streaming: Ask the transport for a live stream
        structured_query: When False, serialize the query into the URL for
            transports that cannot take structured parameters

    Returns:
        RequestDescriptor ready for the transport. Nothing is validated
        here; unserializable values fail in the transport.
    """
    url = url_join(context.base_url, endpoint)
    params = None

    if query:
        translated = decamelize_keys(dict(query))
        if structured_query:
            params = translated
        else:
            encoded = str(httpx.QueryParams(flatten_query(translated)))
            if encoded:
                url = url_join(url, f"?{encoded}")

    return RequestDescriptor(
        method=method.upper(),
        url=url,
        headers=dict(context.headers),
        params=params,
        body=decamelize_keys(dict(body)) if body is not None else None,
        form_data=decamelize_keys(dict(form_data)) if form_data is not None else None,
        full_response=full_response,
        streaming=streaming,
        verify=context.reject_unauthorized,
    )
