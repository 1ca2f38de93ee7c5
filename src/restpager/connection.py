"""Connection context shared by every request issued through one client."""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from .config import DEFAULT_API_VERSION, DEFAULT_URL, ClientSettings
from .request_builder import url_join

logger = logging.getLogger("restpager.connection")

__all__ = ["ConnectionContext", "create_connection"]


@dataclass(frozen=True)
class ConnectionContext:
    """Immutable bundle of base URL, auth headers and TLS policy.

    Safe to share between concurrent calls; nothing mutates it after
    construction. ``headers`` is exposed as a read-only mapping.

    Attributes:
        base_url: API root, e.g. https://gitlab.com/api/v4
        headers: Authentication headers sent with every request
        reject_unauthorized: Verify TLS certificates
    """

    base_url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    reject_unauthorized: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> "ConnectionContext":
        """Build a context from loaded ClientSettings."""
        return create_connection(
            url=settings.url,
            token=settings.get_token(),
            oauth_token=settings.get_oauth_token(),
            version=settings.version,
            reject_unauthorized=settings.reject_unauthorized,
        )


def create_connection(
    url: str = DEFAULT_URL,
    token: str | None = None,
    oauth_token: str | None = None,
    version: str = DEFAULT_API_VERSION,
    reject_unauthorized: bool = True,
) -> ConnectionContext:
    """Create the ConnectionContext for a server.

    Exactly one auth header is set: ``authorization: Bearer <oauth_token>``
    when an OAuth token is given, otherwise ``private-token: <token>``.
    With neither, requests go out unauthenticated.

    Args:
        url: Server root URL
        token: Personal access token
        oauth_token: OAuth bearer token (wins over token)
        version: API version segment
        reject_unauthorized: Verify TLS certificates

    Returns:
        ConnectionContext rooted at <url>/api/<version>
    """
    headers: dict[str, str] = {}
    if oauth_token:
        headers["authorization"] = f"Bearer {oauth_token}"
    elif token:
        headers["private-token"] = token
    else:
        logger.debug("connection_unauthenticated", extra={"url": url})

    return ConnectionContext(
        base_url=url_join(url, "api", version),
        headers=headers,
        reject_unauthorized=reject_unauthorized,
    )
