"""restpager - request builder and Link-header pagination for REST APIs.

Provides:
- Configuration management with environment overrides
- Immutable connection context with token / OAuth authentication
- Pure request construction with camelCase -> snake_case translation
- httpx transport with 429 retry handling
- Pagination engine that follows rel="next" links

Python Version: 3.10+ required
"""

# Configure logging before other imports so module loggers inherit it
from .logging_config import StructuredFormatter, configure_logging

configure_logging()

from .__version__ import __version__  # noqa: E402
from .casing import decamelize, decamelize_keys  # noqa: E402
from .config import ClientSettings, get_settings, reset_settings  # noqa: E402
from .connection import ConnectionContext, create_connection  # noqa: E402
from .pagination import (  # noqa: E402
    CancellationToken,
    PaginatedPage,
    PaginationCancelled,
    PaginationEngine,
    PaginationMetadata,
    parse_link_header,
)
from .request_builder import RequestDescriptor, build_request, url_join  # noqa: E402
from .transport import (  # noqa: E402
    ApiClientError,
    HttpTransport,
    RateLimitExceeded,
    ResponseEnvelope,
)

__all__ = [
    "ApiClientError",
    "CancellationToken",
    "ClientSettings",
    "ConnectionContext",
    "HttpTransport",
    "PaginatedPage",
    "PaginationCancelled",
    "PaginationEngine",
    "PaginationMetadata",
    "RateLimitExceeded",
    "RequestDescriptor",
    "ResponseEnvelope",
    "StructuredFormatter",
    "__version__",
    "build_request",
    "configure_logging",
    "create_connection",
    "decamelize",
    "decamelize_keys",
    "get_settings",
    "parse_link_header",
    "reset_settings",
    "url_join",
]
