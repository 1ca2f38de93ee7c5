"""Version information for restpager.

Single source of truth for version number.
Follows PEP 440 and semantic versioning principles.
"""

__version__ = "1.0.0"
__version_info__ = tuple(int(part) for part in __version__.split("."))

# Version history:
# 1.0.0 - Request builder, link-header pagination engine, httpx transport
