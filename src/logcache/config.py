"""Local configuration for logcache."""

from __future__ import annotations

import os
from pathlib import Path


DEFAULT_PAGE_SIZE = 1000
DEFAULT_SOURCE = "boto3"
DEFAULT_AWS_CLI = "aws"
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_PARTIAL_TTL_SECONDS = 24 * 60 * 60

# Bump whenever the fingerprint serialization changes; old entries stay on
# disk but are never looked up again.
FINGERPRINT_VERSION = 3


def _default_cache_dir() -> Path:
    xdg_cache = os.getenv("XDG_CACHE_HOME")
    base = Path(xdg_cache) if xdg_cache else Path("~/.cache")
    return base / "logcache"


LOGCACHE_CACHE_PATH = Path(os.getenv("LOGCACHE_CACHE_PATH", str(_default_cache_dir()))).expanduser().resolve()
LOGCACHE_PAGE_SIZE = int(os.getenv("LOGCACHE_PAGE_SIZE", str(DEFAULT_PAGE_SIZE)))
LOGCACHE_PARTIAL_TTL_SECONDS = int(os.getenv("LOGCACHE_PARTIAL_TTL_SECONDS", str(DEFAULT_PARTIAL_TTL_SECONDS)))
LOGCACHE_SOURCE = os.getenv("LOGCACHE_SOURCE", DEFAULT_SOURCE)
LOGCACHE_AWS_CLI = os.getenv("LOGCACHE_AWS_CLI", DEFAULT_AWS_CLI)
LOGCACHE_AWS_PROFILE = os.getenv("LOGCACHE_AWS_PROFILE") or None
LOGCACHE_AWS_REGION = os.getenv("LOGCACHE_AWS_REGION") or None
LOGCACHE_LOG_LEVEL = os.getenv("LOGCACHE_LOG_LEVEL", DEFAULT_LOG_LEVEL)
