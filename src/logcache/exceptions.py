"""Custom exceptions for logcache."""


class LogCacheError(Exception):
    """Base exception for logcache operations."""


class QueryError(LogCacheError):
    """Invalid query parameters."""


class CacheMissError(LogCacheError):
    """No completed cache entry exists for a fingerprint."""


class CacheIOError(LogCacheError):
    """Error reading or writing the local cache."""


class RemoteFailureError(LogCacheError):
    """Error returned by the remote log service or its transport."""


class MalformedResponseError(RemoteFailureError):
    """Remote payload does not have the expected shape."""


class RenderError(LogCacheError):
    """Record cannot be rendered in the requested output mode."""
