"""logcache: fetch CloudWatch log events and cache them by query."""

from logcache.cache_store import CacheStore, CacheWriter
from logcache.exceptions import (
    CacheIOError,
    CacheMissError,
    LogCacheError,
    MalformedResponseError,
    QueryError,
    RemoteFailureError,
    RenderError,
)
from logcache.fetch import QueryOutcome, fetch_events, run_query
from logcache.fingerprint import compute_fingerprint
from logcache.render import OutputRenderer
from logcache.schemas import EventPage, LogQuery, LogRecord
from logcache.sources import (
    AwsCliLogSource,
    Boto3LogSource,
    LogSource,
    create_log_source,
)

__all__ = [
    "AwsCliLogSource",
    "Boto3LogSource",
    "CacheIOError",
    "CacheMissError",
    "CacheStore",
    "CacheWriter",
    "EventPage",
    "LogCacheError",
    "LogQuery",
    "LogRecord",
    "LogSource",
    "MalformedResponseError",
    "OutputRenderer",
    "QueryError",
    "QueryOutcome",
    "RemoteFailureError",
    "RenderError",
    "compute_fingerprint",
    "create_log_source",
    "fetch_events",
    "run_query",
]
