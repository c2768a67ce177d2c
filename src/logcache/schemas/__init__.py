"""Shared schemas for logcache."""

from logcache.schemas.events import EventPage, LogRecord
from logcache.schemas.query import LogQuery

__all__ = ["EventPage", "LogQuery", "LogRecord"]
