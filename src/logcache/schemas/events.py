"""Log event models."""

from __future__ import annotations

from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    model_serializer,
)


class LogRecord(BaseModel):
    """A single log event as returned by filter-log-events.

    Fields the API adds beyond the ones declared here are kept, so a cached
    line holds the complete event.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    stream_name: str | None = Field(default=None, alias="logStreamName")
    timestamp: int | None = None
    message: str | None = None
    ingestion_time: int | None = Field(default=None, alias="ingestionTime")
    id: str | None = Field(default=None, alias="eventId")

    @model_serializer(mode="wrap")
    def _omit_absent_fields(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        # Only declared fields are dropped when None; extra keys keep nulls.
        declared = set()
        for name, info in type(self).model_fields.items():
            declared.add(name)
            if info.alias:
                declared.add(info.alias)
        data = handler(self)
        return {
            key: value
            for key, value in data.items()
            if value is not None or key not in declared
        }

    def to_line(self) -> str:
        """Serialize to the compact JSON form stored in cache entries."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_line(cls, line: str) -> "LogRecord":
        """Parse a line produced by :meth:`to_line`."""
        return cls.model_validate_json(line)


class EventPage(BaseModel):
    """One page of results plus the token for the next page, if any."""

    model_config = ConfigDict(populate_by_name=True)

    events: list[LogRecord] = Field(default_factory=list)
    next_token: str | None = Field(default=None, alias="nextToken")
