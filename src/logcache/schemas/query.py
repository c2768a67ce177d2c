"""Query model for log event retrieval."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LogQuery(BaseModel):
    """Normalized parameters of a single log event query.

    Every field takes part in the cache fingerprint, so two queries that
    differ anywhere are cached separately.

    Attributes:
        log_group: The name of the log group.
        log_stream: Optional log stream name to restrict the search to.
        filter_pattern: Optional CloudWatch filter pattern.
        start_time: Start of the time range in epoch milliseconds.
        end_time: End of the time range in epoch milliseconds.
        max_items: Total number of events to return.
    """

    model_config = ConfigDict(frozen=True)

    log_group: str = Field(..., min_length=1)
    log_stream: str | None = None
    filter_pattern: str | None = None
    start_time: int | None = Field(default=None, ge=0)
    end_time: int | None = Field(default=None, ge=0)
    max_items: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "LogQuery":
        if self.start_time is None and self.end_time is None and self.max_items is None:
            raise ValueError(
                "At least one of start_time, end_time or max_items is required"
            )
        if (
            self.start_time is not None
            and self.end_time is not None
            and self.end_time < self.start_time
        ):
            raise ValueError("end_time must not be earlier than start_time")
        return self
