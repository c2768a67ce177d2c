"""Output rendering for log records."""

from __future__ import annotations

import os
from datetime import datetime, tzinfo
from typing import Final, TextIO

from logcache.exceptions import RenderError
from logcache.schemas import LogRecord

_GREEN: Final[str] = "\x1b[32m"
_RESET: Final[str] = "\x1b[0m"


def format_timestamp(timestamp_ms: int, tz: tzinfo | None = None) -> str:
    """Format epoch milliseconds as RFC 3339 with a UTC offset.

    Args:
        timestamp_ms: Milliseconds since the Unix epoch.
        tz: Target timezone. Defaults to the local timezone.
    """
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=tz).astimezone(tz)
    return moment.isoformat(timespec="milliseconds")


def _wants_color(stream: TextIO) -> bool:
    if os.getenv("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


class OutputRenderer:
    """Writes records to a stream as JSON lines or as text.

    Args:
        stream: Destination stream.
        text: Render ``<time> <message>`` lines instead of JSON.
        color: Colour the timestamp. Defaults to on for terminals unless
            ``NO_COLOR`` is set.
        tz: Timezone for text timestamps. Defaults to local time.
    """

    def __init__(
        self,
        stream: TextIO,
        *,
        text: bool = False,
        color: bool | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self.stream = stream
        self.text = text
        self.color = _wants_color(stream) if color is None else color
        self.tz = tz

    def emit(self, record: LogRecord) -> None:
        if self.text:
            self.stream.write(self.format_text(record))
        else:
            self.stream.write(record.to_line())
        self.stream.write("\n")

    def emit_line(self, line: str) -> None:
        """Emit one serialized record as read from a cache entry."""
        if self.text:
            self.emit(LogRecord.from_line(line))
        else:
            self.stream.write(line)
            self.stream.write("\n")

    def format_text(self, record: LogRecord) -> str:
        if record.timestamp is None or record.message is None:
            raise RenderError(
                f"Event {record.id or '<unknown>'} has no timestamp or message"
            )
        stamp = format_timestamp(record.timestamp, self.tz)
        if self.color:
            stamp = f"{_GREEN}{stamp}{_RESET}"
        return f"{stamp} {record.message}"

    def flush(self) -> None:
        self.stream.flush()
