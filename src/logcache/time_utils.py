"""Conversion of time arguments to epoch milliseconds."""

from __future__ import annotations

from datetime import datetime, tzinfo

from logcache.exceptions import QueryError


def to_epoch_ms(value: str, tz: tzinfo | None = None) -> int:
    """Convert a time argument to milliseconds since the Unix epoch.

    Accepts either an integer number of epoch milliseconds or an ISO-8601
    date or datetime. Naive values are interpreted in ``tz``, or in local
    time when ``tz`` is None.

    Args:
        value: The raw argument.
        tz: Timezone for naive values.

    Returns:
        Epoch milliseconds.

    Raises:
        QueryError: If the value is neither form.
    """
    text = value.strip()
    if text.isdigit():
        return int(text)

    try:
        moment = datetime.fromisoformat(text)
    except ValueError as exc:
        raise QueryError(
            f"Invalid time {value!r}: expected epoch milliseconds or ISO-8601"
        ) from exc

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=tz) if tz is not None else moment.astimezone()
    return round(moment.timestamp() * 1000)
