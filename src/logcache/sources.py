"""Remote log sources backed by CloudWatch Logs filter-log-events."""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
from typing import Any, Final, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from logcache.config import (
    LOGCACHE_AWS_CLI,
    LOGCACHE_AWS_PROFILE,
    LOGCACHE_AWS_REGION,
)
from logcache.exceptions import MalformedResponseError, RemoteFailureError
from logcache.schemas import EventPage, LogQuery

logger = logging.getLogger(__name__)

SOURCE_KINDS: Final[tuple[str, ...]] = ("boto3", "cli")

_CLI_ENV: Final[dict[str, str]] = {"LC_ALL": "en_US.UTF-8"}


class LogSource(Protocol):
    """Capability to fetch one page of log events."""

    async def fetch_page(
        self, query: LogQuery, *, limit: int, next_token: str | None = None
    ) -> EventPage:
        """Fetch up to ``limit`` events, resuming from ``next_token``."""
        ...


class AwsCliLogSource:
    """Fetches pages by running ``aws logs filter-log-events``.

    Args:
        executable: Name or path of the AWS CLI binary.
        profile: Optional named profile passed as ``--profile``.
        region: Optional region passed as ``--region``.
    """

    def __init__(
        self,
        executable: str = LOGCACHE_AWS_CLI,
        *,
        profile: str | None = LOGCACHE_AWS_PROFILE,
        region: str | None = LOGCACHE_AWS_REGION,
    ) -> None:
        self.executable = executable
        self.profile = profile
        self.region = region

    def build_command(
        self, query: LogQuery, *, limit: int, next_token: str | None = None
    ) -> list[str]:
        """Build the argument vector for one page request."""
        command = [
            self.executable,
            "logs",
            "filter-log-events",
            "--no-paginate",
            "--output",
            "json",
            "--log-group-name",
            query.log_group,
        ]
        if self.profile:
            command += ["--profile", self.profile]
        if self.region:
            command += ["--region", self.region]
        if query.start_time is not None:
            command += ["--start-time", str(query.start_time)]
        if query.end_time is not None:
            command += ["--end-time", str(query.end_time)]
        if query.filter_pattern is not None:
            command += ["--filter-pattern", query.filter_pattern]
        if query.log_stream is not None:
            command += ["--log-stream-names", query.log_stream]
        command += ["--limit", str(limit)]
        if next_token is not None:
            command += ["--next-token", next_token]
        return command

    async def fetch_page(
        self, query: LogQuery, *, limit: int, next_token: str | None = None
    ) -> EventPage:
        command = self.build_command(query, limit=limit, next_token=next_token)
        return await asyncio.to_thread(self._run, command)

    def _run(self, command: list[str]) -> EventPage:
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                env={**os.environ, **_CLI_ENV},
                check=False,
            )
        except OSError as exc:
            raise RemoteFailureError(
                f"Failed to run {self.executable}: {exc}"
            ) from exc

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise RemoteFailureError(
                stderr or f"{self.executable} exited with status {result.returncode}"
            )

        try:
            return EventPage.model_validate_json(result.stdout)
        except ValidationError as exc:
            raise MalformedResponseError(
                f"Unexpected filter-log-events output: {exc}"
            ) from exc


class Boto3LogSource:
    """Fetches pages through a boto3 CloudWatch Logs client.

    The client is created on first use unless one is supplied.

    Args:
        client: Optional preconfigured ``logs`` client.
        profile: Optional named profile for the boto3 session.
        region: Optional region for the boto3 session.
    """

    def __init__(
        self,
        client: Any | None = None,
        *,
        profile: str | None = LOGCACHE_AWS_PROFILE,
        region: str | None = LOGCACHE_AWS_REGION,
    ) -> None:
        self._client = client
        self.profile = profile
        self.region = region

    @property
    def client(self) -> Any:
        if self._client is None:
            try:
                session = boto3.Session(
                    profile_name=self.profile, region_name=self.region
                )
                self._client = session.client("logs")
            except BotoCoreError as exc:
                raise RemoteFailureError(
                    f"Failed to create CloudWatch Logs client: {exc}"
                ) from exc
        return self._client

    @staticmethod
    def build_request(
        query: LogQuery, *, limit: int, next_token: str | None = None
    ) -> dict[str, Any]:
        """Build keyword arguments for ``filter_log_events``."""
        request: dict[str, Any] = {"logGroupName": query.log_group, "limit": limit}
        if query.log_stream is not None:
            request["logStreamNames"] = [query.log_stream]
        if query.filter_pattern is not None:
            request["filterPattern"] = query.filter_pattern
        if query.start_time is not None:
            request["startTime"] = query.start_time
        if query.end_time is not None:
            request["endTime"] = query.end_time
        if next_token is not None:
            request["nextToken"] = next_token
        return request

    async def fetch_page(
        self, query: LogQuery, *, limit: int, next_token: str | None = None
    ) -> EventPage:
        request = self.build_request(query, limit=limit, next_token=next_token)
        return await asyncio.to_thread(self._call, request)

    def _call(self, request: dict[str, Any]) -> EventPage:
        try:
            response = self.client.filter_log_events(**request)
        except (ClientError, BotoCoreError) as exc:
            raise RemoteFailureError(str(exc)) from exc

        try:
            return EventPage.model_validate(response)
        except ValidationError as exc:
            raise MalformedResponseError(
                f"Unexpected filter_log_events response: {exc}"
            ) from exc


def create_log_source(kind: str, **kwargs: Any) -> LogSource:
    """Select a log source implementation by name.

    Args:
        kind: ``"boto3"`` or ``"cli"``.
        **kwargs: Passed to the selected implementation.

    Raises:
        ValueError: If ``kind`` is not a known source.
    """
    if kind == "boto3":
        return Boto3LogSource(**kwargs)
    if kind == "cli":
        return AwsCliLogSource(**kwargs)
    raise ValueError(f"Unknown log source {kind!r}; expected one of {SOURCE_KINDS}")
