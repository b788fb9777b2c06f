from __future__ import annotations

import http.client
import json
import socket
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, fields
from datetime import datetime
from itertools import count
from typing import Any, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class CalendarEventError(Exception):
    """Raised when a calendar event could not be created."""

    def __init__(self, error_code: str, message: str) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.message = message


@dataclass(frozen=True)
class CalendarEventRequest:
    grant_id: str
    calendar_id: str
    title: str
    date: str
    start_time: str
    end_time: str


@dataclass(frozen=True)
class CalendarEventResult:
    event_id: str | None
    raw: dict[str, Any] | None = None


class CalendarEventCreator(Protocol):
    def create_event(self, request: CalendarEventRequest) -> CalendarEventResult: ...


def missing_request_fields(request: CalendarEventRequest) -> list[str]:
    return [item.name for item in fields(request) if not str(getattr(request, item.name) or "").strip()]


class StubCalendarEventCreator:
    def __init__(self, *, fail_with: str | None = None) -> None:
        self._fail_with = fail_with
        self._counter = count(1)
        self.requests: list[CalendarEventRequest] = []

    def create_event(self, request: CalendarEventRequest) -> CalendarEventResult:
        self.requests.append(request)
        missing = missing_request_fields(request)
        if missing:
            raise CalendarEventError("missing_fields", f"Missing required fields: {', '.join(missing)}")
        if self._fail_with:
            raise CalendarEventError(self._fail_with, "Stub calendar forced failure")
        return CalendarEventResult(event_id=f"stub-event-{next(self._counter)}")


class HttpCalendarEventCreator:
    """Creates events through the Nylas v3 events API."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timezone_name: str = "Europe/Amsterdam",
        timeout_seconds: int = 30,
    ) -> None:
        stripped_url = base_url.strip().rstrip("/")
        stripped_key = api_key.strip()
        if not stripped_url:
            raise ValueError("base_url must not be empty")
        if not stripped_key:
            raise ValueError("api_key must not be empty")
        try:
            self._zone = ZoneInfo(timezone_name)
        except ZoneInfoNotFoundError as exc:
            raise ValueError(f"unknown timezone: {timezone_name}") from exc
        self._base_url = stripped_url
        self._api_key = stripped_key
        self._timezone_name = timezone_name
        self._timeout_seconds = timeout_seconds

    def create_event(self, request: CalendarEventRequest) -> CalendarEventResult:
        missing = missing_request_fields(request)
        if missing:
            raise CalendarEventError("missing_fields", f"Missing required fields: {', '.join(missing)}")

        start = self._to_epoch(request.date, request.start_time)
        end = self._to_epoch(request.date, request.end_time)
        body = {
            "title": request.title,
            "when": {
                "start_time": start,
                "end_time": end,
                "start_timezone": self._timezone_name,
                "end_timezone": self._timezone_name,
            },
        }
        response = self._post(
            f"/v3/grants/{urllib.parse.quote(request.grant_id, safe='')}/events",
            query={"calendar_id": request.calendar_id},
            body=body,
        )
        data = response.get("data") if isinstance(response, dict) else None
        event_id = data.get("id") if isinstance(data, dict) else None
        return CalendarEventResult(event_id=event_id, raw=response)

    def _to_epoch(self, date_text: str, time_text: str) -> int:
        try:
            local = datetime.strptime(f"{date_text} {time_text}", "%Y-%m-%d %H:%M")
        except ValueError as exc:
            raise CalendarEventError("invalid_datetime", f"Invalid date or time: {date_text} {time_text}") from exc
        return int(local.replace(tzinfo=self._zone).timestamp())

    def _post(self, path: str, *, query: dict[str, str], body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}{path}?{urllib.parse.urlencode(query)}"
        request = urllib.request.Request(
            url,
            data=json.dumps(body).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout_seconds) as response:
                return json.loads(response.read().decode("utf-8"))  # type: ignore[no-any-return]
        except urllib.error.HTTPError as exc:
            raise CalendarEventError(
                error_code=f"http_{exc.code}",
                message=f"HTTP {exc.code}: {exc.reason}",
            ) from exc
        except urllib.error.URLError as exc:
            raise CalendarEventError(
                error_code="connection_error",
                message=f"Connection error: {exc.reason}",
            ) from exc
        except (socket.timeout, TimeoutError) as exc:
            raise CalendarEventError(
                error_code="timeout",
                message=f"Request timed out: {exc}",
            ) from exc
        except (OSError, http.client.HTTPException) as exc:
            raise CalendarEventError(
                error_code="connection_error",
                message=f"Connection error: {exc}",
            ) from exc
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise CalendarEventError(
                error_code="invalid_response",
                message="Calendar API returned a non-JSON body",
            ) from exc
