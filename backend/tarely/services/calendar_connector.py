from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta, timezone
from typing import Any, TYPE_CHECKING
from zoneinfo import ZoneInfo

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from tarely.config import settings
from tarely.services.recurrence import ensure_utc

if TYPE_CHECKING:
    from tarely.models.calendar import GoogleCalendarToken

EVENT_TIMEZONE = "Europe/Madrid"
EVENT_DURATION = timedelta(hours=1)


# ── Exceptions ────────────────────────────────────────────────────────────────


class CalendarAuthError(Exception):
    """Raised when the user's Google credentials are invalid or revoked."""


class CalendarAPIError(Exception):
    """Raised when the Calendar API returns an HTTP error."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(message)


# ── Data structures ───────────────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class CalendarInfo:
    calendar_id: str
    summary: str
    primary: bool
    background_color: str | None


@dataclasses.dataclass(frozen=True)
class CalendarEvent:
    event_id: str
    summary: str
    description: str
    start: datetime | None
    end: datetime | None
    all_day: bool
    html_link: str


@dataclasses.dataclass(frozen=True)
class BusyBlock:
    calendar_id: str
    start: datetime
    end: datetime


# ── Service ───────────────────────────────────────────────────────────────────


class CalendarConnector:
    """Wraps the Google Calendar API v3 for one user's stored tokens.

    Expired access tokens are refreshed before the first call; the refreshed
    token and expiry are written back onto the token row; the caller commits.
    """

    _TOKEN_URI = "https://oauth2.googleapis.com/token"

    def __init__(self, token: "GoogleCalendarToken") -> None:
        refresh_token = token.get_refresh_token()
        if not refresh_token and not token.access_token:
            raise CalendarAuthError("User has no stored Google credentials")
        self._token = token
        self._refresh_token = refresh_token
        self._service: Any = None

    def _build_credentials(self) -> Credentials:
        expiry = ensure_utc(self._token.token_expiry)
        credentials = Credentials(
            token=self._token.access_token,
            refresh_token=self._refresh_token,
            token_uri=self._TOKEN_URI,
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            # google-auth compares against a naive UTC clock
            expiry=expiry.replace(tzinfo=None) if expiry else None,
        )
        if self._needs_refresh(expiry):
            if not self._refresh_token:
                raise CalendarAuthError("Google access token expired and no refresh token is stored")
            try:
                credentials.refresh(Request())
            except RefreshError as exc:
                raise CalendarAuthError("Google credentials expired or revoked") from exc
            self._token.access_token = credentials.token
            if credentials.expiry is not None:
                self._token.token_expiry = credentials.expiry.replace(tzinfo=timezone.utc)
        return credentials

    def _needs_refresh(self, expiry: datetime | None) -> bool:
        if not self._token.access_token:
            return True
        return expiry is not None and expiry <= datetime.now(timezone.utc)

    def _get_service(self) -> Any:
        if self._service is None:
            self._service = build(
                "calendar", "v3", credentials=self._build_credentials(), cache_discovery=False
            )
        return self._service

    def _execute(self, request: Any) -> Any:
        try:
            return request.execute()
        except RefreshError as exc:
            raise CalendarAuthError("Google credentials expired or revoked") from exc
        except HttpError as exc:
            raise CalendarAPIError(exc.resp.status, exc._get_reason()) from exc

    # ── Public API ────────────────────────────────────────────────────────

    def list_calendars(self) -> list[CalendarInfo]:
        response = self._execute(self._get_service().calendarList().list())
        return [
            CalendarInfo(
                calendar_id=item.get("id", ""),
                summary=item.get("summaryOverride") or item.get("summary", ""),
                primary=bool(item.get("primary", False)),
                background_color=item.get("backgroundColor"),
            )
            for item in response.get("items", [])
        ]

    def list_events(
        self,
        time_min: datetime | None = None,
        time_max: datetime | None = None,
        calendar_id: str = "primary",
        max_results: int = 250,
    ) -> list[CalendarEvent]:
        kwargs: dict[str, Any] = {
            "calendarId": calendar_id,
            "maxResults": max_results,
            "singleEvents": True,
            "orderBy": "startTime",
        }
        if time_min:
            kwargs["timeMin"] = ensure_utc(time_min).isoformat()
        if time_max:
            kwargs["timeMax"] = ensure_utc(time_max).isoformat()

        response = self._execute(self._get_service().events().list(**kwargs))
        return [
            self._parse_event(item)
            for item in response.get("items", [])
            if item.get("status") != "cancelled"
        ]

    def freebusy(
        self, time_min: datetime, time_max: datetime, calendar_ids: list[str] | None = None
    ) -> list[BusyBlock]:
        calendar_ids = calendar_ids or ["primary"]
        body = {
            "timeMin": ensure_utc(time_min).isoformat(),
            "timeMax": ensure_utc(time_max).isoformat(),
            "items": [{"id": cid} for cid in calendar_ids],
        }
        response = self._execute(self._get_service().freebusy().query(body=body))
        blocks: list[BusyBlock] = []
        for calendar_id, data in response.get("calendars", {}).items():
            for busy in data.get("busy", []):
                start = self._parse_iso(busy.get("start"))
                end = self._parse_iso(busy.get("end"))
                if start and end:
                    blocks.append(BusyBlock(calendar_id=calendar_id, start=start, end=end))
        blocks.sort(key=lambda b: b.start)
        return blocks

    def create_event(self, calendar_id: str, body: dict[str, Any]) -> CalendarEvent:
        response = self._execute(
            self._get_service().events().insert(calendarId=calendar_id, body=body)
        )
        return self._parse_event(response)

    def update_event(self, calendar_id: str, event_id: str, body: dict[str, Any]) -> CalendarEvent:
        response = self._execute(
            self._get_service().events().patch(calendarId=calendar_id, eventId=event_id, body=body)
        )
        return self._parse_event(response)

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        try:
            self._execute(
                self._get_service().events().delete(calendarId=calendar_id, eventId=event_id)
            )
        except CalendarAPIError as exc:
            # Already gone on Google's side
            if exc.status_code not in (404, 410):
                raise

    # ── Event bodies ──────────────────────────────────────────────────────

    @staticmethod
    def task_event_body(task: Any) -> dict[str, Any]:
        """A one-hour event at the task's due date, in Europe/Madrid."""
        tz = ZoneInfo(EVENT_TIMEZONE)
        start = ensure_utc(task.due_date).astimezone(tz)
        end = start + EVENT_DURATION
        return {
            "summary": task.title,
            "description": task.description or "",
            "start": {"dateTime": start.isoformat(), "timeZone": EVENT_TIMEZONE},
            "end": {"dateTime": end.isoformat(), "timeZone": EVENT_TIMEZONE},
        }

    # ── Internal parsing ──────────────────────────────────────────────────

    @staticmethod
    def _parse_event(raw: dict[str, Any]) -> CalendarEvent:
        start_raw = raw.get("start", {})
        end_raw = raw.get("end", {})
        return CalendarEvent(
            event_id=raw.get("id", ""),
            summary=raw.get("summary", "(Sin título)"),
            description=raw.get("description", ""),
            start=CalendarConnector._parse_datetime(start_raw),
            end=CalendarConnector._parse_datetime(end_raw),
            all_day="date" in start_raw and "dateTime" not in start_raw,
            html_link=raw.get("htmlLink", ""),
        )

    @staticmethod
    def _parse_iso(value: str | None) -> datetime | None:
        if not value:
            return None
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None

    @staticmethod
    def _parse_datetime(dt_raw: dict[str, Any]) -> datetime | None:
        """Parse a Google Calendar dateTime or date field."""
        if "dateTime" in dt_raw:
            return CalendarConnector._parse_iso(dt_raw["dateTime"])
        if "date" in dt_raw:
            try:
                return datetime.strptime(dt_raw["date"], "%Y-%m-%d").replace(tzinfo=timezone.utc)
            except ValueError:
                return None
        return None
