from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx

from availability.application.exceptions import ExternalIntegrationError
from availability.application.ports.calendar import CalendarPort
from availability.domain.entities.cached_event import BusyInterval

MAX_PAGES = 4
TOKEN_REFRESH_MARGIN_SECONDS = 60


class GoogleCalendar(CalendarPort):
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        calendar_ids: list[str],
        time_zone: str,
        base_url: str = "https://www.googleapis.com/calendar/v3",
        token_url: str = "https://oauth2.googleapis.com/token",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        if not client_id or not client_secret or not refresh_token:
            raise ValueError("Google OAuth client id, secret and refresh token are required")
        if not calendar_ids:
            raise ValueError("At least one calendar id is required")

        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._calendar_ids = list(calendar_ids)
        self._time_zone = time_zone
        self._base_url = base_url.rstrip("/")
        self._token_url = token_url
        self._client = client or httpx.Client(timeout=timeout)
        self._access_token: str | None = None
        self._access_token_expires_at = 0.0
        self._logger = logging.getLogger(__name__)

    @property
    def calendar_ids(self) -> list[str]:
        return list(self._calendar_ids)

    @property
    def booking_calendar_id(self) -> str:
        return self._calendar_ids[0]

    def create_event(
        self,
        start: datetime,
        end: datetime,
        attendee_email: str,
        attendee_name: str,
        summary: str,
        description: str | None = None,
        location: str | None = None,
    ) -> str:
        payload: dict[str, Any] = {
            "summary": summary,
            "description": description or "",
            "start": {"dateTime": _to_rfc3339(start), "timeZone": self._time_zone},
            "end": {"dateTime": _to_rfc3339(end), "timeZone": self._time_zone},
            "attendees": [{"email": attendee_email, "displayName": attendee_name}],
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "email", "minutes": 24 * 60},
                    {"method": "popup", "minutes": 60},
                ],
            },
        }
        if location:
            payload["location"] = location

        data = self._request(
            "POST",
            f"/calendars/{quote(self.booking_calendar_id, safe='')}/events",
            params={"sendUpdates": "all"},
            json=payload,
        )
        event_id = data.get("id")
        if not event_id:
            raise ExternalIntegrationError("No event id returned from Google Calendar")

        self._logger.info("Calendar event created", extra={"event_id": event_id})
        return str(event_id)

    def delete_event(self, event_id: str) -> None:
        self._request(
            "DELETE",
            f"/calendars/{quote(self.booking_calendar_id, safe='')}/events/{quote(event_id, safe='')}",
            params={"sendUpdates": "all"},
            missing_ok=True,
        )
        self._logger.info("Calendar event deleted", extra={"event_id": event_id})

    def list_events(self, calendar_id: str, start: datetime, end: datetime) -> list[BusyInterval]:
        intervals: list[BusyInterval] = []
        page_token: str | None = None
        for _ in range(MAX_PAGES):
            params: dict[str, Any] = {
                "timeMin": _to_rfc3339(start),
                "timeMax": _to_rfc3339(end),
                "singleEvents": "true",
                "orderBy": "startTime",
                "maxResults": 2500,
            }
            if page_token:
                params["pageToken"] = page_token

            data = self._request("GET", f"/calendars/{quote(calendar_id, safe='')}/events", params=params)
            for item in data.get("items", []):
                interval = _busy_interval(item, calendar_id)
                if interval is not None:
                    intervals.append(interval)

            page_token = data.get("nextPageToken")
            if not page_token:
                break

        self._logger.info("Calendar events fetched", extra={"calendar_id": calendar_id, "count": len(intervals)})
        return intervals

    def _request(self, method: str, path: str, missing_ok: bool = False, **kwargs: Any) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._get_access_token()}"}
        try:
            response = self._client.request(method, f"{self._base_url}{path}", headers=headers, **kwargs)
            if missing_ok and response.status_code in (404, 410):
                self._logger.info("Calendar resource already gone", extra={"path": path})
                return {}
            response.raise_for_status()
            if not response.content:
                return {}
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalIntegrationError(f"Google Calendar {method} {path} failed: {e}") from e

    def _get_access_token(self) -> str:
        if self._access_token and time.monotonic() < self._access_token_expires_at:
            return self._access_token

        try:
            response = self._client.post(
                self._token_url,
                data={
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "refresh_token": self._refresh_token,
                    "grant_type": "refresh_token",
                },
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalIntegrationError(f"Google token exchange failed: {e}") from e

        access_token = data.get("access_token")
        if not access_token:
            raise ExternalIntegrationError("Token response missing access_token")

        expires_in = int(data.get("expires_in", 3600))
        self._access_token = access_token
        self._access_token_expires_at = time.monotonic() + max(expires_in - TOKEN_REFRESH_MARGIN_SECONDS, 0)
        return access_token


def _to_rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_rfc3339(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value).astimezone(timezone.utc)


def _busy_interval(item: dict[str, Any], calendar_id: str) -> BusyInterval | None:
    # All-day events carry only "date" and do not block hourly windows.
    start = (item.get("start") or {}).get("dateTime")
    end = (item.get("end") or {}).get("dateTime")
    if not item.get("id") or not start or not end:
        return None
    if item.get("transparency") == "transparent":
        return None
    return BusyInterval(
        event_id=str(item["id"]),
        calendar_id=calendar_id,
        start_utc=_parse_rfc3339(start),
        end_utc=_parse_rfc3339(end),
    )

