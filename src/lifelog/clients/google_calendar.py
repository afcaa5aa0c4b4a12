"""Google Calendar API v3 client.

Endpoints used:
    POST   /calendars/{calendarId}/events            — insert an event
    DELETE /calendars/{calendarId}/events/{eventId}  — delete an event

Token refresh is handled outside this client; it is given a valid access
token.
"""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from src.lifelog.base import CalendarClient, CalendarEvent
from src.lifelog.clients import send
from src.lifelog.errors import DataError

logger = logging.getLogger("lifelog.clients.google_calendar")

_CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"


class GoogleCalendarClient(CalendarClient):
    """Google Calendar as the secondary calendar."""

    def __init__(
        self,
        access_token: str,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = _CALENDAR_API_BASE,
    ) -> None:
        self._access_token = access_token
        self._http_client = http_client
        self._base_url = base_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    def _events_url(self, calendar_id: str) -> str:
        return f"{self._base_url}/calendars/{quote(calendar_id, safe='')}/events"

    async def create_event(self, calendar_id: str, event: CalendarEvent) -> str:
        response = await send(
            self._http_client, "POST", self._events_url(calendar_id),
            service="google_calendar", headers=self._headers(), json=event.to_api(),
        )
        event_id = response.json().get("id")
        if not event_id:
            raise DataError("google_calendar returned an event without an id")
        logger.debug("Created event %s on %s", event_id, calendar_id)
        return event_id

    async def delete_event(self, calendar_id: str, event_id: str) -> bool:
        """Delete an event; 404/410 mean it is already gone and return False."""
        url = f"{self._events_url(calendar_id)}/{quote(event_id, safe='')}"
        response = await send(
            self._http_client, "DELETE", url,
            service="google_calendar", headers=self._headers(),
            allow_statuses=(404, 410),
        )
        if response.status_code in (404, 410):
            logger.debug("Event %s already deleted", event_id)
            return False
        return True
