"""HTTP clients for the destination page store and the calendar.

    NotionPageStore       — Notion REST API v1 (``PageStore``)
    GoogleCalendarClient  — Google Calendar API v3 (``CalendarClient``)

Both accept an optional pre-configured ``httpx.AsyncClient`` (for testing)
and map HTTP failures onto the engine's error taxonomy with
``check_response``.
"""

from __future__ import annotations

import logging

import httpx

from src.lifelog.errors import DataError, TransientTransportError

logger = logging.getLogger("lifelog.clients")

_TRANSIENT_STATUSES = {429}

# Failures raised before any bytes of the request reached the server
_NOT_SENT = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def check_response(response: httpx.Response, service: str) -> None:
    """Raise the matching engine error for a non-2xx response.

    Raises:
        TransientTransportError: On 429 or any 5xx.
        DataError:               On any other 4xx.
    """
    status = response.status_code
    if status < 400:
        return
    body = response.text[:500]
    if status in _TRANSIENT_STATUSES or status >= 500:
        raise TransientTransportError(
            f"{service} returned {status}: {body}",
            status_code=status,
            retry_after=_retry_after(response),
        )
    raise DataError(f"{service} request failed {status}: {body}")


async def send(
    client: httpx.AsyncClient | None,
    method: str,
    url: str,
    *,
    service: str,
    headers: dict[str, str],
    json: dict | None = None,
    allow_statuses: tuple[int, ...] = (),
) -> httpx.Response:
    """Send one request, mapping connection failures to TransientTransportError.

    Statuses in ``allow_statuses`` are returned to the caller unchecked.
    """
    try:
        if client is not None:
            response = await client.request(method, url, headers=headers, json=json)
        else:
            async with httpx.AsyncClient(timeout=30.0) as own:
                response = await own.request(method, url, headers=headers, json=json)
    except httpx.TransportError as exc:
        raise TransientTransportError(
            f"{service} unreachable: {exc}",
            request_sent=not isinstance(exc, _NOT_SENT),
        ) from exc
    if response.status_code not in allow_statuses:
        check_response(response, service)
    return response
