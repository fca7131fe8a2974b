"""Client for the Microsoft Sentinel incidents API."""

import asyncio
import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Protocol

import aiohttp

from incident_reopener.config import MAX_PAGE_SIZE, ReopenerConfig
from incident_reopener.errors import StoreError
from incident_reopener.models import (
    Incident,
    IncidentPage,
    IncidentPatch,
    IncidentStatus,
    format_timestamp,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 30


class IncidentStore(Protocol):
    """Operations the workflow needs from an incident store."""

    async def list_closed_incidents(self, window: timedelta, now: Optional[datetime] = None) -> IncidentPage:
        ...

    async def update_incident(self, incident_id: str, patch: IncidentPatch) -> None:
        ...

    async def add_comment(self, incident_id: str, message: str) -> str:
        ...


def build_closed_filter(cutoff: datetime) -> str:
    """OData filter for incidents closed and modified after the cutoff."""
    return (
        f"properties/status eq '{IncidentStatus.CLOSED.value}' "
        f"and properties/lastModifiedTimeUtc gt {format_timestamp(cutoff)}"
    )


def _decode_body(raw: bytes, charset: Optional[str]) -> str:
    """Decode a response body without ever failing; undecodable bytes become U+FFFD."""
    try:
        return raw.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return raw.decode("utf-8", errors="replace")


def _error_message(body: Any, default: str) -> str:
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    if isinstance(body, str) and body.strip():
        return body.strip()[:500]
    return default


class SentinelIncidentClient:
    """
    Thin async facade over the Sentinel incidents REST API.

    Use as an async context manager; the underlying aiohttp session carries the
    bearer token and is closed on exit.
    """

    def __init__(
        self,
        config: ReopenerConfig,
        token: str,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._config = config
        self._token = token
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "SentinelIncidentClient":
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

    def _url(self, path: str) -> str:
        return f"{self._config.management_endpoint}{path}"

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Send one request and decode the response.

        Returns:
            The decoded JSON body, the raw text if it is not JSON, or None if empty

        Raises:
            StoreError: On non-2xx responses, network errors and timeouts
        """
        if self._session is None:
            raise RuntimeError("SentinelIncidentClient used outside of 'async with'")

        query = {"api-version": self._config.api_version}
        if params:
            query.update(params)

        try:
            async with self._session.request(
                method,
                url,
                params=query,
                json=body,
                headers=self._headers(),
                timeout=self._timeout,
            ) as response:
                text = _decode_body(await response.read(), response.charset)
                try:
                    decoded: Any = json.loads(text) if text else None
                except ValueError:
                    decoded = text

                if not 200 <= response.status < 300:
                    message = _error_message(decoded, response.reason or "Request failed")
                    raise StoreError(f"{method} {url} failed: {message}", status=response.status, body=decoded)

                return decoded

        except asyncio.TimeoutError as e:
            raise StoreError(f"{method} {url} timed out after {self._timeout.total}s") from e
        except aiohttp.ClientError as e:
            raise StoreError(f"{method} {url} failed: network error: {e}") from e

    async def list_closed_incidents(self, window: timedelta, now: Optional[datetime] = None) -> IncidentPage:
        """
        List closed incidents modified within the window, newest first.

        Only the first page (at most 200 incidents) is fetched. When the API
        reports more, the returned page carries its nextLink.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - window
        params = {
            "$filter": build_closed_filter(cutoff),
            "$orderby": "properties/lastModifiedTimeUtc desc",
            "$top": str(min(self._config.page_size, MAX_PAGE_SIZE)),
        }

        url = self._url(self._config.incidents_path)
        logger.info(f"Listing closed incidents in {self._config.workspace_name} modified after {format_timestamp(cutoff)}")
        data = await self._request("GET", url, params=params)

        if not isinstance(data, dict) or not isinstance(data.get("value"), list):
            raise StoreError(f"GET {url} returned an unexpected payload", body=data)

        incidents = [Incident.from_api(item) for item in data["value"] if isinstance(item, dict)]
        next_link = data.get("nextLink") or None
        if next_link:
            logger.warning(
                f"More than {len(incidents)} closed incidents matched; only the first page is processed this run"
            )

        logger.info(f"Found {len(incidents)} closed incidents")
        return IncidentPage(incidents=incidents, next_link=next_link)

    async def update_incident(self, incident_id: str, patch: IncidentPatch) -> None:
        """Replace the incident's properties with the patch."""
        await self._request("PUT", self._url(incident_id), body={"properties": patch.to_properties()})
        logger.info(f"Updated incident {incident_id} to status {patch.status.value}")

    async def add_comment(self, incident_id: str, message: str) -> str:
        """Add a comment under a freshly generated id. Returns the comment id."""
        comment_id = str(uuid.uuid4())
        await self._request(
            "PUT",
            self._url(f"{incident_id}/comments/{comment_id}"),
            body={"properties": {"message": message}},
        )
        logger.info(f"Added comment {comment_id} to incident {incident_id}")
        return comment_id
