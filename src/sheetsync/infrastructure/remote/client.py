"""
HTTP Record Client - CRM REST API over requests.

    GET  {base_url}/{entity_type}?filter_id=..&start=..&limit=..
    PUT  {base_url}/{entity_type}/{record_id}

Responses use the envelope {"success": bool, "data": ..., "error": ...}
with paging in additional_data.pagination.

Fetch failures raise RemoteApiError (a pull cannot proceed without the
records). Update failures are returned as UpdateResult so a push can
record them per row and continue.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from sheetsync.domain.errors import RemoteApiError
from sheetsync.domain.models import UpdateResult
from sheetsync.domain.settings import ApiSettings

logger = logging.getLogger(__name__)

# Upper bound on pages fetched for one filter
MAX_PAGES = 1000


def _error_text(payload: Any, fallback: str) -> str:
    if isinstance(payload, dict):
        for key in ("error", "message", "error_info"):
            value = payload.get(key)
            if value:
                return str(value)
    return fallback


class HttpRecordClient:
    """
    Remote record API client.

    Usage:
        client = HttpRecordClient(settings.api)
        records = client.fetch_records(filter_id="12")
        result = client.update_record("42", {"name": "Ann"})
    """

    def __init__(self, settings: ApiSettings, session: requests.Session | None = None) -> None:
        if not settings.api_token:
            raise RemoteApiError("API token is not configured (api.api_token or api.token_file)")
        self.settings = settings
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {settings.api_token}",
                "Accept": "application/json",
            }
        )

    def _url(self, *parts: str) -> str:
        return "/".join([self.settings.base_url, self.settings.entity_type, *parts])

    # ========================================================================
    # Fetch
    # ========================================================================

    def fetch_records(self, filter_id: str | None = None) -> list[dict[str, Any]]:
        """
        Fetch every record of the configured entity, following pagination.

        Raises:
            RemoteApiError: On transport failure, non-2xx or success=false
        """
        records: list[dict[str, Any]] = []
        start = 0
        for _ in range(MAX_PAGES):
            params: dict[str, Any] = {"start": start, "limit": self.settings.page_size}
            if filter_id:
                params["filter_id"] = filter_id

            payload = self._get(self._url(), params)
            data = payload.get("data") or []
            if not isinstance(data, list):
                raise RemoteApiError("Unexpected response: 'data' is not a list")
            records.extend(item for item in data if isinstance(item, dict))

            pagination = (payload.get("additional_data") or {}).get("pagination") or {}
            if not pagination.get("more_items_in_collection"):
                break
            start = int(pagination.get("next_start", start + len(data)))
        else:
            logger.warning("Stopped paging after %d pages", MAX_PAGES)

        logger.info("Fetched %d %s", len(records), self.settings.entity_type)
        return records

    def _get(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            res = self.session.get(url, params=params, timeout=self.settings.timeout)
        except requests.RequestException as e:
            raise RemoteApiError(f"Request to {url} failed: {e}") from e

        try:
            payload = res.json()
        except ValueError:
            payload = None

        if not res.ok:
            raise RemoteApiError(
                _error_text(payload, f"HTTP {res.status_code} from {url}"),
                status_code=res.status_code,
            )
        if not isinstance(payload, dict) or payload.get("success") is False:
            raise RemoteApiError(_error_text(payload, "Remote reported failure"), res.status_code)
        return payload

    # ========================================================================
    # Update
    # ========================================================================

    def update_record(self, record_id: str, field_map: dict[str, Any]) -> UpdateResult:
        """Send a partial update. Never raises for remote or transport errors."""
        url = self._url(str(record_id))
        logger.debug("PUT %s fields=%s", url, sorted(field_map))
        try:
            res = self.session.put(url, json=field_map, timeout=self.settings.timeout)
        except requests.RequestException as e:
            logger.warning("Update of %s failed: %s", record_id, e)
            return UpdateResult(success=False, error=str(e))

        try:
            payload = res.json()
        except ValueError:
            payload = None

        if not res.ok:
            return UpdateResult(
                success=False,
                error=_error_text(payload, res.reason or "request failed"),
                status_code=res.status_code,
            )
        if isinstance(payload, dict) and payload.get("success") is False:
            return UpdateResult(
                success=False,
                error=_error_text(payload, "Remote reported failure"),
                status_code=res.status_code,
            )
        return UpdateResult(success=True, status_code=res.status_code)
