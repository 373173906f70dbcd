"""HTTP client for the remote data service.

This module provides:
- RemoteStore: HTTP client for a PostgREST-style collections API
- Insert, update-by-id, delete-by-id and ordered select operations

Collections are exposed as ``{url}/rest/v1/{collection}``; rows are
filtered with ``?id=eq.<id>`` and ordered with ``?order=<column>.desc``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from offlinesync.core.config import RemoteConfig

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """Authentication failed or write denied."""


class ConflictError(APIError):
    """Duplicate key or constraint conflict."""


class NotFoundError(APIError):
    """Collection or resource not found."""


def _error_detail(response: httpx.Response, default: str) -> str:
    """Extract the error message from an API error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or default
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or default)
    return default


class RemoteStore:
    """HTTP client for the remote authoritative store."""

    def __init__(
        self,
        config: RemoteConfig,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the remote store client.

        Args:
            config: Remote configuration with URL, key, and settings.
            transport: Optional httpx transport (for testing).
        """
        self._config = config
        self._client = httpx.Client(
            base_url=config.rest_url,
            timeout=config.timeout,
            verify=config.verify_ssl,
            transport=transport,
            headers={
                "apikey": config.api_key,
                "Authorization": f"Bearer {config.api_key}",
                "Prefer": "return=minimal",
            },
        )

    @property
    def config(self) -> RemoteConfig:
        """Remote configuration in use."""
        return self._config

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> RemoteStore:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code in (401, 403):
            raise AuthenticationError(
                _error_detail(response, "Permission denied"), response.status_code
            )
        if response.status_code == 404:
            raise NotFoundError(_error_detail(response, "Resource not found"), 404)
        if response.status_code == 409:
            raise ConflictError(_error_detail(response, "Conflict"), 409)
        if response.status_code >= 400:
            raise APIError(
                _error_detail(response, "Unknown error"), response.status_code
            )
        return response

    # === Health check ===

    def health_check(self) -> bool:
        """Check if the remote service is reachable.

        Returns:
            True if the service answered without a server error.
        """
        try:
            response = self._client.get("/")
            return response.status_code < 500
        except httpx.RequestError:
            return False

    # === Collection operations ===

    def insert(self, collection: str, record: dict[str, Any]) -> None:
        """Insert a record into a collection.

        Args:
            collection: Collection name.
            record: Full record, including its id.

        Raises:
            ConflictError: If a record with the same key exists.
        """
        self._handle_response(self._client.post(f"/{collection}", json=record))

    def update_by_id(
        self,
        collection: str,
        record_id: Any,
        record: dict[str, Any],
    ) -> None:
        """Update the record with the given id.

        Args:
            collection: Collection name.
            record_id: Identifier of the record to update.
            record: Fields to write (last writer wins).
        """
        self._handle_response(
            self._client.patch(
                f"/{collection}",
                params={"id": f"eq.{record_id}"},
                json=record,
            )
        )

    def delete_by_id(self, collection: str, record_id: Any) -> None:
        """Delete the record with the given id.

        Args:
            collection: Collection name.
            record_id: Identifier of the record to delete.
        """
        self._handle_response(
            self._client.delete(f"/{collection}", params={"id": f"eq.{record_id}"})
        )

    def select_all(
        self,
        collection: str,
        order_by: str | None = None,
        descending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Select every record of a collection.

        Args:
            collection: Collection name.
            order_by: Optional column to order by.
            descending: Sort direction when order_by is set.
            limit: Optional maximum number of records.

        Returns:
            List of records.
        """
        params = {"select": "*"}
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = str(limit)
        response = self._handle_response(
            self._client.get(f"/{collection}", params=params)
        )
        result: list[dict[str, Any]] = response.json()
        return result
