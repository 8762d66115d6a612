"""Provider-agnostic upstream source contract and JSON transport."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

import httpx

from ..exceptions import SchemaError, UpstreamRequestError
from ..redaction import redact_url, sanitize_text


class UpstreamSource(ABC):
    """One upstream collaborator endpoint: a single GET attempt plus payload normalization.

    Retrying is the caller's concern (RetryPolicy); this class performs
    exactly one request per `fetch` and raises typed errors.
    """

    source_name = "upstream"

    def __init__(
        self,
        *,
        base_url: str,
        client: httpx.AsyncClient,
        logger: logging.Logger | None = None,
        api_key: str | None = None,
    ) -> None:
        self.base_url = base_url
        self._client = client
        self.logger = logger or logging.getLogger(__name__)
        self._api_key = api_key

    @property
    def endpoint(self) -> str:
        return self.base_url

    async def fetch(self, params: Mapping[str, Any]) -> Any:
        """Request and normalize one payload."""
        payload = await self.request_json(params)
        return self.normalize(payload)

    @abstractmethod
    def normalize(self, payload: dict[str, Any]) -> Any:
        """Validate a raw payload and convert it to typed models."""

    async def request_json(self, params: Mapping[str, Any]) -> dict[str, Any]:
        request_params = dict(params)
        if self._api_key:
            request_params["apikey"] = self._api_key

        try:
            response = await self._client.get(self.base_url, params=request_params)
            self.logger.debug(
                "%s GET %s -> %s",
                self.source_name,
                redact_url(response.request.url),
                response.status_code,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            category = (
                "rate_limit" if status == 429 else "server" if status >= 500 else "client"
            )
            raise UpstreamRequestError(
                f"{self.source_name} request failed with status {status} "
                f"at {self.base_url}: {sanitize_text(exc.response.text[:300])}",
                category=category,
                status_code=status,
                endpoint=self.base_url,
                reason=self._error_reason(exc.response),
            ) from exc
        except httpx.HTTPError as exc:
            # Transport/protocol errors: TimeoutException, ConnectError, etc.
            raise UpstreamRequestError(
                f"{self.source_name} request failed at {self.base_url}: "
                f"{type(exc).__name__}: {sanitize_text(str(exc))}",
                category="network",
                endpoint=self.base_url,
            ) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise SchemaError(
                f"{self.source_name} returned non-JSON response at {self.base_url}.",
                endpoint=self.base_url,
            ) from exc

        if not isinstance(payload, dict):
            raise SchemaError(
                f"{self.source_name} returned unexpected payload type "
                f"{type(payload).__name__} at {self.base_url}.",
                endpoint=self.base_url,
            )
        return payload

    @staticmethod
    def _error_reason(response: httpx.Response) -> str | None:
        """Extract Open-Meteo's `{"error": true, "reason": ...}` message if present."""
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and isinstance(body.get("reason"), str):
            return sanitize_text(body["reason"])[:300]
        return None
