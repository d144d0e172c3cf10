"""Minimal async GraphQL transport shared by the Storefront and Admin clients."""

import logging
from typing import Any, Optional

import httpx

from sommelier.errors import UpstreamError

logger = logging.getLogger(__name__)


class GraphQLError(Exception):
    """Top-level ``errors`` array in an otherwise successful response."""

    def __init__(self, messages: list[str], paths: Optional[list[list[str]]] = None) -> None:
        super().__init__("; ".join(messages) or "GraphQL error")
        self.messages = messages
        self.paths = paths or [[] for _ in messages]


class ShopifyGraphQLClient:
    """POSTs GraphQL documents to one Shopify endpoint.

    Transport failures, timeouts, and non-2xx answers are raised as
    ``error_cls`` (an UpstreamError subclass). GraphQL-level ``errors`` are
    raised as GraphQLError so callers can classify them.
    """

    def __init__(
        self,
        endpoint: str,
        headers: dict[str, str],
        timeout: float,
        error_cls: type[UpstreamError] = UpstreamError,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.endpoint = endpoint
        self._headers = {"Content-Type": "application/json", **headers}
        self._error_cls = error_cls
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def execute(self, query: str, variables: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        try:
            response = await self._client.post(
                self.endpoint,
                json={"query": query, "variables": variables or {}},
                headers=self._headers,
            )
        except httpx.TimeoutException as exc:
            logger.error("Shopify request to %s timed out", self.endpoint)
            raise self._error_cls(f"timeout calling {self.endpoint}") from exc
        except httpx.HTTPError as exc:
            logger.error("Shopify request to %s failed: %s", self.endpoint, exc)
            raise self._error_cls(f"transport error calling {self.endpoint}: {exc}") from exc

        if response.status_code >= 400:
            logger.error(
                "Shopify %s answered HTTP %s: %s",
                self.endpoint, response.status_code, response.text[:200],
            )
            raise self._error_cls(f"HTTP {response.status_code} from {self.endpoint}")

        try:
            body = response.json()
        except ValueError as exc:
            raise self._error_cls(f"non-JSON body from {self.endpoint}") from exc

        errors = body.get("errors")
        if errors:
            messages = [str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors]
            paths = [
                [str(p) for p in (e.get("path") or [])] if isinstance(e, dict) else []
                for e in errors
            ]
            logger.warning("Shopify GraphQL errors: %s", messages)
            raise GraphQLError(messages, paths)
        return body.get("data") or {}

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
