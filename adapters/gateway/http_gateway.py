from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from core.domain.holding import Holding, HoldingCreateRequest, HoldingUpdateRequest
from core.domain.portfolio import PortfolioMetrics, PortfolioSnapshot, SectorSummary, StockSuggestion
from core.ports.gateway import GatewayError, PortfolioGateway
from core.settings import DEFAULT_API_BASE_URL

logger = logging.getLogger(__name__)

MIN_SEARCH_QUERY_LENGTH = 2


def _unwrap_envelope(body: Any, *, keep_envelope: bool = False) -> Any:
    """Strip the service's ``{success, data, error}`` wrapper when present.

    A successful envelope without ``data`` yields ``None`` unless
    ``keep_envelope`` asks for the wrapper itself.
    """
    if isinstance(body, dict) and "success" in body:
        if not body.get("success"):
            raise GatewayError(body.get("error") or body.get("message") or "API request failed")
        return body if keep_envelope else body.get("data")
    return body


def _error_detail(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        detail = body.get("error") or body.get("message")
        return str(detail) if detail else None
    return None


class HttpPortfolioGateway(PortfolioGateway):
    """httpx-backed client for the portfolio REST service."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        *,
        timeout_seconds: float = 10,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            headers={"Content-Type": "application/json"},
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        failure: str,
        params: dict[str, str] | None = None,
        payload: dict[str, Any] | None = None,
        keep_envelope: bool = False,
    ) -> Any:
        try:
            response = await self._client.request(method, path, params=params, json=payload)
        except httpx.HTTPError as exc:
            logger.exception("API request failed: %s %s", method, path)
            raise GatewayError(f"{failure}: {exc}") from exc

        if response.is_error:
            detail = _error_detail(response)
            logger.error("API request failed: %s %s status=%s detail=%s", method, path, response.status_code, detail)
            message = f"{failure}: {detail}" if detail else failure
            raise GatewayError(message, status_code=response.status_code)

        if not response.content:
            return None
        try:
            body = response.json()
        except ValueError as exc:
            logger.exception("API returned a non-JSON body: %s %s", method, path)
            raise GatewayError(failure, status_code=response.status_code) from exc

        try:
            return _unwrap_envelope(body, keep_envelope=keep_envelope)
        except GatewayError as exc:
            logger.error("API reported failure: %s %s error=%s", method, path, exc)
            raise GatewayError(f"{failure}: {exc}", status_code=response.status_code) from exc

    @staticmethod
    def _parse(failure: str, parse: Any, data: Any) -> Any:
        try:
            return parse(data)
        except ValidationError as exc:
            logger.exception("Unexpected response shape")
            raise GatewayError(f"{failure}: unexpected response") from exc

    @staticmethod
    def _require_object(failure: str, data: Any) -> dict[str, Any]:
        if not isinstance(data, dict):
            logger.error("Expected a JSON object, got %s", type(data).__name__)
            raise GatewayError(f"{failure}: unexpected response")
        return data

    async def list_portfolio(self) -> PortfolioSnapshot:
        failure = "Failed to fetch portfolio summary"
        data = await self._request("GET", "/portfolio", failure=failure)
        return self._parse(failure, PortfolioSnapshot.model_validate, self._require_object(failure, data))

    async def get_sector_summary(self) -> list[SectorSummary]:
        failure = "Failed to fetch sector summary"
        data = await self._request("GET", "/portfolio/sectors", failure=failure)
        rows = data if isinstance(data, list) else []
        return self._parse(failure, lambda items: [SectorSummary.model_validate(item) for item in items], rows)

    async def get_portfolio_metrics(self) -> PortfolioMetrics:
        failure = "Failed to fetch portfolio metrics"
        data = await self._request("GET", "/portfolio/metrics", failure=failure)
        return self._parse(failure, PortfolioMetrics.model_validate, self._require_object(failure, data))

    async def get_holding(self, holding_id: str) -> Holding:
        failure = "Failed to fetch stock data"
        data = await self._request("GET", f"/stocks/{quote(holding_id, safe='')}", failure=failure)
        return self._parse(failure, Holding.model_validate, data)

    async def list_holdings_by_sector(self, sector: str) -> list[Holding]:
        failure = f"Failed to fetch stocks for sector {sector}"
        data = await self._request("GET", f"/stocks/sector/{quote(sector, safe='')}", failure=failure)
        rows = data if isinstance(data, list) else []
        return self._parse(failure, lambda items: [Holding.model_validate(item) for item in items], rows)

    async def create_holding(self, request: HoldingCreateRequest) -> Holding:
        failure = "Failed to add stock"
        data = await self._request("POST", "/stocks", failure=failure, payload=request.to_payload())
        logger.info("Created holding symbol=%s", request.symbol)
        return self._parse(failure, Holding.model_validate, data)

    async def update_holding(self, holding_id: str, request: HoldingUpdateRequest) -> Holding:
        failure = "Failed to update stock"
        data = await self._request(
            "PUT", f"/stocks/{quote(holding_id, safe='')}", failure=failure, payload=request.to_payload()
        )
        logger.info("Updated holding id=%s fields=%s", holding_id, sorted(request.model_fields_set))
        return self._parse(failure, Holding.model_validate, data)

    async def delete_holding(self, holding_id: str) -> None:
        await self._request("DELETE", f"/stocks/{quote(holding_id, safe='')}", failure="Failed to delete stock")
        logger.info("Deleted holding id=%s", holding_id)

    async def search_stocks(self, query: str) -> list[StockSuggestion]:
        query = query.strip()
        if len(query) < MIN_SEARCH_QUERY_LENGTH:
            return []
        try:
            data = await self._request(
                "GET", "/stocks/search", failure=f'Failed to search stocks for "{query}"', params={"q": query}
            )
            rows = data if isinstance(data, list) else []
            return [StockSuggestion.model_validate(row) for row in rows]
        except (GatewayError, ValidationError):
            logger.warning("Stock search failed for %r; returning no suggestions", query, exc_info=True)
            return []

    async def check_health(self) -> dict[str, Any]:
        data = await self._request("GET", "/health", failure="Backend health check failed", keep_envelope=True)
        return data if isinstance(data, dict) else {}

    async def close(self) -> None:
        await self._client.aclose()
