from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from decimal import Decimal

import httpx
import pytest

from adapters.gateway.http_gateway import HttpPortfolioGateway
from core.domain.holding import HoldingCreateRequest, HoldingUpdateRequest
from core.domain.portfolio import Concentration
from core.ports.gateway import GatewayError

BASE_URL = "http://portfolio.test/api"

_STOCK = {
    "id": "s1",
    "stockName": "Reliance Industries",
    "symbol": "RELIANCE",
    "purchasePrice": 2400,
    "quantity": 5,
    "stockExchangeCode": "NSE",
    "currentMarketPrice": 2550,
    "sector": "Energy",
}


def _gateway(handler: Callable[[httpx.Request], httpx.Response]) -> tuple[HttpPortfolioGateway, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(_record))
    return HttpPortfolioGateway(BASE_URL, client=client), seen


def _ok(data: object) -> httpx.Response:
    return httpx.Response(200, json={"success": True, "data": data})


def test_list_portfolio_unwraps_envelope() -> None:
    gateway, seen = _gateway(
        lambda _request: _ok(
            {"totalInvestment": 12000, "totalPresentValue": 12750, "totalGainLoss": 750, "stocks": [_STOCK]}
        )
    )

    snapshot = asyncio.run(gateway.list_portfolio())

    assert str(seen[0].url) == f"{BASE_URL}/portfolio"
    assert snapshot.total_present_value == Decimal("12750")
    assert snapshot.holdings[0].name == "Reliance Industries"


def test_unwrapped_payloads_are_accepted() -> None:
    gateway, _ = _gateway(lambda _request: httpx.Response(200, json=[{"sector": "Energy", "stocks": [_STOCK]}]))

    sectors = asyncio.run(gateway.get_sector_summary())

    assert sectors[0].sector == "Energy"
    assert sectors[0].holding_count == 1


def test_metrics_are_parsed() -> None:
    gateway, seen = _gateway(
        lambda _request: _ok(
            {
                "totalReturn": 750,
                "bestPerformer": {"stock": _STOCK, "gainPercentage": 6.25},
                "worstPerformer": None,
                "diversification": {"sectorCount": 1, "largestSectorWeight": 100, "concentration": "High"},
            }
        )
    )

    metrics = asyncio.run(gateway.get_portfolio_metrics())

    assert seen[0].url.path == "/api/portfolio/metrics"
    assert metrics.best_performer is not None
    assert metrics.best_performer.percentage == Decimal("6.25")
    assert metrics.diversification.concentration is Concentration.HIGH


def test_envelope_failure_raises_gateway_error() -> None:
    gateway, _ = _gateway(lambda _request: httpx.Response(200, json={"success": False, "error": "Database offline"}))

    with pytest.raises(GatewayError) as excinfo:
        asyncio.run(gateway.list_portfolio())

    assert str(excinfo.value) == "Failed to fetch portfolio summary: Database offline"


def test_http_error_carries_status_and_detail() -> None:
    gateway, _ = _gateway(lambda _request: httpx.Response(503, json={"success": False, "error": "Maintenance"}))

    with pytest.raises(GatewayError) as excinfo:
        asyncio.run(gateway.get_sector_summary())

    assert excinfo.value.status_code == 503
    assert str(excinfo.value) == "Failed to fetch sector summary: Maintenance"


def test_transport_error_is_wrapped() -> None:
    def _refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    gateway, _ = _gateway(_refuse)

    with pytest.raises(GatewayError, match="Failed to fetch portfolio metrics"):
        asyncio.run(gateway.get_portfolio_metrics())


def test_unexpected_shape_is_a_gateway_error() -> None:
    gateway, _ = _gateway(lambda _request: _ok({"stocks": [{"stockName": "missing id"}]}))

    with pytest.raises(GatewayError, match="unexpected response"):
        asyncio.run(gateway.list_portfolio())


@pytest.mark.parametrize(
    ("method_name", "failure"),
    [
        ("list_portfolio", "Failed to fetch portfolio summary"),
        ("get_portfolio_metrics", "Failed to fetch portfolio metrics"),
    ],
    ids=["portfolio", "metrics"],
)
def test_envelope_without_data_is_rejected(method_name: str, failure: str) -> None:
    gateway, _ = _gateway(lambda _request: httpx.Response(200, json={"success": True, "message": "ok"}))

    with pytest.raises(GatewayError) as excinfo:
        asyncio.run(getattr(gateway, method_name)())

    assert str(excinfo.value) == f"{failure}: unexpected response"


def test_create_holding_posts_wire_payload() -> None:
    gateway, seen = _gateway(lambda _request: httpx.Response(201, json={"success": True, "data": _STOCK}))
    request = HoldingCreateRequest(
        name="Reliance Industries",
        symbol="reliance",
        purchase_price=Decimal("2400"),
        quantity=Decimal("5"),
        exchange="NSE",
        sector="Energy",
        purchase_date="2024-04-10",
    )

    holding = asyncio.run(gateway.create_holding(request))

    assert seen[0].method == "POST"
    assert seen[0].url.path == "/api/stocks"
    assert json.loads(seen[0].content) == {
        "stockName": "Reliance Industries",
        "symbol": "RELIANCE",
        "purchasePrice": 2400,
        "quantity": 5,
        "stockExchangeCode": "NSE",
        "sector": "Energy",
        "purchaseDate": "2024-04-10",
    }
    assert holding.id == "s1"


def test_update_holding_puts_partial_payload() -> None:
    gateway, seen = _gateway(lambda _request: _ok({**_STOCK, "quantity": 8}))

    holding = asyncio.run(gateway.update_holding("s1", HoldingUpdateRequest(quantity=Decimal("8"))))

    assert seen[0].method == "PUT"
    assert seen[0].url.path == "/api/stocks/s1"
    assert json.loads(seen[0].content) == {"quantity": 8}
    assert holding.quantity == Decimal("8")


def test_delete_holding_accepts_empty_body() -> None:
    gateway, seen = _gateway(lambda _request: httpx.Response(204))

    asyncio.run(gateway.delete_holding("s1"))

    assert seen[0].method == "DELETE"
    assert seen[0].url.path == "/api/stocks/s1"


def test_delete_holding_failure() -> None:
    gateway, _ = _gateway(lambda _request: httpx.Response(404, json={"success": False, "error": "Stock not found"}))

    with pytest.raises(GatewayError, match="Failed to delete stock: Stock not found"):
        asyncio.run(gateway.delete_holding("missing"))


def test_search_skips_short_queries() -> None:
    gateway, seen = _gateway(lambda _request: _ok([]))

    assert asyncio.run(gateway.search_stocks("r")) == []
    assert seen == []


def test_search_returns_suggestions() -> None:
    gateway, seen = _gateway(
        lambda _request: _ok([{"name": "Reliance Industries", "symbol": "RELIANCE", "exchange": "NSE", "sector": "Energy"}])
    )

    suggestions = asyncio.run(gateway.search_stocks("Rel"))

    assert seen[0].url.params["q"] == "Rel"
    assert [suggestion.symbol for suggestion in suggestions] == ["RELIANCE"]


def test_search_failure_is_not_fatal() -> None:
    gateway, _ = _gateway(lambda _request: httpx.Response(500, json={"error": "search index down"}))

    assert asyncio.run(gateway.search_stocks("Rel")) == []


def test_holdings_by_sector_quotes_path() -> None:
    gateway, seen = _gateway(lambda _request: _ok([_STOCK]))

    holdings = asyncio.run(gateway.list_holdings_by_sector("Real Estate"))

    assert seen[0].url.raw_path == b"/api/stocks/sector/Real%20Estate"
    assert holdings[0].symbol == "RELIANCE"


def test_check_health_returns_envelope_without_data() -> None:
    gateway, _ = _gateway(
        lambda _request: httpx.Response(200, json={"success": True, "message": "ok", "database": "connected"})
    )

    health = asyncio.run(gateway.check_health())

    assert health["database"] == "connected"


def test_close_closes_client() -> None:
    gateway, _ = _gateway(lambda _request: _ok({}))
    client = gateway._client

    asyncio.run(gateway.close())

    assert client.is_closed
