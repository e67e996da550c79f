from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from core.domain.holding import DEFAULT_EXCHANGE, DEFAULT_SECTOR, Holding, HoldingCreateRequest, HoldingUpdateRequest


def _holding_payload(**overrides: object) -> dict:
    payload = {
        "id": "665f1c",
        "stockName": "Infosys Ltd",
        "symbol": "infy",
        "purchasePrice": 1450.5,
        "quantity": 10,
        "investment": 1.0,
        "portfolioPercentage": 12.5,
        "stockExchangeCode": "NSE",
        "currentMarketPrice": 1500,
        "presentValue": 2.0,
        "gainLoss": 3.0,
        "peRatio": 24.1,
        "latestEarnings": 61.4,
        "sector": "Technology",
        "purchaseDate": "2024-01-15T00:00:00.000Z",
        "lastUpdated": "2024-06-01T09:15:00Z",
    }
    payload.update(overrides)
    return payload


def test_holding_parses_service_payload() -> None:
    holding = Holding.model_validate(_holding_payload())

    assert holding.id == "665f1c"
    assert holding.name == "Infosys Ltd"
    assert holding.symbol == "INFY"
    assert holding.exchange == "NSE"
    assert holding.purchase_price == Decimal("1450.5")
    assert holding.purchase_date == date(2024, 1, 15)
    assert isinstance(holding.last_updated, datetime)
    assert holding.portfolio_percentage == Decimal("12.5")


def test_holding_derived_fields_ignore_server_values() -> None:
    holding = Holding.model_validate(_holding_payload())

    assert holding.investment == Decimal("14505.0")
    assert holding.present_value == Decimal("15000")
    assert holding.gain_loss == holding.present_value - holding.investment


def test_holding_defaults_for_missing_fields() -> None:
    holding = Holding.model_validate(
        {"id": 7, "stockName": "Mystery", "currentMarketPrice": None, "sector": "  ", "stockExchangeCode": None}
    )

    assert holding.id == "7"
    assert holding.symbol == ""
    assert holding.sector == DEFAULT_SECTOR
    assert holding.exchange == DEFAULT_EXCHANGE
    assert holding.current_market_price == Decimal("0")
    assert holding.quantity == Decimal("0")
    assert holding.purchase_date is None
    assert holding.investment == Decimal("0")


def test_holding_requires_id() -> None:
    with pytest.raises(ValidationError):
        Holding.model_validate({"stockName": "No id"})


def test_holding_is_immutable() -> None:
    holding = Holding.model_validate(_holding_payload())

    with pytest.raises(ValidationError):
        holding.quantity = Decimal("99")  # type: ignore[misc]


def test_holding_dump_uses_wire_names() -> None:
    dumped = Holding.model_validate(_holding_payload()).model_dump(mode="json", by_alias=True)

    assert dumped["stockName"] == "Infosys Ltd"
    assert dumped["stockExchangeCode"] == "NSE"
    assert dumped["presentValue"] == "15000"


def _create_payload(**overrides: object) -> dict:
    payload = {
        "stockName": " Tata Motors ",
        "symbol": " tatamotors ",
        "purchasePrice": "612.40",
        "quantity": 25,
        "stockExchangeCode": "nse",
        "sector": "Auto",
        "purchaseDate": "2024-03-01",
    }
    payload.update(overrides)
    return payload


def test_create_request_normalizes_and_serializes() -> None:
    request = HoldingCreateRequest.model_validate(_create_payload())

    assert request.to_payload() == {
        "stockName": "Tata Motors",
        "symbol": "TATAMOTORS",
        "purchasePrice": 612.4,
        "quantity": 25,
        "stockExchangeCode": "NSE",
        "sector": "Auto",
        "purchaseDate": "2024-03-01",
    }


@pytest.mark.parametrize(
    "overrides",
    [
        {"stockName": "   "},
        {"symbol": ""},
        {"purchasePrice": 0},
        {"purchasePrice": -5},
        {"quantity": 0},
        {"quantity": "2.5"},
        {"stockExchangeCode": "NYSE"},
        {"purchaseDate": None},
        {"unexpected": "field"},
    ],
    ids=["blank_name", "blank_symbol", "zero_price", "negative_price", "zero_qty", "fractional_qty",
         "bad_exchange", "missing_date", "extra_field"],
)
def test_create_request_rejects_invalid_input(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        HoldingCreateRequest.model_validate(_create_payload(**overrides))


def test_update_request_only_sends_set_fields() -> None:
    request = HoldingUpdateRequest.model_validate({"quantity": 40, "sector": "Banking"})

    assert request.to_payload() == {"quantity": 40, "sector": "Banking"}


def test_update_request_requires_a_change() -> None:
    with pytest.raises(ValidationError):
        HoldingUpdateRequest()


def test_update_request_validates_present_fields() -> None:
    with pytest.raises(ValidationError):
        HoldingUpdateRequest(purchase_price=Decimal("-1"))
    with pytest.raises(ValidationError):
        HoldingUpdateRequest(exchange="LSE")
