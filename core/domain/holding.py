from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

SUPPORTED_EXCHANGES = frozenset({"NSE", "BSE"})
DEFAULT_EXCHANGE = "NSE"
DEFAULT_SECTOR = "Uncategorized"

_ZERO = Decimal("0")


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def _parse_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = _parse_timestamp(value)
    return parsed.date() if parsed else None


def _or_zero(value: Any) -> Any:
    return _ZERO if value is None else value


class Holding(BaseModel):
    """A single stock position as returned by the portfolio service.

    ``investment``, ``present_value`` and ``gain_loss`` are derived from the
    source fields on every access; values sent by the server are ignored.
    ``portfolio_percentage`` depends on the whole portfolio and is assigned
    when a snapshot is built.
    """

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    name: str = Field(validation_alias=AliasChoices("stockName", "name"), serialization_alias="stockName")
    symbol: str = ""
    purchase_price: Decimal = Field(
        default=_ZERO, validation_alias=AliasChoices("purchasePrice", "purchase_price"), serialization_alias="purchasePrice"
    )
    quantity: Decimal = Field(default=_ZERO, validation_alias=AliasChoices("quantity", "qty"))
    purchase_date: date | None = Field(
        default=None, validation_alias=AliasChoices("purchaseDate", "purchase_date"), serialization_alias="purchaseDate"
    )
    exchange: str = Field(
        default=DEFAULT_EXCHANGE,
        validation_alias=AliasChoices("stockExchangeCode", "exchange"),
        serialization_alias="stockExchangeCode",
    )
    sector: str = DEFAULT_SECTOR
    current_market_price: Decimal = Field(
        default=_ZERO,
        validation_alias=AliasChoices("currentMarketPrice", "current_market_price"),
        serialization_alias="currentMarketPrice",
    )
    pe_ratio: Decimal = Field(
        default=_ZERO, validation_alias=AliasChoices("peRatio", "pe_ratio"), serialization_alias="peRatio"
    )
    latest_earnings: Decimal = Field(
        default=_ZERO,
        validation_alias=AliasChoices("latestEarnings", "latest_earnings"),
        serialization_alias="latestEarnings",
    )
    last_updated: datetime | None = Field(
        default=None, validation_alias=AliasChoices("lastUpdated", "last_updated"), serialization_alias="lastUpdated"
    )
    portfolio_percentage: Decimal = Field(
        default=_ZERO,
        validation_alias=AliasChoices("portfolioPercentage", "portfolio_percentage"),
        serialization_alias="portfolioPercentage",
    )

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    @field_validator("id", mode="before")
    @classmethod
    def _ensure_id_str(cls, value: Any) -> str:
        if value is None or str(value) == "":
            raise ValueError("id is required")
        return str(value)

    @field_validator("symbol", mode="before")
    @classmethod
    def _normalize_symbol(cls, value: Any) -> str:
        return "" if value is None else str(value).strip().upper()

    @field_validator("sector", mode="before")
    @classmethod
    def _default_sector(cls, value: Any) -> str:
        text = "" if value is None else str(value).strip()
        return text or DEFAULT_SECTOR

    @field_validator("exchange", mode="before")
    @classmethod
    def _default_exchange(cls, value: Any) -> str:
        text = "" if value is None else str(value).strip().upper()
        return text or DEFAULT_EXCHANGE

    @field_validator(
        "purchase_price",
        "quantity",
        "current_market_price",
        "pe_ratio",
        "latest_earnings",
        "portfolio_percentage",
        mode="before",
    )
    @classmethod
    def _missing_numbers_are_zero(cls, value: Any) -> Any:
        return _or_zero(value)

    @field_validator("purchase_date", mode="before")
    @classmethod
    def _parse_purchase_date(cls, value: Any) -> date | None:
        return _parse_date(value)

    @field_validator("last_updated", mode="before")
    @classmethod
    def _parse_last_updated(cls, value: Any) -> datetime | None:
        return _parse_timestamp(value)

    @computed_field(alias="investment")  # type: ignore[prop-decorator]
    @property
    def investment(self) -> Decimal:
        return self.purchase_price * self.quantity

    @computed_field(alias="presentValue")  # type: ignore[prop-decorator]
    @property
    def present_value(self) -> Decimal:
        return self.current_market_price * self.quantity

    @computed_field(alias="gainLoss")  # type: ignore[prop-decorator]
    @property
    def gain_loss(self) -> Decimal:
        return self.present_value - self.investment


def _require_text(value: Any, field_name: str) -> str:
    text = "" if value is None else str(value).strip()
    if not text:
        raise ValueError(f"{field_name} is required")
    return text


def _require_exchange(value: Any) -> str:
    code = _require_text(value, "exchange").upper()
    if code not in SUPPORTED_EXCHANGES:
        raise ValueError(f"exchange must be one of {', '.join(sorted(SUPPORTED_EXCHANGES))}")
    return code


def _to_wire(data: dict[str, Any]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, Decimal):
            value = int(value) if value == value.to_integral_value() else float(value)
        elif isinstance(value, date):
            value = value.isoformat()
        payload[key] = value
    return payload


def _require_whole_quantity(value: Decimal) -> Decimal:
    if value != value.to_integral_value():
        raise ValueError("quantity must be a whole number of shares")
    return value


class HoldingCreateRequest(BaseModel):
    """Validated payload for adding a holding."""

    name: str = Field(validation_alias=AliasChoices("stockName", "name"), serialization_alias="stockName")
    symbol: str
    purchase_price: Decimal = Field(
        gt=0, validation_alias=AliasChoices("purchasePrice", "purchase_price"), serialization_alias="purchasePrice"
    )
    quantity: Decimal = Field(gt=0)
    exchange: str = Field(
        default=DEFAULT_EXCHANGE,
        validation_alias=AliasChoices("stockExchangeCode", "exchange"),
        serialization_alias="stockExchangeCode",
    )
    sector: str
    purchase_date: date = Field(
        validation_alias=AliasChoices("purchaseDate", "purchase_date"), serialization_alias="purchaseDate"
    )

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: Any) -> str:
        return _require_text(value, "name")

    @field_validator("symbol", mode="before")
    @classmethod
    def _validate_symbol(cls, value: Any) -> str:
        return _require_text(value, "symbol").upper()

    @field_validator("sector", mode="before")
    @classmethod
    def _validate_sector(cls, value: Any) -> str:
        return _require_text(value, "sector")

    @field_validator("exchange", mode="before")
    @classmethod
    def _validate_exchange(cls, value: Any) -> str:
        return _require_exchange(value)

    @field_validator("quantity")
    @classmethod
    def _validate_quantity(cls, value: Decimal) -> Decimal:
        return _require_whole_quantity(value)

    def to_payload(self) -> dict[str, Any]:
        return _to_wire(self.model_dump(by_alias=True))


class HoldingUpdateRequest(BaseModel):
    """Partial update; only the fields that are set are sent."""

    name: str | None = Field(
        default=None, validation_alias=AliasChoices("stockName", "name"), serialization_alias="stockName"
    )
    symbol: str | None = None
    purchase_price: Decimal | None = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("purchasePrice", "purchase_price"),
        serialization_alias="purchasePrice",
    )
    quantity: Decimal | None = Field(default=None, gt=0)
    exchange: str | None = Field(
        default=None,
        validation_alias=AliasChoices("stockExchangeCode", "exchange"),
        serialization_alias="stockExchangeCode",
    )
    sector: str | None = None

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: Any) -> str | None:
        return None if value is None else _require_text(value, "name")

    @field_validator("symbol", mode="before")
    @classmethod
    def _validate_symbol(cls, value: Any) -> str | None:
        return None if value is None else _require_text(value, "symbol").upper()

    @field_validator("sector", mode="before")
    @classmethod
    def _validate_sector(cls, value: Any) -> str | None:
        return None if value is None else _require_text(value, "sector")

    @field_validator("exchange", mode="before")
    @classmethod
    def _validate_exchange(cls, value: Any) -> str | None:
        return None if value is None else _require_exchange(value)

    @field_validator("quantity")
    @classmethod
    def _validate_quantity(cls, value: Decimal | None) -> Decimal | None:
        return None if value is None else _require_whole_quantity(value)

    @model_validator(mode="after")
    def _require_any_field(self) -> HoldingUpdateRequest:
        if not self.model_dump(exclude_none=True):
            raise ValueError("update must change at least one field")
        return self

    def to_payload(self) -> dict[str, Any]:
        return _to_wire(self.model_dump(by_alias=True, exclude_none=True))


__all__ = [
    "DEFAULT_EXCHANGE",
    "DEFAULT_SECTOR",
    "SUPPORTED_EXCHANGES",
    "Holding",
    "HoldingCreateRequest",
    "HoldingUpdateRequest",
]
