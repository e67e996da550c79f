from __future__ import annotations

import logging
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from core.domain.holding import Holding

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


def _or_zero(value: Any) -> Any:
    return _ZERO if value is None else value


def _as_tuple(value: Any) -> Any:
    if value is None:
        return ()
    if isinstance(value, list):
        return tuple(value)
    return value


class PortfolioSnapshot(BaseModel):
    """Point-in-time view of every holding plus portfolio-level totals."""

    holdings: tuple[Holding, ...] = Field(
        default=(), validation_alias=AliasChoices("stocks", "holdings"), serialization_alias="stocks"
    )
    total_investment: Decimal = Field(
        default=_ZERO,
        validation_alias=AliasChoices("totalInvestment", "total_investment"),
        serialization_alias="totalInvestment",
    )
    total_present_value: Decimal = Field(
        default=_ZERO,
        validation_alias=AliasChoices("totalPresentValue", "total_present_value"),
        serialization_alias="totalPresentValue",
    )
    total_gain_loss: Decimal = Field(
        default=_ZERO,
        validation_alias=AliasChoices("totalGainLoss", "total_gain_loss"),
        serialization_alias="totalGainLoss",
    )

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    @field_validator("holdings", mode="before")
    @classmethod
    def _holdings_as_tuple(cls, value: Any) -> Any:
        return _as_tuple(value)

    @field_validator("total_investment", "total_present_value", "total_gain_loss", mode="before")
    @classmethod
    def _missing_totals_are_zero(cls, value: Any) -> Any:
        return _or_zero(value)


class SectorSummary(BaseModel):
    """Aggregated figures for every holding tagged with one sector."""

    sector: str
    total_investment: Decimal = Field(
        default=_ZERO,
        validation_alias=AliasChoices("totalInvestment", "total_investment"),
        serialization_alias="totalInvestment",
    )
    total_present_value: Decimal = Field(
        default=_ZERO,
        validation_alias=AliasChoices("totalPresentValue", "total_present_value"),
        serialization_alias="totalPresentValue",
    )
    total_gain_loss: Decimal = Field(
        default=_ZERO,
        validation_alias=AliasChoices("totalGainLoss", "total_gain_loss"),
        serialization_alias="totalGainLoss",
    )
    gain_loss_percentage: Decimal = Field(
        default=_ZERO,
        validation_alias=AliasChoices("gainLossPercentage", "gain_loss_percentage"),
        serialization_alias="gainLossPercentage",
    )
    holdings: tuple[Holding, ...] = Field(
        default=(), validation_alias=AliasChoices("stocks", "holdings"), serialization_alias="stocks"
    )
    holding_count: int | None = Field(
        default=None,
        validation_alias=AliasChoices("stockCount", "holding_count"),
        serialization_alias="stockCount",
    )

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    @field_validator("holdings", mode="before")
    @classmethod
    def _holdings_as_tuple(cls, value: Any) -> Any:
        return _as_tuple(value)

    @field_validator(
        "total_investment", "total_present_value", "total_gain_loss", "gain_loss_percentage", mode="before"
    )
    @classmethod
    def _missing_numbers_are_zero(cls, value: Any) -> Any:
        return _or_zero(value)

    @model_validator(mode="before")
    @classmethod
    def _count_defaults_to_holdings(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if data.get("stockCount") is None and data.get("holding_count") is None:
            holdings = data.get("stocks", data.get("holdings")) or ()
            data = {**data, "holding_count": len(holdings)}
        return data


class Concentration(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Performer(BaseModel):
    """Best or worst performing holding as chosen by the portfolio service."""

    holding: Holding = Field(validation_alias=AliasChoices("stock", "holding"), serialization_alias="stock")
    percentage: Decimal = Field(
        default=_ZERO, validation_alias=AliasChoices("gainPercentage", "lossPercentage", "percentage")
    )

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    @field_validator("percentage", mode="before")
    @classmethod
    def _missing_percentage_is_zero(cls, value: Any) -> Any:
        return _or_zero(value)


class Diversification(BaseModel):
    sector_count: int = Field(
        default=0, validation_alias=AliasChoices("sectorCount", "sector_count"), serialization_alias="sectorCount"
    )
    largest_sector_weight: Decimal = Field(
        default=_ZERO,
        validation_alias=AliasChoices("largestSectorWeight", "largest_sector_weight"),
        serialization_alias="largestSectorWeight",
    )
    concentration: Concentration = Concentration.LOW

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    @field_validator("sector_count", mode="before")
    @classmethod
    def _missing_count_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("largest_sector_weight", mode="before")
    @classmethod
    def _missing_weight_is_zero(cls, value: Any) -> Any:
        return _or_zero(value)

    @field_validator("concentration", mode="before")
    @classmethod
    def _normalize_concentration(cls, value: Any) -> Any:
        if value is None:
            return Concentration.LOW
        if isinstance(value, Concentration):
            return value
        text = str(value).strip().capitalize()
        try:
            return Concentration(text)
        except ValueError:
            logger.warning("Unknown concentration %r from service; treating as %s", value, Concentration.LOW.value)
            return Concentration.LOW


class PortfolioMetrics(BaseModel):
    """Analytics computed by the portfolio service; consumed as-is."""

    total_return: Decimal = Field(
        default=_ZERO, validation_alias=AliasChoices("totalReturn", "total_return"), serialization_alias="totalReturn"
    )
    total_return_percentage: Decimal = Field(
        default=_ZERO,
        validation_alias=AliasChoices("totalReturnPercentage", "total_return_percentage"),
        serialization_alias="totalReturnPercentage",
    )
    day_gain: Decimal = Field(
        default=_ZERO, validation_alias=AliasChoices("dayGain", "day_gain"), serialization_alias="dayGain"
    )
    day_gain_percentage: Decimal = Field(
        default=_ZERO,
        validation_alias=AliasChoices("dayGainPercentage", "day_gain_percentage"),
        serialization_alias="dayGainPercentage",
    )
    best_performer: Performer | None = Field(
        default=None,
        validation_alias=AliasChoices("bestPerformer", "best_performer"),
        serialization_alias="bestPerformer",
    )
    worst_performer: Performer | None = Field(
        default=None,
        validation_alias=AliasChoices("worstPerformer", "worst_performer"),
        serialization_alias="worstPerformer",
    )
    diversification: Diversification = Field(default_factory=Diversification)
    average_pe: Decimal = Field(
        default=_ZERO, validation_alias=AliasChoices("averagePE", "average_pe"), serialization_alias="averagePE"
    )
    total_dividend_yield: Decimal = Field(
        default=_ZERO,
        validation_alias=AliasChoices("totalDividendYield", "total_dividend_yield"),
        serialization_alias="totalDividendYield",
    )

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    @field_validator(
        "total_return",
        "total_return_percentage",
        "day_gain",
        "day_gain_percentage",
        "average_pe",
        "total_dividend_yield",
        mode="before",
    )
    @classmethod
    def _missing_numbers_are_zero(cls, value: Any) -> Any:
        return _or_zero(value)

    @field_validator("diversification", mode="before")
    @classmethod
    def _missing_diversification(cls, value: Any) -> Any:
        return {} if value is None else value


class StockSuggestion(BaseModel):
    """Autocomplete match from the stock search endpoint."""

    name: str
    symbol: str
    exchange: str = ""
    sector: str = ""

    model_config = ConfigDict(frozen=True, extra="ignore")


__all__ = [
    "Concentration",
    "Diversification",
    "Performer",
    "PortfolioMetrics",
    "PortfolioSnapshot",
    "SectorSummary",
    "StockSuggestion",
]
