"""Domain models."""

from core.domain.holding import Holding, HoldingCreateRequest, HoldingUpdateRequest
from core.domain.portfolio import (
    Concentration,
    Diversification,
    Performer,
    PortfolioMetrics,
    PortfolioSnapshot,
    SectorSummary,
    StockSuggestion,
)

__all__ = [
    "Concentration",
    "Diversification",
    "Holding",
    "HoldingCreateRequest",
    "HoldingUpdateRequest",
    "Performer",
    "PortfolioMetrics",
    "PortfolioSnapshot",
    "SectorSummary",
    "StockSuggestion",
]
