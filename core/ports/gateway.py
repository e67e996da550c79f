from __future__ import annotations

from typing import Protocol

from core.domain.holding import Holding, HoldingCreateRequest, HoldingUpdateRequest
from core.domain.portfolio import PortfolioMetrics, PortfolioSnapshot, SectorSummary, StockSuggestion


class GatewayError(RuntimeError):
    """Raised when the portfolio service cannot be reached or rejects a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PortfolioGateway(Protocol):
    """Remote portfolio service: holdings, aggregates and holding mutations."""

    async def list_portfolio(self) -> PortfolioSnapshot:
        """Return every holding together with the service's portfolio totals."""

    async def get_sector_summary(self) -> list[SectorSummary]:
        """Return the service's per-sector breakdown (may be empty)."""

    async def get_portfolio_metrics(self) -> PortfolioMetrics:
        """Return precomputed portfolio analytics."""

    async def create_holding(self, request: HoldingCreateRequest) -> Holding:
        """Create a holding and return it as stored."""

    async def update_holding(self, holding_id: str, request: HoldingUpdateRequest) -> Holding:
        """Apply a partial update to a holding."""

    async def delete_holding(self, holding_id: str) -> None:
        """Delete a holding."""

    async def search_stocks(self, query: str) -> list[StockSuggestion]:
        """Return name-prefix matches; an empty list when the lookup fails."""

    async def close(self) -> None:
        """Close any underlying connections."""
