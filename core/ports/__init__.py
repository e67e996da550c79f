"""Port interfaces for adapters."""

from core.ports.gateway import GatewayError, PortfolioGateway

__all__ = ["GatewayError", "PortfolioGateway"]
