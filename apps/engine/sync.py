from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from core.aggregation import build_snapshot, resolve_sector_summaries
from core.domain.holding import Holding, HoldingCreateRequest, HoldingUpdateRequest
from core.domain.portfolio import PortfolioMetrics, PortfolioSnapshot, SectorSummary, StockSuggestion
from core.ports.gateway import GatewayError, PortfolioGateway
from core.settings import DEFAULT_POLL_INTERVAL_MS

logger = logging.getLogger(__name__)

REFRESH_FAILED = "Failed to fetch portfolio data"
ADD_FAILED = "Failed to add stock"
UPDATE_FAILED = "Failed to update stock"
REMOVE_FAILED = "Failed to remove stock"
MIN_SEARCH_QUERY_LENGTH = 2


@dataclass(frozen=True)
class EngineState:
    """Everything one successful refresh commits, replaced as a unit."""

    snapshot: PortfolioSnapshot | None = None
    sector_summaries: tuple[SectorSummary, ...] = ()
    metrics: PortfolioMetrics | None = None
    refreshed_at: datetime | None = None


CommitListener = Callable[[EngineState], None]


def _error_message(exc: BaseException, fallback: str) -> str:
    if isinstance(exc, GatewayError) and str(exc):
        return str(exc)
    return fallback


def _require_holding_id(holding_id: str) -> str:
    if not isinstance(holding_id, str) or not holding_id.strip():
        raise ValueError("holding_id is required")
    return holding_id.strip()


class PortfolioSyncEngine:
    """Keeps a local, always-consistent view of the remote portfolio.

    Local state only ever changes by committing a complete refresh: holdings,
    sector summaries and metrics are fetched together and swapped in as one
    ``EngineState``. A failed refresh leaves the last good state in place and
    records ``error``. Mutations go to the gateway first and become visible
    only through the refresh that follows them.

    Overlapping refreshes are not serialized; whichever settles last is the
    one left visible.
    """

    def __init__(
        self,
        gateway: PortfolioGateway,
        *,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        on_commit: CommitListener | None = None,
    ) -> None:
        self._gateway = gateway
        self._poll_interval_ms = poll_interval_ms
        self._on_commit = on_commit
        self._state = EngineState()
        self._error: str | None = None
        self._in_flight = 0
        self._first_settled = asyncio.Event()
        self._poll_task: asyncio.Task[None] | None = None
        self._tick_tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def poll_interval_ms(self) -> int:
        return self._poll_interval_ms

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def snapshot(self) -> PortfolioSnapshot | None:
        return self._state.snapshot

    @property
    def holdings(self) -> tuple[Holding, ...]:
        snapshot = self._state.snapshot
        return snapshot.holdings if snapshot is not None else ()

    @property
    def sector_summaries(self) -> tuple[SectorSummary, ...]:
        return self._state.sector_summaries

    @property
    def metrics(self) -> PortfolioMetrics | None:
        return self._state.metrics

    @property
    def loading(self) -> bool:
        return self._in_flight > 0 or not self._first_settled.is_set()

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def refresh(self) -> None:
        """Fetch holdings, sector summary and metrics and commit them together.

        Raises whatever the gateway raised; the previous state stays visible.
        """
        self._in_flight += 1
        try:
            portfolio, sectors, metrics = await asyncio.gather(
                self._gateway.list_portfolio(),
                self._gateway.get_sector_summary(),
                self._gateway.get_portfolio_metrics(),
            )
            self._commit(portfolio, sectors, metrics)
        except Exception as exc:
            self._error = _error_message(exc, REFRESH_FAILED)
            logger.exception("Portfolio fetch failed")
            raise
        finally:
            self._in_flight -= 1
            self._first_settled.set()

    def _commit(
        self,
        portfolio: PortfolioSnapshot,
        sectors: list[SectorSummary] | None,
        metrics: PortfolioMetrics,
    ) -> None:
        snapshot = build_snapshot(portfolio.holdings, reported=portfolio)
        state = EngineState(
            snapshot=snapshot,
            sector_summaries=tuple(resolve_sector_summaries(sectors, snapshot.holdings)),
            metrics=metrics,
            refreshed_at=datetime.now(UTC),
        )
        self._state = state
        self._error = None
        logger.info(
            "Committed portfolio snapshot holdings=%d sectors=%d total_investment=%s",
            len(snapshot.holdings),
            len(state.sector_summaries),
            snapshot.total_investment,
        )
        if self._on_commit is not None:
            try:
                self._on_commit(state)
            except Exception:
                logger.exception("Commit listener failed")

    async def add_holding(self, request: HoldingCreateRequest | Mapping[str, Any]) -> None:
        payload = request if isinstance(request, HoldingCreateRequest) else HoldingCreateRequest.model_validate(request)
        await self._mutate("add", lambda: self._gateway.create_holding(payload), ADD_FAILED)

    async def update_holding(self, holding_id: str, request: HoldingUpdateRequest | Mapping[str, Any]) -> None:
        holding_id = _require_holding_id(holding_id)
        payload = request if isinstance(request, HoldingUpdateRequest) else HoldingUpdateRequest.model_validate(request)
        await self._mutate("update", lambda: self._gateway.update_holding(holding_id, payload), UPDATE_FAILED)

    async def remove_holding(self, holding_id: str) -> None:
        holding_id = _require_holding_id(holding_id)
        await self._mutate("remove", lambda: self._gateway.delete_holding(holding_id), REMOVE_FAILED)

    async def _mutate(self, action: str, call: Callable[[], Awaitable[Any]], failure: str) -> None:
        try:
            await call()
        except Exception as exc:
            self._error = _error_message(exc, failure)
            logger.exception("Holding %s failed", action)
            raise
        logger.info("Holding %s accepted; resynchronising", action)
        await self.refresh()

    async def search_stocks(self, query: str) -> list[StockSuggestion]:
        if len(query.strip()) < MIN_SEARCH_QUERY_LENGTH:
            return []
        try:
            return await self._gateway.search_stocks(query)
        except Exception:
            logger.warning("Stock search failed for %r", query, exc_info=True)
            return []

    def start(self) -> None:
        """Run the initial refresh, then poll every ``poll_interval_ms``."""
        if self._closed:
            raise RuntimeError("PortfolioSyncEngine is closed")
        if self._poll_task is not None:
            return
        self._poll_task = asyncio.create_task(self._poll_loop(), name="portfolio-sync")

    async def wait_until_loaded(self) -> None:
        await self._first_settled.wait()

    async def _refresh_quietly(self, reason: str) -> None:
        logger.info("Refreshing portfolio (reason=%s)", reason)
        try:
            await self.refresh()
        except Exception:
            logger.warning("Portfolio refresh failed (reason=%s): %s", reason, self._error)

    async def _poll_loop(self) -> None:
        await self._refresh_quietly("initial")
        if self._poll_interval_ms <= 0:
            logger.info("Auto refresh disabled (poll_interval_ms=%s)", self._poll_interval_ms)
            return

        interval_seconds = self._poll_interval_ms / 1000
        while True:
            await asyncio.sleep(interval_seconds)
            # Ticks do not wait for earlier ticks to settle.
            task = asyncio.create_task(self._refresh_quietly("interval"))
            self._tick_tasks.add(task)
            task.add_done_callback(self._tick_tasks.discard)

    async def close(self) -> None:
        """Stop polling and cancel any refresh the poller still has in flight."""
        self._closed = True
        tasks = [task for task in (self._poll_task, *self._tick_tasks) if task is not None and not task.done()]
        self._poll_task = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Portfolio sync stopped")

    async def __aenter__(self) -> PortfolioSyncEngine:
        try:
            self.start()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()


__all__ = ["EngineState", "PortfolioSyncEngine"]
