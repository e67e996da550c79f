from __future__ import annotations

import argparse
import asyncio
import logging
from collections.abc import Sequence

from adapters.gateway.http_gateway import HttpPortfolioGateway
from apps.engine.sync import EngineState, PortfolioSyncEngine
from core.aggregation import gain_loss_percentage
from core.settings import Settings

logger = logging.getLogger(__name__)


def _configure_logging(level: str = "INFO") -> None:
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Keep a local view of the portfolio in sync with the service.")
    parser.add_argument("--api-base-url", help="Override API_BASE_URL")
    parser.add_argument("--poll-interval-ms", type=int, help="Override POLL_INTERVAL_MS (0 disables polling)")
    parser.add_argument("--once", action="store_true", help="Load the portfolio once and exit")
    return parser.parse_args(argv)


def log_state(state: EngineState) -> None:
    snapshot = state.snapshot
    if snapshot is None:
        return
    logger.info(
        "Portfolio holdings=%d investment=%.2f present_value=%.2f gain_loss=%.2f (%.2f%%)",
        len(snapshot.holdings),
        snapshot.total_investment,
        snapshot.total_present_value,
        snapshot.total_gain_loss,
        gain_loss_percentage(snapshot.total_gain_loss, snapshot.total_investment),
    )
    for summary in state.sector_summaries:
        logger.info(
            "Sector %s holdings=%d investment=%.2f gain_loss=%.2f (%.2f%%)",
            summary.sector,
            summary.holding_count or len(summary.holdings),
            summary.total_investment,
            summary.total_gain_loss,
            summary.gain_loss_percentage,
        )
    if state.metrics is not None:
        diversification = state.metrics.diversification
        logger.info(
            "Diversification sectors=%d largest_weight=%.2f%% concentration=%s average_pe=%.2f",
            diversification.sector_count,
            diversification.largest_sector_weight,
            diversification.concentration.value,
            state.metrics.average_pe,
        )


async def run_engine(settings: Settings, *, once: bool = False) -> None:
    logger.info("Engine starting api=%s poll=%sms once=%s", settings.api_base_url, settings.poll_interval_ms, once)
    gateway = HttpPortfolioGateway(settings.api_base_url, timeout_seconds=settings.request_timeout_seconds)
    poll_interval_ms = 0 if once else settings.poll_interval_ms
    try:
        async with PortfolioSyncEngine(gateway, poll_interval_ms=poll_interval_ms, on_commit=log_state) as engine:
            await engine.wait_until_loaded()
            if engine.error:
                logger.error("Initial load failed: %s", engine.error)
            if poll_interval_ms <= 0:
                return
            await asyncio.Event().wait()
    finally:
        await gateway.close()


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    overrides: dict[str, object] = {}
    if args.api_base_url:
        overrides["api_base_url"] = args.api_base_url
    if args.poll_interval_ms is not None:
        overrides["poll_interval_ms"] = args.poll_interval_ms
    settings = Settings(**overrides)
    _configure_logging(settings.log_level)
    try:
        asyncio.run(run_engine(settings, once=args.once))
    except KeyboardInterrupt:
        logger.info("Engine stopped")


if __name__ == "__main__":
    main()
