"""Portfolio and sector aggregation over a sequence of holdings (pure functions)."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal

from core.domain.holding import Holding
from core.domain.portfolio import PortfolioSnapshot, SectorSummary

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
REPORTED_TOTAL_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class PortfolioTotals:
    total_investment: Decimal
    total_present_value: Decimal
    total_gain_loss: Decimal
    gain_loss_percentage: Decimal


@dataclass
class _SectorAccumulator:
    sector: str
    total_investment: Decimal = _ZERO
    total_present_value: Decimal = _ZERO
    total_gain_loss: Decimal = _ZERO
    holdings: list[Holding] = field(default_factory=list)

    def add(self, holding: Holding) -> None:
        self.total_investment += holding.investment
        self.total_present_value += holding.present_value
        self.total_gain_loss += holding.gain_loss
        self.holdings.append(holding)


def _percentage(part: Decimal, whole: Decimal) -> Decimal:
    if whole == 0:
        return _ZERO
    return part / whole * _HUNDRED


def gain_loss_percentage(gain_loss: Decimal, investment: Decimal) -> Decimal:
    """Return ``gain_loss`` as a percentage of ``investment`` (0 when nothing is invested)."""
    return _percentage(gain_loss, investment)


def compute_portfolio_totals(holdings: Iterable[Holding]) -> PortfolioTotals:
    total_investment = _ZERO
    total_present_value = _ZERO
    for holding in holdings:
        total_investment += holding.investment
        total_present_value += holding.present_value
    total_gain_loss = total_present_value - total_investment
    return PortfolioTotals(
        total_investment=total_investment,
        total_present_value=total_present_value,
        total_gain_loss=total_gain_loss,
        gain_loss_percentage=gain_loss_percentage(total_gain_loss, total_investment),
    )


def compute_sector_summaries(holdings: Iterable[Holding]) -> list[SectorSummary]:
    """Group holdings by sector.

    Sectors appear in the order they are first seen and each sector keeps its
    holdings in input order, so every holding lands in exactly one summary.
    """
    groups: dict[str, _SectorAccumulator] = {}
    for holding in holdings:
        group = groups.get(holding.sector)
        if group is None:
            group = groups[holding.sector] = _SectorAccumulator(sector=holding.sector)
        group.add(holding)

    return [
        SectorSummary(
            sector=group.sector,
            total_investment=group.total_investment,
            total_present_value=group.total_present_value,
            total_gain_loss=group.total_gain_loss,
            gain_loss_percentage=gain_loss_percentage(group.total_gain_loss, group.total_investment),
            holdings=tuple(group.holdings),
            holding_count=len(group.holdings),
        )
        for group in groups.values()
    ]


def _align_supplied_summary(summary: SectorSummary, holdings_by_id: dict[str, Holding]) -> SectorSummary:
    return summary.model_copy(
        update={
            "gain_loss_percentage": gain_loss_percentage(summary.total_gain_loss, summary.total_investment),
            "holdings": tuple(holdings_by_id.get(holding.id, holding) for holding in summary.holdings),
        }
    )


def resolve_sector_summaries(
    supplied: Sequence[SectorSummary] | None, holdings: Sequence[Holding]
) -> list[SectorSummary]:
    """Prefer the service's sector breakdown and fall back to computing it locally.

    Supplied summaries keep the service's totals, but their percentage is
    recomputed with ``gain_loss_percentage`` and their holdings are swapped for
    the matching entries of ``holdings`` so weights agree with the snapshot.
    """
    if supplied:
        holdings_by_id = {holding.id: holding for holding in holdings}
        return [_align_supplied_summary(summary, holdings_by_id) for summary in supplied]
    if holdings:
        logger.info("Sector summary missing from service; computing from %d holdings", len(holdings))
    return compute_sector_summaries(holdings)


def _warn_on_reported_mismatch(reported: PortfolioSnapshot, totals: PortfolioTotals) -> None:
    pairs = (
        ("total_investment", reported.total_investment, totals.total_investment),
        ("total_present_value", reported.total_present_value, totals.total_present_value),
        ("total_gain_loss", reported.total_gain_loss, totals.total_gain_loss),
    )
    for name, reported_value, computed_value in pairs:
        # Totals the service left out default to zero and are not comparable.
        if name not in reported.model_fields_set:
            continue
        if abs(reported_value - computed_value) > REPORTED_TOTAL_TOLERANCE:
            logger.warning(
                "Reported %s=%s differs from holdings total %s; using holdings total",
                name,
                reported_value,
                computed_value,
            )


def build_snapshot(holdings: Sequence[Holding], *, reported: PortfolioSnapshot | None = None) -> PortfolioSnapshot:
    """Build a snapshot whose totals and portfolio weights agree with ``holdings``.

    Each holding is replaced by a copy carrying its ``portfolio_percentage``;
    the inputs are left untouched.
    """
    totals = compute_portfolio_totals(holdings)
    if reported is not None:
        _warn_on_reported_mismatch(reported, totals)

    weighted = tuple(
        holding.model_copy(
            update={"portfolio_percentage": _percentage(holding.investment, totals.total_investment)}
        )
        for holding in holdings
    )
    return PortfolioSnapshot(
        holdings=weighted,
        total_investment=totals.total_investment,
        total_present_value=totals.total_present_value,
        total_gain_loss=totals.total_gain_loss,
    )


__all__ = [
    "PortfolioTotals",
    "build_snapshot",
    "compute_portfolio_totals",
    "compute_sector_summaries",
    "gain_loss_percentage",
    "resolve_sector_summaries",
]
