from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from ethgraph.core.models import Graph
from ethgraph.ports.price_port import PricePort
from ethgraph.services.analytics import FlowReport, VolumeSummary, two_way_flow, volume_summary
from ethgraph.services.filters import filter_by_usd_range, filter_two_way

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportSection:
    title: str
    node_count: int
    volume: VolumeSummary
    flow: Optional[FlowReport] = None


@dataclass(frozen=True)
class GraphReport:
    lower_usd: Decimal
    upper_usd: Decimal
    full: ReportSection
    price_filtered: ReportSection
    two_way: ReportSection
    two_way_price_filtered: ReportSection

    @property
    def sections(self) -> List[ReportSection]:
        return [self.full, self.price_filtered, self.two_way, self.two_way_price_filtered]


def _section(title: str, graph: Graph, prices: PricePort, with_flow: bool = False) -> ReportSection:
    section = ReportSection(
        title=title,
        node_count=graph.node_count(),
        volume=volume_summary(graph, prices),
        flow=two_way_flow(graph, prices) if with_flow else None,
    )
    log.info("%s: %d edges, %s USD", title, section.volume.edge_count, f"{section.volume.total_usd:.2f}")
    return section


class ReportService:
    """
    Volume/flow figures for the crawled graph, its USD-range filtered view,
    its two-way view, and the two-way view of the filtered graph.
    """

    def __init__(self, prices: PricePort) -> None:
        self.prices = prices

    def build(self, graph: Graph, lower_usd: Decimal, upper_usd: Decimal) -> GraphReport:
        lo, hi = Decimal(str(lower_usd)), Decimal(str(upper_usd))

        price_filtered = filter_by_usd_range(graph, self.prices, lo, hi)
        two_way = filter_two_way(graph)
        two_way_filtered = filter_two_way(price_filtered)

        return GraphReport(
            lower_usd=lo,
            upper_usd=hi,
            full=_section("Full graph", graph, self.prices),
            price_filtered=_section(f"USD range [{lo}, {hi}]", price_filtered, self.prices),
            two_way=_section("Two-way", two_way, self.prices, with_flow=True),
            two_way_price_filtered=_section(
                f"Two-way, USD range [{lo}, {hi}]", two_way_filtered, self.prices, with_flow=True
            ),
        )
