from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from ethgraph.config.settings import WEI_PER_ETH
from ethgraph.core.errors import EmptyGraphError
from ethgraph.core.models import Graph, Transaction
from ethgraph.ports.price_port import PricePort


def edge_usd_value(tx: Transaction, prices: PricePort) -> Decimal:
    """ETH amount of the transaction times the hourly ETH/USD price at its timestamp."""
    return Decimal(tx.value_wei) / WEI_PER_ETH * prices.price_at(tx.timestamp)


# -------------------------
# Volume
# -------------------------

@dataclass(frozen=True)
class VolumeSummary:
    edge_count: int
    total_usd: Decimal
    mean_usd: Optional[Decimal]     # None for a graph without edges


def total_volume(graph: Graph, prices: PricePort) -> Decimal:
    return sum((edge_usd_value(e.transaction, prices) for e in graph.edges), Decimal("0"))


def mean_value(graph: Graph, prices: PricePort) -> Decimal:
    if not graph.edges:
        raise EmptyGraphError("Mean value is undefined for a graph without edges")
    return total_volume(graph, prices) / len(graph.edges)


def volume_summary(graph: Graph, prices: PricePort) -> VolumeSummary:
    total = total_volume(graph, prices)
    mean = total / len(graph.edges) if graph.edges else None
    return VolumeSummary(edge_count=len(graph.edges), total_usd=total, mean_usd=mean)


# -------------------------
# Two-way flow
# -------------------------

@dataclass(frozen=True)
class PricedTransaction:
    tx_hash: str
    timestamp: int
    usd_value: Decimal


@dataclass
class PairFlow:
    """
    Both directions between address_a and address_b, where address_a is the
    source of the first edge seen for the pair.
    """

    address_a: str
    address_b: str
    forward: List[PricedTransaction] = field(default_factory=list)     # a -> b
    backward: List[PricedTransaction] = field(default_factory=list)    # b -> a

    @property
    def forward_usd(self) -> Decimal:
        return sum((t.usd_value for t in self.forward), Decimal("0"))

    @property
    def backward_usd(self) -> Decimal:
        return sum((t.usd_value for t in self.backward), Decimal("0"))

    @property
    def volume(self) -> Decimal:
        return self.forward_usd + self.backward_usd

    @property
    def flow(self) -> Decimal:
        if self.address_a == self.address_b:
            return Decimal("0")
        return abs(self.forward_usd - self.backward_usd)


@dataclass(frozen=True)
class FlowReport:
    pairs: List[PairFlow]
    total_volume: Decimal
    total_flow: Decimal


def two_way_flow(graph: Graph, prices: PricePort) -> FlowReport:
    """
    Groups edges by unordered address pair (each pair once, first-seen order)
    and sums USD per direction. Meant for a graph already passed through
    filter_two_way, but works on any graph.
    """
    pairs: Dict[Tuple[str, str], PairFlow] = {}

    for e in graph.edges:
        key = (e.source, e.target) if e.source <= e.target else (e.target, e.source)
        pair = pairs.get(key)
        if pair is None:
            pair = PairFlow(address_a=e.source, address_b=e.target)
            pairs[key] = pair

        priced = PricedTransaction(
            tx_hash=e.transaction.tx_hash,
            timestamp=e.transaction.timestamp,
            usd_value=edge_usd_value(e.transaction, prices),
        )
        if e.source == pair.address_a:
            pair.forward.append(priced)
        else:
            pair.backward.append(priced)

    ordered = list(pairs.values())
    return FlowReport(
        pairs=ordered,
        total_volume=sum((p.volume for p in ordered), Decimal("0")),
        total_flow=sum((p.flow for p in ordered), Decimal("0")),
    )


def _fmt_usd(x: Decimal) -> str:
    return f"{x:.2f}"


def _fmt_ts(ts: int) -> str:
    return dt.datetime.fromtimestamp(ts, tz=dt.timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def render_pair_log(report: FlowReport, title: str = "Two-way pairs") -> str:
    lines: List[str] = [f"{title}: {len(report.pairs)} pair(s)", ""]

    for i, p in enumerate(report.pairs, start=1):
        lines.append(f"Pair {i}: {p.address_a} <-> {p.address_b}")
        directions = [(p.address_a, p.address_b, p.forward)]
        if p.address_a != p.address_b:
            directions.append((p.address_b, p.address_a, p.backward))
        for src, dst, txs in directions:
            subtotal = sum((t.usd_value for t in txs), Decimal("0"))
            lines.append(f"  {src} -> {dst}: {len(txs)} transaction(s), {_fmt_usd(subtotal)} USD")
            for t in txs:
                lines.append(f"    {t.tx_hash} | {_fmt_ts(t.timestamp)} | {_fmt_usd(t.usd_value)} USD")
        lines.append(f"  volume: {_fmt_usd(p.volume)} USD | flow: {_fmt_usd(p.flow)} USD")
        lines.append("")

    lines.append(f"Total volume: {_fmt_usd(report.total_volume)} USD")
    lines.append(f"Total flow: {_fmt_usd(report.total_flow)} USD")
    return "\n".join(lines) + "\n"
