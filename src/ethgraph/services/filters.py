from __future__ import annotations

from decimal import Decimal
from typing import Set, Tuple

from ethgraph.core.models import Graph
from ethgraph.ports.price_port import PricePort
from ethgraph.services.analytics import edge_usd_value


def filter_by_usd_range(graph: Graph, prices: PricePort, lower: Decimal, upper: Decimal) -> Graph:
    """
    Edges whose USD value lies in [lower, upper]. All nodes are kept, isolated or not.
    """
    lo, hi = Decimal(str(lower)), Decimal(str(upper))
    if lo > hi:
        raise ValueError(f"lower bound {lo} is above upper bound {hi}")

    kept = [e for e in graph.edges if lo <= edge_usd_value(e.transaction, prices) <= hi]
    return graph.subgraph(kept)


def filter_two_way(graph: Graph) -> Graph:
    """
    Edges A->B for which the source graph also has at least one B->A edge.
    A self-loop is its own reverse and is therefore kept.
    """
    directed: Set[Tuple[str, str]] = {(e.source, e.target) for e in graph.edges}
    kept = [e for e in graph.edges if (e.target, e.source) in directed]
    return graph.subgraph(kept)
