from __future__ import annotations

from typing import Any, Dict

from ethgraph.core.models import Graph, Transaction


def transaction_to_dict(tx: Transaction) -> Dict[str, Any]:
    return {
        "hash": tx.tx_hash,
        "from": tx.from_address,
        "to": tx.to_address,
        # keep as string for JSON precision safety
        "value": tx.value,
        "timestamp": tx.timestamp,
        "block_number": tx.block_number,
    }


def transaction_from_dict(d: Dict[str, Any]) -> Transaction:
    # Older graph files store the raw Etherscan row (timeStamp / blockNumber).
    timestamp = d.get("timestamp", d.get("timeStamp"))
    if timestamp is None:
        raise KeyError("timestamp")
    block_number = d.get("block_number", d.get("blockNumber", 0))
    return Transaction(
        tx_hash=str(d["hash"]),
        from_address=str(d["from"]).lower(),
        to_address=str(d["to"]).lower(),
        value=str(d["value"]),
        timestamp=int(timestamp),
        block_number=int(block_number or 0),
    )


def graph_to_dict(g: Graph) -> Dict[str, Any]:
    """Node list (index = position) plus (source index, target index, payload) triples."""
    return {
        "nodes": list(g.nodes),
        "edges": [
            [g.node_index(e.source), g.node_index(e.target), transaction_to_dict(e.transaction)]
            for e in g.edges
        ],
    }


def graph_from_dict(data: Dict[str, Any]) -> Graph:
    """Raises ValueError (or KeyError/TypeError) on a structurally invalid document."""
    if not isinstance(data, dict) or not isinstance(data.get("nodes"), list) or not isinstance(data.get("edges"), list):
        raise ValueError("expected an object with 'nodes' and 'edges' lists")

    nodes = [str(n).lower() for n in data["nodes"]]
    if len(set(nodes)) != len(nodes):
        raise ValueError("duplicate node labels")

    g = Graph(nodes=nodes)
    for i, item in enumerate(data["edges"]):
        if not isinstance(item, (list, tuple)) or len(item) != 3:
            raise ValueError(f"edge {i} is not a [source, target, transaction] triple")
        source, target, payload = item
        if not (isinstance(source, int) and isinstance(target, int)):
            raise ValueError(f"edge {i} has non-integer node indices")
        if not (0 <= source < len(nodes) and 0 <= target < len(nodes)):
            raise ValueError(f"edge {i} points outside the node list")
        if not g.add_edge(nodes[source], nodes[target], transaction_from_dict(payload)):
            raise ValueError(f"edge {i} repeats transaction {payload.get('hash')}")
    return g
