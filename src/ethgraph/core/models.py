from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Set

from ethgraph.core.dto import RawTransaction
from ethgraph.core.errors import MalformedTransactionError



# Configuration model

class CrawlStrategy(str, Enum):
    RELEVANCE = "relevance"     # greedy best-first by touch count
    DEPTH = "depth"             # breadth-first, bounded by max_depth


@dataclass(frozen=True)
class CrawlConfig:
    """
    User input / run configuration for crawling.
    """

    seed_address: str
    max_total_edges: int = 100
    max_per_address: int = 20
    strategy: CrawlStrategy = CrawlStrategy.RELEVANCE
    max_depth: int = 4

    # retry knobs
    max_fetch_retries: int = 5        # 0 = unlimited
    backoff_base_sec: float = 0.5
    backoff_cap_sec: float = 8.0



# Graph models

def _parse_int(raw: RawTransaction, field_name: str, text: str) -> int:
    try:
        return int(str(text).strip())
    except (TypeError, ValueError) as e:
        raise MalformedTransactionError(
            f"Transaction {raw.tx_hash or '<no hash>'} has invalid {field_name}: {text!r}"
        ) from e


@dataclass(frozen=True)
class Transaction:
    """Simplified transaction payload stored on every edge."""

    tx_hash: str
    from_address: str
    to_address: str
    value: str              # wei, decimal string
    timestamp: int
    block_number: int = 0

    @classmethod
    def from_raw(cls, raw: RawTransaction) -> "Transaction":
        if not raw.tx_hash:
            raise MalformedTransactionError("Transaction without hash")
        value = _parse_int(raw, "value", raw.value)
        if value < 0:
            raise MalformedTransactionError(f"Transaction {raw.tx_hash} has negative value: {raw.value!r}")
        return cls(
            tx_hash=raw.tx_hash,
            from_address=raw.from_address.lower(),
            to_address=raw.to_address.lower(),
            value=str(value),
            timestamp=_parse_int(raw, "timestamp", raw.timestamp),
            block_number=_parse_int(raw, "block number", raw.block_number or "0"),
        )

    @property
    def value_wei(self) -> int:
        try:
            return int(self.value)
        except (TypeError, ValueError) as e:
            raise MalformedTransactionError(
                f"Transaction {self.tx_hash} has invalid value: {self.value!r}"
            ) from e


@dataclass(frozen=True)
class Edge:

    source: str
    target: str
    transaction: Transaction


@dataclass
class Graph:
    """
    Directed multigraph of addresses (nodes) and transactions (edges).

    Nodes keep insertion order, so a node's index is its position in `nodes`.
    A transaction hash is stored as an edge at most once.
    """

    nodes: List[str] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)

    _node_index: Dict[str, int] = field(default_factory=dict, init=False, repr=False, compare=False)
    _edge_hashes: Set[str] = field(default_factory=set, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        nodes = list(self.nodes)
        edges = list(self.edges)
        self.nodes = []
        self.edges = []
        for address in nodes:
            self.ensure_node(address)
        for e in edges:
            self.add_edge(e.source, e.target, e.transaction)

    # --- nodes ---

    def ensure_node(self, address: str) -> bool:
        """Adds the node if missing; returns True when it was created."""
        addr = address.lower()
        if addr in self._node_index:
            return False
        self._node_index[addr] = len(self.nodes)
        self.nodes.append(addr)
        return True

    def has_node(self, address: str) -> bool:
        return address.lower() in self._node_index

    def node_index(self, address: str) -> int:
        return self._node_index[address.lower()]

    # --- edges ---

    def has_transaction(self, tx_hash: str) -> bool:
        return tx_hash in self._edge_hashes

    def add_edge(self, source: str, target: str, transaction: Transaction) -> bool:
        """Adds an edge unless its transaction hash is already present."""
        if transaction.tx_hash in self._edge_hashes:
            return False
        self.ensure_node(source)
        self.ensure_node(target)
        self.edges.append(Edge(source.lower(), target.lower(), transaction))
        self._edge_hashes.add(transaction.tx_hash)
        return True

    def add_transaction(self, transaction: Transaction) -> bool:
        return self.add_edge(transaction.from_address, transaction.to_address, transaction)

    # --- sizes / derivation ---

    def node_count(self) -> int:
        return len(self.nodes)

    def edge_count(self) -> int:
        return len(self.edges)

    def subgraph(self, edges: List[Edge]) -> Graph:
        """New graph with the same nodes (same order) and only the given edges."""
        g = Graph(nodes=list(self.nodes))
        for e in edges:
            g.add_edge(e.source, e.target, e.transaction)
        return g
