from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Set

from ethgraph.adapters.chain.rate_limiter import backoff_delay
from ethgraph.core.dto import RawTransaction
from ethgraph.core.errors import DataSourceError, MalformedTransactionError, RetryExhaustedError
from ethgraph.core.models import CrawlConfig, CrawlStrategy, Graph, Transaction
from ethgraph.ports.transaction_source_port import TransactionSourcePort

log = logging.getLogger(__name__)

ProgressFn = Callable[[str, Dict[str, Any]], None]

STOP_BUDGET = "budget"
STOP_FRONTIER = "frontier"


def _short(addr: str) -> str:
    return addr[:10]


@dataclass
class CrawlSession:
    """
    State of one crawl: the graph built so far, the relevance counter
    (address -> touch count) and the trajectory (addresses already queried).
    """

    seed: str
    graph: Graph = field(default_factory=Graph)
    relevance: Dict[str, int] = field(default_factory=dict)
    trajectory: Set[str] = field(default_factory=set)
    stop_reason: Optional[str] = None

    @classmethod
    def start(cls, seed: str, graph: Optional[Graph] = None) -> CrawlSession:
        """
        Fresh session rooted at `seed`. When resuming from an existing graph the
        relevance counter is rebuilt from its edges.
        """
        session = cls(seed=seed.lower(), graph=graph if graph is not None else Graph())
        session.relevance[session.seed] = 1
        for e in session.graph.edges:
            session.bump(e.source)
            session.bump(e.target)
        return session

    def bump(self, address: str) -> None:
        self.relevance[address] = self.relevance.get(address, 0) + 1

    def next_address(self) -> Optional[str]:
        """Highest-scoring address not yet queried; ties go to the earliest seen."""
        best: Optional[str] = None
        best_score = 0
        for addr, score in self.relevance.items():
            if addr in self.trajectory:
                continue
            if best is None or score > best_score:
                best, best_score = addr, score
        return best


@dataclass(frozen=True)
class _hopItem:
    address: str
    depth: int


class CrawlerService:
    """
    Builds a transaction graph around a seed address, one address query at a time.

    - relevance strategy: always expand the unvisited address with the highest
      touch count until the edge budget is spent or nothing is left to expand
    - depth strategy: breadth-first from the seed, limited to max_depth levels
    - a failing query is retried with backoff; after max_fetch_retries
      attempts RetryExhaustedError is raised and the graph keeps what it had
    """

    def __init__(
        self,
        source: TransactionSourcePort,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.source = source
        self._sleep = sleep or time.sleep

    def crawl(
        self,
        cfg: CrawlConfig,
        graph: Optional[Graph] = None,
        on_progress: Optional[ProgressFn] = None,
    ) -> Graph:
        session = CrawlSession.start(cfg.seed_address, graph)
        self.run(session, cfg, on_progress=on_progress)
        return session.graph

    def run(
        self,
        session: CrawlSession,
        cfg: CrawlConfig,
        on_progress: Optional[ProgressFn] = None,
    ) -> CrawlSession:
        if cfg.max_total_edges <= 0:
            raise ValueError("max_total_edges must be > 0")

        progress = on_progress or (lambda event, data: None)
        progress("start", {"seed": session.seed, "strategy": CrawlStrategy(cfg.strategy).value})
        log.info(
            "Crawling from %s (%s, budget %d edges)",
            session.seed, CrawlStrategy(cfg.strategy).value, cfg.max_total_edges,
        )

        if CrawlStrategy(cfg.strategy) is CrawlStrategy.DEPTH:
            self._run_depth(session, cfg, progress)
        else:
            self._run_relevance(session, cfg, progress)

        g = session.graph
        log.info(
            "Crawl finished (%s): %d nodes, %d edges, %d address(es) queried",
            session.stop_reason, g.node_count(), g.edge_count(), len(session.trajectory),
        )
        progress("done", {
            "nodes": g.node_count(),
            "edges": g.edge_count(),
            "visited": len(session.trajectory),
            "reason": session.stop_reason,
        })
        return session

    # -------------------------
    # Strategies
    # -------------------------

    def _run_relevance(self, session: CrawlSession, cfg: CrawlConfig, progress: ProgressFn) -> None:
        while True:
            if session.graph.edge_count() >= cfg.max_total_edges:
                session.stop_reason = STOP_BUDGET
                return

            address = session.next_address()
            if address is None:
                session.stop_reason = STOP_FRONTIER
                return

            progress("visit", {
                "address": address,
                "score": session.relevance[address],
                "edges": session.graph.edge_count(),
                "visited": len(session.trajectory),
            })
            self._expand(session, address, cfg, progress)

    def _run_depth(self, session: CrawlSession, cfg: CrawlConfig, progress: ProgressFn) -> None:
        # like the relevance loop, but the frontier is a FIFO of (address, depth)
        q: Deque[_hopItem] = deque([_hopItem(session.seed, 0)])

        while True:
            if session.graph.edge_count() >= cfg.max_total_edges:
                session.stop_reason = STOP_BUDGET
                return
            if not q:
                session.stop_reason = STOP_FRONTIER
                return

            item = q.popleft()
            if item.address in session.trajectory:
                continue

            progress("visit", {
                "address": item.address,
                "depth": item.depth,
                "edges": session.graph.edge_count(),
                "visited": len(session.trajectory),
            })
            discovered = self._expand(session, item.address, cfg, progress)

            # depth 1 always gets searched, so max_depth 0 behaves like 1
            if item.depth + 1 < cfg.max_depth:
                for addr in discovered:
                    q.append(_hopItem(addr, item.depth + 1))

    # -------------------------
    # Expansion
    # -------------------------

    def _expand(
        self,
        session: CrawlSession,
        address: str,
        cfg: CrawlConfig,
        progress: ProgressFn,
    ) -> List[str]:
        """Queries one address and applies its rows; returns newly created nodes."""
        session.trajectory.add(address)
        rows = self._fetch(address, cfg, progress)[: cfg.max_per_address]

        graph = session.graph
        discovered: List[str] = []
        for raw in rows:
            if graph.edge_count() >= cfg.max_total_edges:
                break

            tx = self._accept(graph, raw)
            if tx is None:
                continue

            for endpoint in (tx.from_address, tx.to_address):
                if graph.ensure_node(endpoint):
                    discovered.append(endpoint)
            graph.add_transaction(tx)
            session.bump(tx.from_address)
            session.bump(tx.to_address)

            log.info(
                "Added transaction %s... --> %s... from block %d (%d edges)",
                _short(tx.from_address), _short(tx.to_address), tx.block_number, graph.edge_count(),
            )

        return discovered

    def _accept(self, graph: Graph, raw: RawTransaction) -> Optional[Transaction]:
        if raw.is_contract_creation:
            log.debug("Skipping contract creation %s", raw.tx_hash)
            return None
        if raw.is_failed:
            log.debug("Skipping failed transaction %s", raw.tx_hash)
            return None
        if graph.has_transaction(raw.tx_hash):
            return None

        try:
            return Transaction.from_raw(raw)
        except MalformedTransactionError as e:
            log.warning("Skipping malformed transaction: %s", e)
            return None

    def _fetch(self, address: str, cfg: CrawlConfig, progress: ProgressFn) -> List[RawTransaction]:
        attempt = 0
        while True:
            try:
                rows = self.source.get_transactions(address)
            except DataSourceError as e:
                attempt += 1
                log.warning("Incorrect response for %s... (attempt %d): %s", _short(address), attempt, e)
                progress("fetch_failed", {"address": address, "attempt": attempt, "error": str(e)})

                if cfg.max_fetch_retries and attempt >= cfg.max_fetch_retries:
                    raise RetryExhaustedError(address, attempt, e) from e
                self._sleep(backoff_delay(attempt - 1, cfg.backoff_base_sec, cfg.backoff_cap_sec))
                continue

            log.info("Correct response for %s... (%d transactions)", _short(address), len(rows))
            return rows
