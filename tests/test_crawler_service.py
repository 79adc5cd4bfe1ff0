import unittest

from ethgraph.adapters.chain.static_transaction_source import StaticTransactionSource
from ethgraph.core.dto import RawTransaction
from ethgraph.core.errors import RetryExhaustedError
from ethgraph.core.models import CrawlConfig, CrawlStrategy, Graph, Transaction
from ethgraph.services.crawler_service import CrawlerService, CrawlSession, STOP_BUDGET, STOP_FRONTIER


ONE_ETH = str(10**18)


def _raw(tx_hash: str, frm: str, to: str, ts: int, value: str = ONE_ETH, **kw) -> RawTransaction:
    return RawTransaction(
        tx_hash=tx_hash,
        block_number=str(ts),
        timestamp=str(ts),
        from_address=frm,
        to_address=to,
        value=value,
        **kw,
    )


class CrawlerServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.sleeps = []

    def _make_cfg(self, seed: str, **overrides) -> CrawlConfig:
        defaults = dict(
            seed_address=seed,
            max_total_edges=100,
            max_per_address=20,
            max_fetch_retries=5,
        )
        defaults.update(overrides)
        return CrawlConfig(**defaults)

    def _svc(self, source) -> CrawlerService:
        return CrawlerService(source, sleep=self.sleeps.append)

    def test_expands_highest_relevance_address_first(self) -> None:
        s, x, y, z = "0xs", "0xx", "0xy", "0xz"
        source = StaticTransactionSource([
            _raw("0x1", s, x, 100),
            _raw("0x2", y, s, 101),
            _raw("0x3", s, y, 102),
            _raw("0x4", y, z, 103),
        ])
        session = CrawlSession.start(s)

        self._svc(source).run(session, self._make_cfg(s))

        # y is touched twice by the seed's rows, x and z once each (x seen first)
        self.assertEqual(source.calls, [s, y, x, z])
        self.assertEqual(session.graph.edge_count(), 4)
        self.assertEqual(session.stop_reason, STOP_FRONTIER)
        self.assertEqual(session.relevance, {s: 4, y: 3, x: 1, z: 1})
        self.assertEqual(session.trajectory, {s, x, y, z})

    def test_seed_starts_with_relevance_one(self) -> None:
        session = CrawlSession.start("0xSEED")
        self.assertEqual(session.relevance, {"0xseed": 1})
        self.assertEqual(session.next_address(), "0xseed")
        self.assertEqual(session.graph.edge_count(), 0)

    def test_edge_budget_is_never_exceeded(self) -> None:
        seed = "0xaaaa"
        source = StaticTransactionSource([_raw(f"0x{i}", seed, f"0xb{i}", 100 + i) for i in range(5)])
        session = CrawlSession.start(seed)

        self._svc(source).run(session, self._make_cfg(seed, max_total_edges=3))

        self.assertEqual(session.graph.edge_count(), 3)
        self.assertEqual(session.stop_reason, STOP_BUDGET)
        self.assertEqual(source.calls, [seed])

    def test_transaction_seen_from_both_ends_is_added_once(self) -> None:
        a, b = "0xaaaa", "0xbbbb"
        source = StaticTransactionSource([
            _raw("0xshared", a, b, 100),
            _raw("0xback", b, a, 101),
        ])

        graph = self._svc(source).crawl(self._make_cfg(a))

        hashes = [e.transaction.tx_hash for e in graph.edges]
        self.assertEqual(sorted(hashes), ["0xback", "0xshared"])
        self.assertEqual(len(hashes), len(set(hashes)))
        self.assertEqual(source.calls, [a, b])

    def test_rejects_contract_creation_failed_and_malformed_rows(self) -> None:
        seed = "0xaaaa"
        source = StaticTransactionSource([
            _raw("0xcreate", seed, "", 100, contract_address="0xnew"),
            _raw("0xcreate2", seed, "0xcccc", 101, contract_address="0xnew2"),
            _raw("0xerr", seed, "0xdddd", 102, is_error="1"),
            _raw("0xreverted", seed, "0xeeee", 103, txreceipt_status="0"),
            _raw("0xbad", seed, "0xffff", 104, value="12abc"),
            _raw("0xgood", seed, "0xbbbb", 105),
        ])

        graph = self._svc(source).crawl(self._make_cfg(seed))

        self.assertEqual([e.transaction.tx_hash for e in graph.edges], ["0xgood"])
        self.assertEqual(graph.nodes, [seed, "0xbbbb"])

    def test_addresses_are_case_folded(self) -> None:
        source = StaticTransactionSource([_raw("0x1", "0xAAAA", "0xBbBb", 100)])

        graph = self._svc(source).crawl(self._make_cfg("0xAaAa", max_total_edges=10))

        self.assertEqual(graph.nodes, ["0xaaaa", "0xbbbb"])
        self.assertEqual(graph.edges[0].source, "0xaaaa")
        self.assertEqual(graph.edges[0].transaction.to_address, "0xbbbb")

    def test_transient_failures_are_retried_with_backoff(self) -> None:
        seed = "0xaaaa"
        source = StaticTransactionSource([_raw("0x1", seed, "0xbbbb", 100)], failures={seed: 2})

        graph = self._svc(source).crawl(self._make_cfg(seed))

        self.assertEqual(graph.edge_count(), 1)
        self.assertEqual(source.calls[:3], [seed, seed, seed])
        self.assertEqual(len(self.sleeps), 2)
        self.assertTrue(all(s > 0 for s in self.sleeps))

    def test_retry_exhaustion_raises_and_keeps_graph_consistent(self) -> None:
        seed, other = "0xaaaa", "0xbbbb"
        source = StaticTransactionSource(
            [_raw("0x1", seed, other, 100), _raw("0x2", other, "0xcccc", 101)],
            failures={other: 10},
        )
        session = CrawlSession.start(seed)

        with self.assertRaises(RetryExhaustedError) as ctx:
            self._svc(source).run(session, self._make_cfg(seed, max_fetch_retries=3))

        self.assertEqual(ctx.exception.address, other)
        self.assertEqual(ctx.exception.attempts, 3)
        self.assertEqual(session.graph.edge_count(), 1)
        self.assertEqual(session.graph.edges[0].transaction.tx_hash, "0x1")
        self.assertEqual(len(self.sleeps), 2)

    def test_zero_max_retries_means_retry_until_success(self) -> None:
        seed = "0xaaaa"
        source = StaticTransactionSource([_raw("0x1", seed, "0xbbbb", 100)], failures={seed: 7})

        graph = self._svc(source).crawl(self._make_cfg(seed, max_fetch_retries=0))

        self.assertEqual(graph.edge_count(), 1)
        self.assertEqual(len(self.sleeps), 7)

    def test_depth_strategy_stops_at_max_depth(self) -> None:
        s, a1, a2, a3 = "0xs", "0xa1", "0xa2", "0xa3"
        txs = [_raw("0x1", s, a1, 100), _raw("0x2", a1, a2, 101), _raw("0x3", a2, a3, 102)]

        shallow = self._svc(StaticTransactionSource(txs)).crawl(
            self._make_cfg(s, strategy=CrawlStrategy.DEPTH, max_depth=1)
        )
        deeper_source = StaticTransactionSource(txs)
        deeper = self._svc(deeper_source).crawl(
            self._make_cfg(s, strategy=CrawlStrategy.DEPTH, max_depth=2)
        )

        self.assertEqual(shallow.edge_count(), 1)
        self.assertEqual(deeper.edge_count(), 2)
        self.assertFalse(deeper.has_node(a3))
        self.assertEqual(deeper_source.calls, [s, a1])

    def test_depth_strategy_respects_edge_budget(self) -> None:
        seed = "0xaaaa"
        source = StaticTransactionSource([_raw(f"0x{i}", seed, f"0xb{i}", 100 + i) for i in range(5)])

        graph = self._svc(source).crawl(
            self._make_cfg(seed, strategy=CrawlStrategy.DEPTH, max_depth=3, max_total_edges=2)
        )

        self.assertEqual(graph.edge_count(), 2)

    def test_resume_from_existing_graph(self) -> None:
        seed, x, y = "0xaaaa", "0xbbbb", "0xcccc"
        existing = Graph()
        existing.add_transaction(
            Transaction(tx_hash="0x1", from_address=seed, to_address=x, value=ONE_ETH, timestamp=100)
        )
        source = StaticTransactionSource([_raw("0x1", seed, x, 100), _raw("0x2", y, seed, 101)])
        session = CrawlSession.start(seed, existing)

        self.assertEqual(session.relevance, {seed: 2, x: 1})

        self._svc(source).run(session, self._make_cfg(seed, max_total_edges=10))

        self.assertIs(session.graph, existing)
        self.assertEqual([e.transaction.tx_hash for e in existing.edges], ["0x1", "0x2"])

    def test_reports_progress_events(self) -> None:
        seed = "0xaaaa"
        events = []
        source = StaticTransactionSource([_raw("0x1", seed, "0xbbbb", 100)], failures={seed: 1})

        self._svc(source).crawl(self._make_cfg(seed), on_progress=lambda ev, data: events.append((ev, data)))

        names = [ev for ev, _ in events]
        self.assertEqual(names[0], "start")
        self.assertIn("fetch_failed", names)
        self.assertEqual(names[-1], "done")
        self.assertEqual(events[-1][1]["edges"], 1)
        self.assertEqual(events[-1][1]["reason"], STOP_FRONTIER)

    def test_per_address_limit_holds_for_any_source(self) -> None:
        s = "0xs"
        source = StaticTransactionSource(
            [_raw(f"0x{i}", s, f"0xt{i}", 100 + i) for i in range(5)],
            max_per_address=50,
        )
        session = CrawlSession.start(s)

        self._svc(source).run(session, self._make_cfg(s, max_per_address=2))

        # most recent first: 0x4 and 0x3 from the seed, then nothing new from 0xt4 / 0xt3
        self.assertEqual([e.transaction.tx_hash for e in session.graph.edges], ["0x4", "0x3"])
        self.assertEqual(source.calls, [s, "0xt4", "0xt3"])

    def test_rejects_non_positive_budget(self) -> None:
        with self.assertRaises(ValueError):
            self._svc(StaticTransactionSource()).crawl(self._make_cfg("0xaaaa", max_total_edges=0))


if __name__ == "__main__":
    unittest.main()
