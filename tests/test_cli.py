import io
import shutil
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest import mock

from ethgraph.adapters.chain.static_transaction_source import StaticTransactionSource
from ethgraph.cli.main import main
from ethgraph.core.dto import RawTransaction
from ethgraph.io.graph_store import load_graph

DATA_DIR = Path(__file__).parent / "data"
SEED = "0x60d170c2b604a4b613b43805ae4657476dca9e38"


def _raw(tx_hash: str, frm: str, to: str, ts: int) -> RawTransaction:
    return RawTransaction(
        tx_hash=tx_hash, block_number=str(ts), timestamp=str(ts),
        from_address=frm, to_address=to, value=str(10**18),
    )


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.tmp = Path(tmp.name)

    def _run(self, *argv: str) -> int:
        with redirect_stdout(io.StringIO()), redirect_stderr(io.StringIO()):
            return main(list(argv) + ["--log-level", "WARNING"])

    def _static_source(self, source):
        return mock.patch("ethgraph.cli.main.EtherscanTransactionSource", lambda **kw: source)

    def test_load_with_prices_writes_report(self) -> None:
        out = self.tmp / "out"

        rc = self._run(
            "--mode", "load", "--file", "example_graph.json", "--data-dir", str(DATA_DIR),
            "--prices", str(DATA_DIR / "eth_usd_hourly.csv"), "--out", str(out),
        )

        self.assertEqual(rc, 0)
        summary = (out / "summary.md").read_text(encoding="utf-8")
        self.assertIn("21011.00 USD", summary)
        self.assertIn("3755.00 USD", summary)
        self.assertTrue((out / "two_way_pairs.log").exists())
        self.assertIn("0 pair(s)", (out / "two_way_filtered_pairs.log").read_text(encoding="utf-8"))

    def test_missing_graph_file_fails(self) -> None:
        rc = self._run("--mode", "load", "--file", "missing.json", "--data-dir", str(self.tmp))

        self.assertEqual(rc, 1)

    def test_parse_save_crawls_and_persists(self) -> None:
        source = StaticTransactionSource([_raw("0x1", SEED, "0xbbbb", 100), _raw("0x2", "0xbbbb", "0xcccc", 101)])

        with self._static_source(source), mock.patch("ethgraph.config.settings.ETHERSCAN_API_KEY", "KEY"):
            rc = self._run("--mode", "parse-save", "--file", "g.json", "--data-dir", str(self.tmp), "--seed", SEED)

        self.assertEqual(rc, 0)
        graph = load_graph("g.json", data_dir=str(self.tmp))
        self.assertEqual(graph.edge_count(), 2)

    def test_load_parse_save_extends_saved_graph(self) -> None:
        shutil.copy(DATA_DIR / "example_graph.json", self.tmp / "g.json")
        source = StaticTransactionSource([_raw("0xnew", SEED, "0xbbbb", 100)])

        with self._static_source(source), mock.patch("ethgraph.config.settings.ETHERSCAN_API_KEY", "KEY"):
            rc = self._run("--mode", "load-parse-save", "--file", "g.json", "--data-dir", str(self.tmp), "--seed", SEED)

        self.assertEqual(rc, 0)
        self.assertEqual(load_graph("g.json", data_dir=str(self.tmp)).edge_count(), 9)

    def test_crawl_failure_keeps_partial_graph(self) -> None:
        source = StaticTransactionSource(
            [_raw("0x1", SEED, "0xbbbb", 100)],
            failures={"0xbbbb": 99},
        )

        with self._static_source(source), \
                mock.patch("ethgraph.config.settings.ETHERSCAN_API_KEY", "KEY"), \
                mock.patch("ethgraph.services.crawler_service.time.sleep", lambda s: None):
            rc = self._run(
                "--mode", "parse-save", "--file", "g.json", "--data-dir", str(self.tmp),
                "--seed", SEED, "--max-retries", "2",
            )

        self.assertEqual(rc, 1)
        self.assertEqual(load_graph("g.json", data_dir=str(self.tmp)).edge_count(), 1)

    def test_missing_api_key_is_a_usage_error(self) -> None:
        with mock.patch("ethgraph.config.settings.ETHERSCAN_API_KEY", None), \
                mock.patch("ethgraph.config.settings.ETHERSCAN_API_KEY_FILE", str(self.tmp / "none.txt")):
            rc = self._run("--mode", "parse-save", "--data-dir", str(self.tmp))

        self.assertEqual(rc, 2)

    def test_non_finite_usd_bound_is_a_usage_error(self) -> None:
        for bounds in (("nan", "1000"), ("10", "Infinity")):
            rc = self._run(
                "--mode", "load", "--file", "example_graph.json", "--data-dir", str(DATA_DIR),
                "--prices", str(DATA_DIR / "eth_usd_hourly.csv"), "--out", str(self.tmp / "out"),
                "--min-usd", bounds[0], "--max-usd", bounds[1],
            )

            self.assertEqual(rc, 2, msg=bounds)


if __name__ == "__main__":
    unittest.main()
