from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
import time
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional, Tuple

from ethgraph.config import settings
from ethgraph.config.logging_config import configure_logging
from ethgraph.core.errors import ConfigError, EthGraphError
from ethgraph.core.models import CrawlConfig, CrawlStrategy, Graph
from ethgraph.services.crawler_service import CrawlerService, CrawlSession
from ethgraph.services.report_service import ReportService
from ethgraph.io.graph_store import load_graph, save_graph
from ethgraph.io.output_writer import write_pair_logs, write_summary_md

from ethgraph.adapters.chain.etherscan_transaction_source import EtherscanTransactionSource
from ethgraph.adapters.pricing.price_csv import load_price_index

log = logging.getLogger("ethgraph.cli")

MODE_LOAD = "load"
MODE_PARSE_SAVE = "parse-save"
MODE_LOAD_PARSE_SAVE = "load-parse-save"


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ethgraph", description="Transaction graph crawler and USD flow report")
    p.add_argument("-m", "--mode", choices=[MODE_LOAD, MODE_PARSE_SAVE, MODE_LOAD_PARSE_SAVE], default=MODE_LOAD,
                   help="load a saved graph, crawl a new one, or load and keep crawling")
    p.add_argument("-f", "--file", default="example.json", help="Graph file name inside --data-dir")
    p.add_argument("--data-dir", default=settings.DATA_STORAGE_FOLDER, help="Folder for graph files")
    p.add_argument("--seed", default=settings.TRAVERSAL_STARTING_ADDRESS, help="Seed address to crawl from")
    p.add_argument("--max-edges", type=int, default=settings.MAX_TOTAL_TRANSACTIONS, help="Stop once the graph has this many edges")
    p.add_argument("--per-address", type=int, default=settings.MAX_TRANSACTIONS_FROM_EACH_ADDRESS, help="Transactions fetched per address query")
    p.add_argument("--strategy", choices=[s.value for s in CrawlStrategy], default=settings.CRAWL_STRATEGY, help="Next-address selection")
    p.add_argument("--max-depth", type=int, default=settings.MAX_GRAPH_TRAVERSAL_DEPTH, help="Levels to expand with --strategy depth")
    p.add_argument("--max-retries", type=int, default=settings.FETCH_MAX_RETRIES, help="Attempts per address query (0=unlimited)")
    p.add_argument("--prices", default=settings.PRICE_FILE, help="Hourly ETH/USD price CSV; enables the report")
    p.add_argument("--min-usd", type=str, default=str(settings.USD_FILTER_LOWER), help="Lower bound of the USD range filter")
    p.add_argument("--max-usd", type=str, default=str(settings.USD_FILTER_UPPER), help="Upper bound of the USD range filter")
    p.add_argument("--out", default=settings.REPORT_OUTPUT_FOLDER, help="Report output folder")
    p.add_argument("--log-level", default=settings.LOG_LEVEL, help="DEBUG, INFO, WARNING, ...")
    return p


def get_api_key(key_file: Optional[str] = None) -> str:
    if settings.ETHERSCAN_API_KEY:
        return settings.ETHERSCAN_API_KEY.strip()
    key_file = key_file or settings.ETHERSCAN_API_KEY_FILE
    path = Path(key_file)
    if not path.exists():
        raise ConfigError(
            f"Please set ETHERSCAN_API_KEY or provide an Etherscan API key inside of {key_file}"
        )
    api_key = path.read_text(encoding="utf-8").strip()
    if not api_key:
        raise ConfigError(f"{key_file} is empty")
    return api_key


def _make_progress_reporter(cfg: CrawlConfig):
    start_time = time.time()

    def _ts() -> str:
        return dt.datetime.now().strftime("%H:%M:%S")

    def progress(event: str, data: dict) -> None:
        if event == "start":
            print(f"[{_ts()}] Crawling {data['seed']} • {data['strategy']} • budget {cfg.max_total_edges} edges")
            return
        if event == "fetch_failed":
            limit = cfg.max_fetch_retries or "∞"
            print(f"[{_ts()}] Retry {data['attempt']}/{limit} for {data['address'][:10]}...", file=sys.stderr)
            return
        if event == "done":
            elapsed = time.time() - start_time
            print(
                f"[{_ts()}] Done in {elapsed:.1f}s • "
                f"{data['nodes']} nodes • {data['edges']} edges • "
                f"{data['visited']} queried ({data['reason']})"
            )
            return
        if event == "error":
            print(f"[{_ts()}] Error: {data.get('message', 'Unknown error')}", file=sys.stderr)

    return progress


def _error(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)


def _crawl(args, graph: Optional[Graph]) -> Tuple[int, Optional[Graph]]:
    try:
        api_key = get_api_key()
    except ConfigError as exc:
        _error(str(exc))
        return 2, None

    cfg = CrawlConfig(
        seed_address=args.seed,
        max_total_edges=args.max_edges,
        max_per_address=args.per_address,
        strategy=CrawlStrategy(args.strategy),
        max_depth=args.max_depth,
        max_fetch_retries=args.max_retries,
        backoff_base_sec=settings.FETCH_BACKOFF_BASE_SEC,
        backoff_cap_sec=settings.FETCH_BACKOFF_CAP_SEC,
    )
    progress = _make_progress_reporter(cfg)

    source = EtherscanTransactionSource(api_key=api_key, max_per_address=cfg.max_per_address)
    svc = CrawlerService(source)
    session = CrawlSession.start(cfg.seed_address, graph)

    try:
        svc.run(session, cfg, on_progress=progress)
    except EthGraphError as exc:
        progress("error", {"message": f"{exc.__class__.__name__}: {exc}"})
        # keep what was crawled so far
        if session.graph.edge_count():
            save_graph(session.graph, args.file, args.data_dir)
        return 1, None

    save_graph(session.graph, args.file, args.data_dir)
    return 0, session.graph


def _report(args, graph: Graph) -> int:
    try:
        lower, upper = Decimal(args.min_usd), Decimal(args.max_usd)
    except InvalidOperation:
        _error(f"Invalid USD range: {args.min_usd!r} / {args.max_usd!r}")
        return 2
    if not (lower.is_finite() and upper.is_finite()):
        _error(f"USD range bounds must be finite numbers: {args.min_usd!r} / {args.max_usd!r}")
        return 2

    prices = load_price_index(args.prices)
    report = ReportService(prices).build(graph, lower, upper)

    print("Writing outputs...")
    summary_path = write_summary_md(report, args.out, seed_address=args.seed)
    print(f"Wrote: {summary_path}")
    for path in write_pair_logs(report, args.out):
        print(f"Wrote: {path}")
    return 0


def main(argv=None) -> int:
    args = build_arg_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        graph: Optional[Graph] = None
        if args.mode in (MODE_LOAD, MODE_LOAD_PARSE_SAVE):
            graph = load_graph(args.file, args.data_dir)

        if args.mode in (MODE_PARSE_SAVE, MODE_LOAD_PARSE_SAVE):
            rc, graph = _crawl(args, graph)
            if rc != 0:
                return rc

        print(f"Graph: {graph.node_count()} nodes • {graph.edge_count()} edges")

        if args.prices:
            return _report(args, graph)
        return 0
    except EthGraphError as exc:
        log.error("%s: %s", exc.__class__.__name__, exc)
        _error(str(exc))
        return 1
    except ValueError as exc:
        _error(str(exc))
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
