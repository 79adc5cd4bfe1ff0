from __future__ import annotations

import math
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

from ethgraph.core.errors import GraphPersistenceError
from ethgraph.services.analytics import render_pair_log
from ethgraph.services.report_service import GraphReport, ReportSection


def _write_text(out_path: Path, text: str) -> str:
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with out_path.open("w", encoding="utf-8") as f:
            f.write(text)
    except OSError as e:
        raise GraphPersistenceError(f"Could not write {out_path}: {e}") from e
    return str(out_path)


def write_summary_md(
    report: GraphReport,
    out_dir: str,
    filename: str = "summary.md",
    seed_address: Optional[str] = None,
) -> str:
    """
    Volume / mean / flow figures for each report section.
    """
    out_path = Path(out_dir) / filename
    seed = (seed_address or "").lower()

    def fmt_usd(x: Decimal) -> str:
        return f"{x:.2f}"

    def rounded_up(x: Decimal) -> int:
        return math.ceil(x)

    def section_lines(s: ReportSection) -> List[str]:
        v = s.volume
        out = [f"## {s.title}\n\n"]
        out.append(f"- Nodes: **{s.node_count}**\n")
        out.append(f"- Edges: **{v.edge_count}**\n")
        out.append(f"- Total volume: **{fmt_usd(v.total_usd)} USD** (~{rounded_up(v.total_usd)})\n")
        if v.mean_usd is None:
            out.append("- Mean value: _n/a (no edges)_\n")
        else:
            out.append(f"- Mean value: **{fmt_usd(v.mean_usd)} USD** (~{rounded_up(v.mean_usd)})\n")
        if s.flow is not None:
            out.append(f"- Pairs: **{len(s.flow.pairs)}**\n")
            out.append(f"- Pair volume: **{fmt_usd(s.flow.total_volume)} USD**\n")
            out.append(f"- Net flow: **{fmt_usd(s.flow.total_flow)} USD** (~{rounded_up(s.flow.total_flow)})\n")
        out.append("\n")
        return out

    lines = []
    lines.append("# Transaction Graph Report\n\n")
    if seed:
        lines.append(f"- Seed: **{seed}**\n")
    lines.append(f"- USD range filter: **[{report.lower_usd}, {report.upper_usd}]**\n\n")

    for s in report.sections:
        lines.extend(section_lines(s))

    lines.append("## Notes\n\n")
    lines.append("- Only normal ETH transactions are included; failed transactions and contract creations are skipped.\n")
    lines.append("- USD values use the hourly ETH/USD average at each transaction's timestamp.\n")
    lines.append("- The crawl is bounded by an edge budget and does not cover the full ledger.\n")

    return _write_text(out_path, "".join(lines))


def write_pair_logs(
    report: GraphReport,
    out_dir: str,
    two_way_filename: str = "two_way_pairs.log",
    filtered_filename: str = "two_way_filtered_pairs.log",
) -> List[str]:
    p = Path(out_dir)
    paths = []
    for section, filename in (
        (report.two_way, two_way_filename),
        (report.two_way_price_filtered, filtered_filename),
    ):
        if section.flow is None:
            continue
        paths.append(_write_text(p / filename, render_pair_log(section.flow, title=section.title)))
    return paths
