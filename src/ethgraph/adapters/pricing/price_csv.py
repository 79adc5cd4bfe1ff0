from __future__ import annotations

import csv
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional, Sequence

from ethgraph.adapters.pricing.hourly_price_index import HourlyPriceIndex
from ethgraph.core.dto import PriceRecord
from ethgraph.core.errors import PriceDataError

TIME_COLUMNS = ("timestamp", "unix", "period_start")
PRICE_COLUMNS = ("average", "price", "price_usd", "close")


def _pick(fieldnames: Sequence[str], candidates: Sequence[str]) -> Optional[str]:
    lowered = {f.strip().lower(): f for f in fieldnames}
    for c in candidates:
        if c in lowered:
            return lowered[c]
    return None


def _to_unix(text: str) -> int:
    # some exports use milliseconds
    ts = int(Decimal(text.strip()))
    if ts > 10**12:
        ts //= 1000
    return ts


def load_price_records(path: str) -> List[PriceRecord]:
    p = Path(path)
    if not p.exists():
        raise PriceDataError(f"Price file {p} not found.")

    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        fieldnames = reader.fieldnames or []
        time_col = _pick(fieldnames, TIME_COLUMNS)
        price_col = _pick(fieldnames, PRICE_COLUMNS)
        if not time_col or not price_col:
            raise PriceDataError(
                f"Price file {p} needs a time column {TIME_COLUMNS} and a price column {PRICE_COLUMNS}"
            )

        records: List[PriceRecord] = []
        for row in reader:
            raw_ts = (row.get(time_col) or "").strip()
            raw_price = (row.get(price_col) or "").strip()
            if not raw_ts and not raw_price:
                continue
            try:
                price = Decimal(raw_price)
                if not price.is_finite():
                    raise ValueError(raw_price)
                records.append(PriceRecord(period_start=_to_unix(raw_ts), price_usd=price))
            except (InvalidOperation, ValueError) as e:
                raise PriceDataError(
                    f"Price file {p}, line {reader.line_num}: cannot parse {raw_ts!r} / {raw_price!r}"
                ) from e

    return records


def load_price_index(path: str) -> HourlyPriceIndex:
    return HourlyPriceIndex(load_price_records(path))
