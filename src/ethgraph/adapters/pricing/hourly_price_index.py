from __future__ import annotations

from bisect import bisect_right
from decimal import Decimal
from typing import Iterable, List

from ethgraph.config import settings
from ethgraph.core.dto import PriceRecord
from ethgraph.core.errors import InvalidPriceSeriesError, PriceLookupError
from ethgraph.ports.price_port import PricePort


class HourlyPriceIndex(PricePort):
    """
    ETH/USD price lookup over hourly buckets `[start, start + 3600)`.

    A timestamp inside a bucket gets that bucket's price. A timestamp past the
    end of the last bucket gets the last known price. Anything else (before the
    first bucket, or inside a gap between two buckets) raises PriceLookupError.
    """

    def __init__(self, records: Iterable[PriceRecord], bucket_sec: int = settings.PRICE_BUCKET_SEC) -> None:
        self._bucket = bucket_sec
        self._records: List[PriceRecord] = sorted(records, key=lambda r: r.period_start)

        for prev, cur in zip(self._records, self._records[1:]):
            if cur.period_start < prev.period_start + self._bucket:
                raise InvalidPriceSeriesError(
                    f"Price buckets overlap: {prev.period_start} and {cur.period_start}"
                )

        self._starts = [r.period_start for r in self._records]

    def price_at(self, timestamp: int) -> Decimal:
        if not self._records:
            raise PriceLookupError("Price series is empty")

        ts = int(timestamp)
        i = bisect_right(self._starts, ts) - 1
        if i < 0:
            raise PriceLookupError(
                f"No price for timestamp {ts}: series starts at {self._starts[0]}"
            )

        rec = self._records[i]
        if ts < rec.period_start + self._bucket:
            return rec.price_usd
        if i == len(self._records) - 1:
            return rec.price_usd
        raise PriceLookupError(f"No price for timestamp {ts}: gap after bucket {rec.period_start}")
