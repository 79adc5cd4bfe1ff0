from ethgraph.ports.transaction_source_port import TransactionSourcePort
from ethgraph.core.dto import RawTransaction
from ethgraph.core.errors import DataSourceError
from typing import Optional, Dict, List

class StaticTransactionSource(TransactionSourcePort):
    """
    In-memory source for dev/testing.

    `failures` maps an address to how many calls fail before one succeeds.
    Every queried address is appended to `calls`.
    """

    def __init__(self,
                 transactions: Optional[List[RawTransaction]] = None,
                 max_per_address: int = 20,
                 failures: Optional[Dict[str, int]] = None,
                 ):
        self._txs = transactions or []
        self._max = max_per_address
        self._failures = {k.lower(): v for k, v in (failures or {}).items()}
        self.calls: List[str] = []

    def get_transactions(self, address):
        ad = address.lower()
        self.calls.append(ad)

        if self._failures.get(ad, 0) > 0:
            self._failures[ad] -= 1
            raise DataSourceError(f"static failure for {ad}")

        items = [
            t for t in self._txs
            if t.from_address.lower() == ad or t.to_address.lower() == ad
        ]
        items.sort(key=lambda x: (x.block_number.zfill(20), x.timestamp.zfill(20)), reverse=True)
        return items[: self._max]
