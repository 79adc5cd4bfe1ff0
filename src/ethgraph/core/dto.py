from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class RawTransaction:
    """One `txlist` row as delivered by the indexer (string fields, unvalidated)."""

    tx_hash: str
    block_number: str
    timestamp: str
    from_address: str
    to_address: str
    value: str              # wei, decimal string
    is_error: str = "0"
    txreceipt_status: str = "1"
    contract_address: str = ""

    @property
    def is_contract_creation(self) -> bool:
        return not self.to_address or bool(self.contract_address)

    @property
    def is_failed(self) -> bool:
        return self.is_error == "1" or self.txreceipt_status == "0"


@dataclass(frozen=True)
class PriceRecord:
    period_start: int       # unix seconds, bucket is [start, start + 3600)
    price_usd: Decimal
