import logging
from typing import Any, Dict, List, Optional

import requests

from ethgraph.config.settings import (
    ETHERSCAN_API_KEY,
    ETHERSCAN_CHAIN_ID,
    ETHERSCAN_BASE_URL,
    ETHERSCAN_REQUESTS_PER_SEC,
    ETHERSCAN_TIMEOUT_SEC,
    ETHERSCAN_START_BLOCK,
    ETHERSCAN_END_BLOCK,
    MAX_TRANSACTIONS_FROM_EACH_ADDRESS,
)

from ethgraph.adapters.chain.rate_limiter import SimpleRateLimiter
from ethgraph.core.errors import DataSourceError, RateLimitError
from ethgraph.ports.transaction_source_port import TransactionSourcePort
from ethgraph.core.dto import RawTransaction

log = logging.getLogger(__name__)


class EtherscanTransactionSource(TransactionSourcePort):
    """
    `account/txlist` client. One HTTP attempt per call; retrying is up to the caller.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        max_per_address: int = MAX_TRANSACTIONS_FROM_EACH_ADDRESS,
        base_url: str = ETHERSCAN_BASE_URL,
        chain_id: int = ETHERSCAN_CHAIN_ID,
        timeout_sec: int = ETHERSCAN_TIMEOUT_SEC,
        requests_per_sec: float = ETHERSCAN_REQUESTS_PER_SEC,
        session: Optional[requests.Session] = None,
    ) -> None:
        if max_per_address <= 0:
            raise ValueError("max_per_address must be > 0")
        self._api_key = api_key or ETHERSCAN_API_KEY
        self._chainid = chain_id
        self._base_url = base_url
        self._timeout = timeout_sec
        self._max_per_address = max_per_address

        self._rl = SimpleRateLimiter(requests_per_sec)
        self._session = session or requests.Session()

    # ---------- internal ----------

    def _call(self, params: Dict[str, Any]) -> Dict[str, Any]:
        req = dict(params)
        req["apikey"] = self._api_key
        req["chainid"] = str(self._chainid)

        self._rl.wait()
        try:
            resp = self._session.get(self._base_url, params=req, timeout=self._timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise DataSourceError(f"Etherscan request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise DataSourceError(f"Failed to decode JSON response: {resp.text[:200]}") from e

        if not isinstance(data, dict):
            raise DataSourceError(f"Invalid Etherscan response: {data!r}")
        return data

    @staticmethod
    def _list_result(data: Dict[str, Any]) -> list:
        status = str(data.get("status", "1"))
        message = str(data.get("message", "OK"))
        res = data.get("result")

        if isinstance(res, list):
            # status 0 + empty list is "No transactions found"
            return res
        if status == "0" and "rate" in f"{message} {res}".lower():
            raise RateLimitError(f"{message}: {res}")
        raise DataSourceError(f"Etherscan error ({message}): {res}")

    @staticmethod
    def _row(r: Any) -> RawTransaction:
        if not isinstance(r, dict):
            raise DataSourceError(f"Invalid transaction row: {r!r}")
        return RawTransaction(
            tx_hash=str(r.get("hash") or ""),
            block_number=str(r.get("blockNumber") or ""),
            timestamp=str(r.get("timeStamp") or ""),
            from_address=str(r.get("from") or "").lower(),
            to_address=str(r.get("to") or "").lower(),
            value=str(r.get("value") or ""),
            is_error=str(r.get("isError") or "0"),
            txreceipt_status=str(r.get("txreceipt_status") or ""),
            contract_address=str(r.get("contractAddress") or "").lower(),
        )

    # ---------- port methods ----------

    def get_transactions(self, address: str) -> List[RawTransaction]:
        data = self._call({
            "module": "account",
            "action": "txlist",
            "address": address,
            "startblock": ETHERSCAN_START_BLOCK,
            "endblock": ETHERSCAN_END_BLOCK,
            "page": 1,
            "offset": self._max_per_address,
            "sort": "desc",
        })
        rows = [self._row(r) for r in self._list_result(data)]
        log.debug("Etherscan returned %d transaction(s) for %s", len(rows), address)
        return rows[: self._max_per_address]
