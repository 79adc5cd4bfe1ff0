from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from ethgraph.core.dto import RawTransaction


class TransactionSourcePort(ABC):
    """
    Abstract Class for fetching the transactions touching one address.
    """

    @abstractmethod
    def get_transactions(self, address: str) -> List[RawTransaction]:
        """
        Most-recent-first, bounded list of transactions sent from or to `address`.

        Raises DataSourceError when the call fails or the payload cannot be decoded.
        """
        raise NotImplementedError
