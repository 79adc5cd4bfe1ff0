from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal


class PricePort(ABC):

    @abstractmethod
    def price_at(self, timestamp: int) -> Decimal:
        raise NotImplementedError
