from typing import Optional


class EthGraphError(Exception):
    pass


class ConfigError(EthGraphError):
    pass


class DataSourceError(EthGraphError):
    pass


class RateLimitError(DataSourceError):
    pass


class RetryExhaustedError(EthGraphError):
    """Raised when an address could not be fetched within the retry budget."""

    def __init__(self, address: str, attempts: int, last_error: Optional[Exception]) -> None:
        super().__init__(f"Fetching {address} failed after {attempts} attempt(s): {last_error}")
        self.address = address
        self.attempts = attempts
        self.last_error = last_error


class MalformedTransactionError(EthGraphError):
    pass


class PriceLookupError(EthGraphError):
    pass


class PriceDataError(EthGraphError):
    pass


class InvalidPriceSeriesError(PriceDataError):
    pass


class EmptyGraphError(EthGraphError):
    pass


class GraphPersistenceError(EthGraphError):
    pass
