"""Market data error hierarchy.

All fetch-related exceptions inherit from MarketDataError, enabling
clean exception handling at the feed boundary. Only ProviderUnavailable
(and RateLimited) or SymbolNotFound ever reach a chart pane; NoData and
StaleRequestError are consumed inside the fetch layer.
"""

from __future__ import annotations


class MarketDataError(Exception):
    """Base exception for all market data errors."""


class ProviderUnavailable(MarketDataError):
    """HTTP failure, network failure or unparseable response from a provider.

    Stores the provider name and, for HTTP failures, the status code.
    """

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
    ) -> None:
        self.provider = provider
        self.message = message
        self.status_code = status_code
        if status_code is not None:
            text = f"{provider} error {status_code}: {message}"
        else:
            text = f"{provider} error: {message}"
        super().__init__(text)


class RateLimited(ProviderUnavailable):
    """Provider kept answering HTTP 429 after all retry attempts."""

    def __init__(self, provider: str, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(
            provider,
            f"rate limited after {attempts} attempts",
            status_code=429,
        )


class NoData(MarketDataError):
    """Valid response with an empty or insufficient series.

    Triggers the next provider in the fallback chain; never surfaced.
    """

    def __init__(self, provider: str, message: str = "no candles returned") -> None:
        self.provider = provider
        self.message = message
        super().__init__(f"{provider}: {message}")


class SymbolNotFound(MarketDataError):
    """Every provider in the chain was exhausted without a hard error."""

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(f"Symbol {symbol} not found on any exchange")


class StaleRequestError(MarketDataError):
    """A newer request superseded this one; its result must be dropped."""
