"""
Abstract base class for price providers.

Defines the interface that all price sources implement, so the monitor can
be fed live quotes, cached quotes or fixed prices in tests.
"""

from abc import ABC, abstractmethod
from typing import Optional


class DataProviderError(Exception):
    """Raised when a data provider is misconfigured or cannot be used."""
    pass


class PriceProvider(ABC):
    """
    Abstract base class for current-price providers.

    A provider never raises for an unavailable quote: the symbol maps to
    None and the valuation layer decides whether that is fatal.
    """

    @abstractmethod
    def get_price(self, symbol: str) -> Optional[float]:
        """
        Fetch the latest price for a symbol.

        Args:
            symbol: Ticker symbol

        Returns:
            Price in USD, or None if it could not be fetched
        """
        pass

    def get_prices(self, symbols: list[str]) -> dict[str, Optional[float]]:
        """
        Fetch latest prices for several symbols.

        Args:
            symbols: Ticker symbols

        Returns:
            Dictionary mapping symbol to price (None when unavailable)
        """
        return {s.upper(): self.get_price(s.upper()) for s in symbols}

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the name of this data provider."""
        pass


class StaticPriceProvider(PriceProvider):
    """Provider serving a fixed price map."""

    def __init__(self, prices: dict[str, Optional[float]]):
        self._prices = {k.upper(): v for k, v in prices.items()}

    @property
    def name(self) -> str:
        return "Static"

    def get_price(self, symbol: str) -> Optional[float]:
        return self._prices.get(symbol.upper())
