"""
Public-API price provider.

Fetches BTC from the CoinGecko simple-price endpoint and equities from the
Yahoo Finance chart endpoint. Neither requires an API key.
"""

import logging
import time
from typing import Optional

import requests

from mnav_pilot.data.providers.base import DataProviderError, PriceProvider


logger = logging.getLogger(__name__)


class PublicPriceProvider(PriceProvider):
    """
    Price provider using CoinGecko (crypto) and Yahoo Finance (equities).

    Features:
    - Crypto symbols are resolved through ``COIN_IDS``
    - Everything else is treated as an equity ticker
    - Transient failures are retried; a final failure yields None
    """

    COINGECKO_URL = "https://api.coingecko.com/api/v3/simple/price"
    YAHOO_CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart/{symbol}"

    COIN_IDS = {
        "BTC": "bitcoin",
        "ETH": "ethereum",
    }

    def __init__(
        self,
        timeout: float = 10.0,
        max_retries: int = 2,
        retry_delay: float = 1.0,
    ):
        """
        Initialize the provider.

        Args:
            timeout: Per-request timeout in seconds
            max_retries: Attempts per symbol
            retry_delay: Delay between attempts (seconds)

        Raises:
            DataProviderError: If timeout is not positive
        """
        if timeout <= 0:
            raise DataProviderError(f"timeout must be positive, got {timeout}")
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay

    @property
    def name(self) -> str:
        return "Public (CoinGecko/Yahoo)"

    def get_price(self, symbol: str) -> Optional[float]:
        symbol = symbol.upper().strip()
        if symbol in self.COIN_IDS:
            return self._fetch_coin_price(symbol)
        return self._fetch_stock_price(symbol)

    def _fetch_coin_price(self, symbol: str) -> Optional[float]:
        coin_id = self.COIN_IDS[symbol]
        data = self._make_request(
            self.COINGECKO_URL,
            params={"ids": coin_id, "vs_currencies": "usd"},
            symbol=symbol,
        )
        if data is None:
            return None
        try:
            return float(data[coin_id]["usd"])
        except (KeyError, TypeError, ValueError):
            logger.error("Unexpected CoinGecko response for %s: %r", symbol, data)
            return None

    def _fetch_stock_price(self, symbol: str) -> Optional[float]:
        data = self._make_request(
            self.YAHOO_CHART_URL.format(symbol=symbol),
            params={"interval": "1d", "range": "1d"},
            symbol=symbol,
            headers={"User-Agent": "Mozilla/5.0"},
        )
        if data is None:
            return None
        try:
            return float(data["chart"]["result"][0]["meta"]["regularMarketPrice"])
        except (KeyError, IndexError, TypeError, ValueError):
            logger.error("Unexpected Yahoo Finance response for %s", symbol)
            return None

    def _make_request(
        self,
        url: str,
        params: dict,
        symbol: str,
        headers: Optional[dict] = None,
    ) -> Optional[dict]:
        """
        GET a JSON document with retry logic.

        Returns:
            Parsed JSON, or None once all attempts have failed
        """
        last_error = None

        for attempt in range(self._max_retries):
            try:
                response = requests.get(
                    url, params=params, headers=headers, timeout=self._timeout
                )
                response.raise_for_status()
                return response.json()
            except requests.exceptions.Timeout:
                last_error = "Request timeout"
            except requests.exceptions.RequestException as e:
                last_error = str(e)
            except ValueError as e:
                last_error = f"Invalid JSON response: {e}"

            if attempt < self._max_retries - 1:
                time.sleep(self._retry_delay)

        logger.error("Error fetching %s price: %s", symbol, last_error)
        return None
