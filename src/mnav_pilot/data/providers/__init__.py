"""
Price providers for current market quotes.
"""

from mnav_pilot.data.providers.base import (
    DataProviderError,
    PriceProvider,
    StaticPriceProvider,
)
from mnav_pilot.data.providers.public import PublicPriceProvider

__all__ = [
    "DataProviderError",
    "PriceProvider",
    "StaticPriceProvider",
    "PublicPriceProvider",
]
