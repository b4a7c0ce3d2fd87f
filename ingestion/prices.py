# ingestion/prices.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import requests

log = logging.getLogger(__name__)

COINGECKO_URL = "https://api.coingecko.com/api/v3"


@dataclass(frozen=True)
class PriceQuote:
    ticker: str
    usd_price: Optional[float] = None
    market_cap_usd: Optional[float] = None


PriceLookup = Callable[[str], Optional[PriceQuote]]


class CoinGeckoPrices:
    """
    Price and market cap from the CoinGecko coin endpoint. Lookups never raise:
    any failure yields None so a missing price never blocks a holder report.
    """

    def __init__(self, base_url: str = COINGECKO_URL, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def lookup(self, ticker: str) -> Optional[PriceQuote]:
        if not ticker:
            return None
        url = f"{self.base_url}/coins/{ticker}"
        try:
            resp = requests.get(url, timeout=self.timeout)
            if resp.status_code != 200:
                log.error("Unexpected response status %s for %s", resp.status_code, ticker)
                return None
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            log.error("Error fetching market data for %s: %s", ticker, e)
            return None
        market = (data or {}).get("market_data") or {}
        return PriceQuote(
            ticker=ticker,
            usd_price=_usd(market.get("current_price")),
            market_cap_usd=_usd(market.get("market_cap")),
        )

    __call__ = lookup


def _usd(block) -> Optional[float]:
    if not isinstance(block, dict):
        return None
    v = block.get("usd")
    return float(v) if isinstance(v, (int, float)) else None


__all__ = ["PriceQuote", "PriceLookup", "CoinGeckoPrices", "COINGECKO_URL"]
