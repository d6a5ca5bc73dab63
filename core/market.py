# core/market.py
from __future__ import annotations
import threading
from typing import Callable, Dict, List, Optional

import requests

from core.models import Coin
from services.coingecko_client import DEFAULT_PER_PAGE, get_markets
from utils.logging import get_logger
from utils.timeutils import utc_now_iso

log = get_logger("market")


class MarketDataCache:
    """
    Latest page of coin market data, keyed by coin id.

    Each refresh takes a sequence number; when two refreshes overlap only the
    most recently started one may replace the snapshot.
    """

    def __init__(self, fetch_markets: Callable[..., list] = get_markets,
                 per_page: int = DEFAULT_PER_PAGE):
        self._fetch = fetch_markets
        self.per_page = per_page
        self._coins: List[Coin] = []
        self._by_id: Dict[str, Coin] = {}
        self.quote_currency: Optional[str] = None
        self.fetched_at: Optional[str] = None
        self._seq = 0
        self._lock = threading.Lock()

    @property
    def coins(self) -> List[Coin]:
        return list(self._coins)

    def refresh(self, quote_currency: str) -> List[Coin]:
        with self._lock:
            self._seq += 1
            seq = self._seq

        try:
            rows = self._fetch(quote_currency.lower(), per_page=self.per_page, page=1)
            coins = [Coin.from_api(row) for row in rows]
        except (requests.RequestException, RuntimeError, ValueError) as e:
            log.warning("Error fetching coins in %s: %s", quote_currency.upper(), e)
            return self.coins

        with self._lock:
            if seq != self._seq:
                log.info("Discarding %s prices from superseded refresh #%d.", quote_currency.upper(), seq)
                return list(self._coins)
            self._coins = coins
            self._by_id = {c.id: c for c in coins}
            self.quote_currency = quote_currency.upper()
            self.fetched_at = utc_now_iso()
        log.info("Cached %d coins quoted in %s.", len(coins), self.quote_currency)
        return list(coins)

    def find_by_id(self, coin_id: str) -> Optional[Coin]:
        return self._by_id.get(coin_id)

    def search(self, term: str, limit: Optional[int] = None) -> List[Coin]:
        """Coins whose name or symbol contains `term` (case-insensitive), in rank order."""
        needle = (term or "").lower()
        hits = [c for c in self._coins if needle in c.name.lower() or needle in c.symbol.lower()]
        return hits[:limit] if limit is not None else hits

    def resolve(self, ref: str) -> Optional[Coin]:
        """Look up by exact id, then by symbol (btc -> bitcoin)."""
        coin = self.find_by_id(ref)
        if coin is not None:
            return coin
        ref = ref.lower()
        return next((c for c in self._coins if c.symbol.lower() == ref), None)
