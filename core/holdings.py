# core/holdings.py
from __future__ import annotations
import json
import math
import time
from typing import List

from core.currency import CANONICAL_CURRENCY
from core.models import Holding
from storage.json_store import PORTFOLIO_KEY
from utils.logging import get_logger

log = get_logger("holdings")


def _new_id(taken: set) -> str:
    # millisecond timestamp; bumped on collision
    stamp = int(time.time() * 1000)
    while str(stamp) in taken:
        stamp += 1
    return str(stamp)


class HoldingsStore:
    """
    The user's holdings. Purchase prices are kept in USD.

    Every mutation rewrites the whole list under `cryptoPortfolio`; the in-memory
    list is only swapped after the write succeeded.
    """

    def __init__(self, store, currency):
        self._store = store
        self._currency = currency
        self._holdings: List[Holding] = []

    @property
    def holdings(self) -> List[Holding]:
        return list(self._holdings)

    def load(self) -> List[Holding]:
        raw = self._store.get(PORTFOLIO_KEY)
        self._holdings = self._parse(raw) if raw else []
        return self.holdings

    @staticmethod
    def _parse(raw: str) -> List[Holding]:
        try:
            data = json.loads(raw)
        except ValueError as e:
            log.error("Error parsing saved portfolio: %s", e)
            return []
        if not isinstance(data, list):
            log.error("Error parsing saved portfolio: expected a list, got %s", type(data).__name__)
            return []

        out: List[Holding] = []
        for row in data:
            try:
                out.append(Holding.from_dict(row))
            except ValueError as e:
                log.warning("Skipping holding: %s", e)
        return out

    def _persist(self, holdings: List[Holding]) -> None:
        self._store.set(PORTFOLIO_KEY, json.dumps([h.to_dict() for h in holdings]))
        self._holdings = holdings

    def add(self, coin_id: str, amount: float, purchase_price: float, currency: str) -> Holding:
        """Add a holding whose price was entered in `currency`. Raises ValueError on bad input."""
        if not coin_id:
            raise ValueError("Select a coin first.")
        try:
            amount = float(amount)
            purchase_price = float(purchase_price)
        except (TypeError, ValueError):
            raise ValueError("Amount and purchase price must be numbers.")
        if not math.isfinite(amount) or amount <= 0:
            raise ValueError("Amount must be a positive number.")
        if not math.isfinite(purchase_price) or purchase_price < 0:
            raise ValueError("Purchase price must be zero or more.")

        price_usd = self._currency.convert(purchase_price, currency, CANONICAL_CURRENCY)
        holding = Holding(
            id=_new_id({h.id for h in self._holdings}),
            coin_id=coin_id,
            amount=amount,
            purchase_price=price_usd,
        )
        self._persist(self._holdings + [holding])
        log.info("Added holding %s: %s x %s @ %.8g USD", holding.id, coin_id, amount, price_usd)
        return holding

    def remove(self, holding_id: str) -> bool:
        remaining = [h for h in self._holdings if h.id != holding_id]
        if len(remaining) == len(self._holdings):
            return False
        self._persist(remaining)
        log.info("Removed holding %s", holding_id)
        return True
