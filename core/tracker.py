# core/tracker.py
from __future__ import annotations
import time
from typing import Callable, List, Optional

from core.currency import RATES_REFRESH_SEC, CurrencyService
from core.holdings import HoldingsStore
from core.market import MarketDataCache
from core.models import AllocationSlice, Holding, PortfolioLineItem, PortfolioSummary
from core import portfolio
from scheduler.runner import Interval
from services.coingecko_client import DEFAULT_PER_PAGE, get_markets
from services.exchange_rate_client import get_latest_rates
from utils.logging import get_logger

log = get_logger("tracker")


class PortfolioTracker:
    """
    Wires the currency service, holdings store and market cache together.

    Switching currency re-quotes the market cache; everything derived
    (line items, totals, allocation) is recomputed on demand.
    """

    def __init__(self, store,
                 fetch_markets: Callable[..., list] = get_markets,
                 fetch_rates: Callable[[], dict] = get_latest_rates,
                 per_page: int = DEFAULT_PER_PAGE,
                 market_interval_sec: float = 600,
                 rates_interval_sec: float = RATES_REFRESH_SEC,
                 clock: Callable[[], float] = time.monotonic):
        self.currency = CurrencyService(store, fetch_rates)
        self.holdings = HoldingsStore(store, self.currency)
        self.market = MarketDataCache(fetch_markets, per_page=per_page)
        self._market_timer = Interval(market_interval_sec)
        self._rates_timer = Interval(rates_interval_sec)
        self._clock = clock
        self.currency.on_change(self._on_currency_change)

    def _on_currency_change(self, code: str) -> None:
        log.info("Currency switched to %s; re-quoting market data.", code)
        self.refresh_market()

    # ---- refresh triggers ----

    def start(self) -> None:
        self.holdings.load()
        self.refresh_rates()
        self.refresh_market()

    def refresh_rates(self) -> bool:
        self._rates_timer.mark(self._clock())
        return self.currency.refresh_rates()

    def refresh_market(self) -> None:
        self._market_timer.mark(self._clock())
        self.market.refresh(self.currency.currency)

    def tick(self, now: Optional[float] = None, slack: float = 0.0) -> None:
        now = self._clock() if now is None else now
        if self._rates_timer.due(now, slack):
            self._rates_timer.mark(now)
            self.currency.refresh_rates()
        if self._market_timer.due(now, slack):
            self._market_timer.mark(now)
            self.market.refresh(self.currency.currency)

    # ---- user actions ----

    def set_currency(self, code: str) -> bool:
        return self.currency.set_currency(code)

    def add_holding(self, coin_ref: str, amount: float, purchase_price: float) -> Holding:
        """`purchase_price` is per coin, in the active currency."""
        coin = self.market.resolve(coin_ref) if coin_ref else None
        if coin is None:
            raise ValueError(f"Unknown coin '{coin_ref}'. Try `coins --search {coin_ref}`.")
        return self.holdings.add(coin.id, amount, purchase_price, self.currency.currency)

    def remove_holding(self, holding_id: str) -> bool:
        return self.holdings.remove(holding_id)

    # ---- derived state ----

    @property
    def quote_currency(self) -> str:
        # prices are denominated in whatever the last applied fetch asked for
        return self.market.quote_currency or self.currency.currency

    def line_items(self) -> List[PortfolioLineItem]:
        return portfolio.compute_line_items(
            self.holdings.holdings, self.market.coins, self.quote_currency, self.currency.convert
        )

    def summary(self) -> PortfolioSummary:
        return portfolio.aggregate(self.line_items())

    def allocation(self) -> List[AllocationSlice]:
        items = self.line_items()
        return portfolio.allocation(items, portfolio.aggregate(items).total_value)

    def report(self) -> dict:
        return portfolio.valuate(
            self.holdings.holdings, self.market.coins, self.quote_currency, self.currency.convert
        )
