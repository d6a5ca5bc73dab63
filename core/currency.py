# core/currency.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import requests
from babel.numbers import format_currency

from services.exchange_rate_client import get_latest_rates
from storage.json_store import CURRENCY_KEY
from utils.logging import get_logger
from utils.timeutils import utc_now_iso

log = get_logger("currency")

CANONICAL_CURRENCY = "USD"


@dataclass(frozen=True)
class CurrencyInfo:
    symbol: str
    locale: str


# Insertion order is the order offered to the user
CURRENCIES: Dict[str, CurrencyInfo] = {
    "USD": CurrencyInfo("$", "en-US"),
    "EUR": CurrencyInfo("€", "de-DE"),
    "GBP": CurrencyInfo("£", "en-GB"),
    "INR": CurrencyInfo("₹", "en-IN"),
    "CAD": CurrencyInfo("C$", "en-CA"),
}

RATES_REFRESH_SEC = 30 * 60


def format_compact(value: float) -> str:
    """1234567 -> '1.23M'. Used for market cap and volume columns."""
    if value >= 1e9:
        return f"{value / 1e9:.2f}B"
    if value >= 1e6:
        return f"{value / 1e6:.2f}M"
    if value >= 1e3:
        return f"{value / 1e3:.2f}K"
    return f"{value:.2f}"


class CurrencyService:
    """
    Holds the active display currency and the latest USD-pivoted rate table.

    Rates are read as `amount_in_code = amount_in_usd * rates[code]`. Until the
    first successful refresh the table is empty, so every conversion is a no-op.
    """

    def __init__(self, store, fetch_rates: Callable[[], Dict[str, float]] = get_latest_rates):
        self._store = store
        self._fetch_rates = fetch_rates
        self._rates: Dict[str, float] = {}
        self._listeners: List[Callable[[str], None]] = []
        self.loading = True
        self.rates_updated_at: Optional[str] = None

        saved = store.get(CURRENCY_KEY)
        self._currency = saved if saved in CURRENCIES else CANONICAL_CURRENCY

    # ---- selection ----

    @property
    def currency(self) -> str:
        return self._currency

    def set_currency(self, code: str) -> bool:
        """Select and persist `code`. Unsupported codes are ignored (returns False)."""
        if code not in CURRENCIES:
            log.debug("Ignoring unsupported currency %r", code)
            return False
        self._store.set(CURRENCY_KEY, code)
        changed = code != self._currency
        self._currency = code
        if changed:
            for listener in list(self._listeners):
                listener(code)
        return True

    def on_change(self, listener: Callable[[str], None]) -> None:
        self._listeners.append(listener)

    @staticmethod
    def supported_currencies() -> List[Tuple[str, str]]:
        return [(code, info.symbol) for code, info in CURRENCIES.items()]

    # ---- rates ----

    @property
    def rates(self) -> Dict[str, float]:
        return dict(self._rates)

    def refresh_rates(self) -> bool:
        """Fetch a new rate table. On failure the previous table stays in place."""
        try:
            rates = self._fetch_rates()
        except (requests.RequestException, ValueError, RuntimeError) as e:
            log.warning("Exchange-rate refresh failed (%s). Keeping previous rates.", e)
            return False
        self._rates = dict(rates)
        self.loading = False
        self.rates_updated_at = utc_now_iso()
        log.info("Exchange rates updated (%d currencies).", len(self._rates))
        return True

    def convert(self, amount: float, from_code: str, to_code: str) -> float:
        if from_code == to_code:
            return amount
        # a missing (or zero) rate counts as 1
        usd_amount = amount / (self._rates.get(from_code) or 1)
        return usd_amount * (self._rates.get(to_code) or 1)

    # ---- formatting ----

    def format(self, amount: float, code: Optional[str] = None) -> str:
        code = code or self._currency
        info = CURRENCIES.get(code)
        if info is None:
            return f"{amount:.2f}"
        return format_currency(amount, code, locale=info.locale.replace("-", "_"))

    def display(self, amount_usd: float, code: Optional[str] = None) -> str:
        """Render a USD amount in `code` (default: the active currency)."""
        code = code or self._currency
        return self.format(self.convert(amount_usd, CANONICAL_CURRENCY, code), code)

    format_compact = staticmethod(format_compact)
