# core/portfolio.py
"""Valuation of holdings against the cached market page.

All functions are pure: callers recompute from scratch whenever holdings,
market data or the active currency change.
"""
from __future__ import annotations
from typing import Callable, Iterable, List, Mapping, Union

from core.currency import CANONICAL_CURRENCY
from core.models import (
    AllocationSlice, Coin, Holding, PortfolioLineItem, PortfolioSummary
)

Converter = Callable[[float, str, str], float]


def _index(coins: Union[Iterable[Coin], Mapping[str, Coin]]) -> Mapping[str, Coin]:
    if isinstance(coins, Mapping):
        return coins
    return {c.id: c for c in coins}


def compute_line_items(holdings: Iterable[Holding],
                       coins: Union[Iterable[Coin], Mapping[str, Coin]],
                       quote_currency: str,
                       convert: Converter) -> List[PortfolioLineItem]:
    """
    Join holdings with their coins. Holdings without a coin in `coins` are left out.
    Purchase prices (USD) are converted into `quote_currency`, the currency the
    coin prices are denominated in.
    """
    by_id = _index(coins)
    items = []
    for h in holdings:
        coin = by_id.get(h.coin_id)
        if coin is None:
            continue
        cost = convert(h.purchase_price, CANONICAL_CURRENCY, quote_currency)
        value = h.amount * coin.current_price
        pnl = value - h.amount * cost
        pnl_pct = (coin.current_price - cost) / cost * 100 if cost else 0.0
        items.append(PortfolioLineItem(
            holding=h,
            coin=coin,
            purchase_price=cost,
            current_value=value,
            profit_loss=pnl,
            profit_loss_percent=pnl_pct,
        ))
    return items


def aggregate(items: Iterable[PortfolioLineItem]) -> PortfolioSummary:
    total_value = 0.0
    total_pnl = 0.0
    for item in items:
        total_value += item.current_value
        total_pnl += item.profit_loss
    pct = total_pnl / total_value * 100 if total_value > 0 else 0.0
    return PortfolioSummary(total_value, total_pnl, pct)


def allocation(items: Iterable[PortfolioLineItem], total_value: float) -> List[AllocationSlice]:
    if total_value <= 0:
        return []
    return [
        AllocationSlice(
            coin_symbol=item.coin.symbol.upper(),
            value=item.current_value,
            percentage=item.current_value / total_value * 100,
            name=item.coin.name,
        )
        for item in items
    ]


def valuate(holdings, coins, quote_currency: str, convert: Converter) -> dict:
    """Line items, totals and allocation in one report."""
    items = compute_line_items(holdings, coins, quote_currency, convert)
    summary = aggregate(items)
    return {
        "quote_currency": quote_currency,
        "items": items,
        "summary": summary,
        "allocation": allocation(items, summary.total_value),
    }
