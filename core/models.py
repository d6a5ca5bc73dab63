# core/models.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional


def _num(value: Any) -> float:
    # the markets endpoint sends null for unknown figures
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Expected a number, got {value!r}") from e


@dataclass(frozen=True)
class Coin:
    """One row of the markets endpoint, priced in the quote currency of the fetch."""
    id: str
    symbol: str
    name: str
    image_url: str
    current_price: float
    price_change_percent_24h: float
    market_cap: float
    total_volume: float

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "Coin":
        if not isinstance(row, dict) or not row.get("id"):
            raise ValueError(f"Malformed coin record: {row!r}")
        return cls(
            id=str(row["id"]),
            symbol=str(row.get("symbol") or ""),
            name=str(row.get("name") or ""),
            image_url=str(row.get("image") or ""),
            current_price=_num(row.get("current_price")),
            price_change_percent_24h=_num(row.get("price_change_percentage_24h")),
            market_cap=_num(row.get("market_cap")),
            total_volume=_num(row.get("total_volume")),
        )


@dataclass(frozen=True)
class Holding:
    id: str
    coin_id: str
    amount: float
    purchase_price: float  # USD, regardless of the currency it was entered in

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "coinId": self.coin_id,
            "amount": self.amount,
            "purchasePrice": self.purchase_price,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Holding":
        try:
            return cls(
                id=str(raw["id"]),
                coin_id=str(raw["coinId"]),
                amount=float(raw["amount"]),
                purchase_price=float(raw["purchasePrice"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed holding record: {raw!r}") from e


@dataclass(frozen=True)
class PortfolioLineItem:
    holding: Holding
    coin: Coin
    purchase_price: float  # converted into the quote currency
    current_value: float
    profit_loss: float
    profit_loss_percent: float


@dataclass(frozen=True)
class PortfolioSummary:
    total_value: float = 0.0
    total_profit_loss: float = 0.0
    total_profit_loss_percent: float = 0.0


@dataclass(frozen=True)
class AllocationSlice:
    coin_symbol: str
    value: float
    percentage: float
    name: Optional[str] = None
