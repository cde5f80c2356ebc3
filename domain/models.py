# domain/models.py
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

STOCKS = "stocks"
ASSETS = "assets"
GOLD_ID = "gold"


# ---------- Static content (immutable per room) ----------
class Instrument(BaseModel):
  model_config = ConfigDict(frozen=True, populate_by_name=True)

  id: str
  name: Optional[str] = None
  prices: List[float] = Field(default_factory=list)
  # year the series' first element belongs to; None = pre-aligned series
  start_year: Optional[int] = Field(default=None, alias="startYear")
  # used instead of the series' last element when a year has no value
  fallback_price: Optional[float] = Field(default=None, alias="fallbackPrice")


class PriceSeries(BaseModel):
  model_config = ConfigDict(frozen=True)

  prices: List[float] = Field(default_factory=list)


class UnlockEntry(BaseModel):
  model_config = ConfigDict(frozen=True)

  category: str
  message: Optional[str] = None


class UnlockPlan(BaseModel):
  """Fixed unlocks keyed by year plus extra categories placed after them."""
  model_config = ConfigDict(frozen=True)

  fixed: Dict[int, UnlockEntry] = Field(default_factory=dict)
  extra: List[UnlockEntry] = Field(default_factory=list)


class YearEvent(BaseModel):
  model_config = ConfigDict(frozen=True)

  unlock: Optional[str] = None
  message: Optional[str] = None


class Catalog(BaseModel):
  """
  Tradable instruments supplied by the room creator.

  `stocks` is the primary list and must not be empty. `assets` holds generic
  instruments (gold, real estate, ...). `gold` is the older single-series
  form and is exposed as the asset `gold`.
  """
  model_config = ConfigDict(frozen=True, populate_by_name=True)

  stocks: List[Instrument] = Field(min_length=1)
  assets: List[Instrument] = Field(default_factory=list)
  gold: Optional[PriceSeries] = None
  unlock_plan: Optional[UnlockPlan] = Field(default=None, alias="unlockPlan")
  year_events: Dict[int, YearEvent] = Field(default_factory=dict,
                                            alias="yearEvents")
  game_start_year: Optional[int] = Field(default=None, alias="gameStartYear")

  def instruments(self, default_gold_price: Optional[float] = None
                  ) -> Iterator[Tuple[str, Instrument]]:
    """Yield (category, instrument) for every priced instrument."""
    for inst in self.stocks:
      yield STOCKS, inst
    for inst in self.assets:
      yield ASSETS, inst
    if self.gold is not None and not any(a.id == GOLD_ID for a in self.assets):
      yield ASSETS, Instrument(id=GOLD_ID,
                               name="Gold",
                               prices=self.gold.prices,
                               fallback_price=default_gold_price)

  def category_of(self, instrument_id: str) -> Optional[str]:
    for category, inst in self.instruments():
      if inst.id == instrument_id:
        return category
    return None


# ---------- Per-player state ----------
@dataclass
class Holding:
  quantity: float = 0
  avg_price: float = 0.0

  def to_payload(self) -> dict:
    return {"quantity": self.quantity, "avgPrice": round(self.avg_price, 4)}


@dataclass
class FixedDeposit:
  principal: float
  rate: float  # annual %
  term_months: int
  months_elapsed: int = 0
  profit: float = 0.0

  @property
  def matured(self) -> bool:
    return self.months_elapsed >= self.term_months

  def to_payload(self) -> dict:
    return {
        "amount": round(self.principal, 2),
        "roi": self.rate,
        "duration": self.term_months,
        "monthsElapsed": self.months_elapsed,
        "profit": round(self.profit, 2),
    }


@dataclass(frozen=True)
class ScheduledEvent:
  kind: str  # unlock | gain | loss
  message: str
  unlock: Optional[str] = None
  amount: Optional[int] = None

  def to_payload(self) -> dict:
    payload = {"kind": self.kind, "message": self.message}
    if self.unlock is not None:
      payload["unlock"] = self.unlock
    if self.amount is not None:
      payload["amount"] = self.amount
    return payload


@dataclass(frozen=True)
class TradeRecord:
  kind: str  # buy | sell | savings | fixed-deposit | mutual-fund | ppf
  player_id: str
  player_name: str
  month: int
  instrument_id: Optional[str] = None
  quantity: Optional[float] = None
  price: Optional[float] = None
  amount: float = 0.0
  timestamp: float = field(default_factory=time.time)

  def to_payload(self) -> dict:
    return {
        "type": self.kind,
        "playerId": self.player_id,
        "playerName": self.player_name,
        "instrumentId": self.instrument_id,
        "quantity": self.quantity,
        "price": self.price,
        "amount": round(self.amount, 2),
        "month": self.month,
        "timestamp": int(self.timestamp * 1000),
    }


class PlayerState:

  def __init__(self, player_id: str, name: str, starting_cash: float):
    self.id = player_id
    self.name = name
    self.is_host = False
    self.cash = float(starting_cash)
    # holdings[instrument_id] = Holding; rows with zero quantity are removed
    self.holdings: Dict[str, Holding] = {}
    # non-traded balances
    self.savings: float = 0.0
    self.mutual_funds: float = 0.0
    self.ppf: float = 0.0
    self.fixed_deposits: List[FixedDeposit] = []
    # year -> event, assigned once at game start
    self.scheduled_events: Optional[Mapping[int, ScheduledEvent]] = None
    # last figures the player's own client computed; display hint only
    self.reported_net_worth: Optional[float] = None
    self.reported_cash: Optional[float] = None
