# domain/execution.py
from __future__ import annotations

from typing import Optional, Tuple

from loguru import logger

from domain.errors import (GameNotActive, InstrumentNotFound,
                           InsufficientFunds, InsufficientShares,
                           InvalidRequest)
from domain.models import FixedDeposit, Holding, PlayerState, TradeRecord
from domain.registry import SessionRegistry
from domain.room import PLAYING, Room

EPSILON = 1e-9


def require_active(registry: SessionRegistry, code: Optional[str],
                   player_id: str) -> Tuple[Room, PlayerState]:
  """Common preconditions of every in-game action."""
  room = registry.require_room(code)
  if room.status != PLAYING:
    raise GameNotActive()
  return room, room.require_player(player_id)


def _positive(value: float, what: str) -> None:
  if not value or value <= 0:
    raise InvalidRequest(f"{what} must be positive")


def _price_of(room: Room, instrument_id: str) -> float:
  price = room.current_prices.get(instrument_id)
  if not price or price <= 0:
    raise InstrumentNotFound(f"Instrument {instrument_id!r} not available")
  return price


def _log(room: Room, pl: PlayerState, kind: str, **kw) -> TradeRecord:
  record = TradeRecord(kind=kind,
                       player_id=pl.id,
                       player_name=pl.name,
                       month=room.current_month,
                       **kw)
  room.event_log.append(record)
  return record


def buy_instrument(room: Room, pl: PlayerState, instrument_id: str,
                   quantity: float) -> TradeRecord:
  """
  Market BUY of `quantity` units at the room's current price.

  Validates everything before touching state, then debits cash and extends
  the position at a volume-weighted average cost.
  """
  _positive(quantity, "Quantity")
  price = _price_of(room, instrument_id)
  cost = price * quantity
  if cost > pl.cash:
    raise InsufficientFunds()

  pl.cash -= cost
  pos = pl.holdings.get(instrument_id)
  if pos is None:
    pos = pl.holdings[instrument_id] = Holding()
  total = pos.quantity + quantity
  pos.avg_price = (pos.avg_price * pos.quantity + cost) / total
  pos.quantity = total

  logger.debug("Room {} - {} bought {} {} @ {}", room.code, pl.name, quantity,
               instrument_id, price)
  return _log(room, pl, "buy", instrument_id=instrument_id, quantity=quantity,
              price=price, amount=cost)


def sell_instrument(room: Room, pl: PlayerState, instrument_id: str,
                    quantity: float) -> TradeRecord:
  _positive(quantity, "Quantity")
  pos = pl.holdings.get(instrument_id)
  if pos is None or pos.quantity < quantity:
    raise InsufficientShares()
  price = _price_of(room, instrument_id)

  revenue = price * quantity
  pl.cash += revenue
  pos.quantity -= quantity
  if pos.quantity < EPSILON:
    del pl.holdings[instrument_id]

  logger.debug("Room {} - {} sold {} {} @ {}", room.code, pl.name, quantity,
               instrument_id, price)
  return _log(room, pl, "sell", instrument_id=instrument_id, quantity=quantity,
              price=price, amount=revenue)


def _debit(pl: PlayerState, amount: float) -> None:
  _positive(amount, "Amount")
  if amount > pl.cash:
    raise InsufficientFunds()
  pl.cash -= amount


def invest_savings(room: Room, pl: PlayerState, amount: float) -> TradeRecord:
  _debit(pl, amount)
  pl.savings += amount
  return _log(room, pl, "savings", amount=amount)


def invest_mutual_fund(room: Room, pl: PlayerState,
                       amount: float) -> TradeRecord:
  _debit(pl, amount)
  pl.mutual_funds += amount
  return _log(room, pl, "mutual-fund", amount=amount)


def invest_ppf(room: Room, pl: PlayerState, amount: float) -> TradeRecord:
  _debit(pl, amount)
  pl.ppf += amount
  return _log(room, pl, "ppf", amount=amount)


def invest_fixed_deposit(room: Room, pl: PlayerState, amount: float,
                         term_months: int) -> TradeRecord:
  rate = room.settings.fixed_deposit_rates.get(term_months)
  if rate is None:
    terms = sorted(room.settings.fixed_deposit_rates)
    raise InvalidRequest(f"Fixed deposit term must be one of {terms} months")
  _debit(pl, amount)
  pl.fixed_deposits.append(
      FixedDeposit(principal=amount, rate=rate, term_months=term_months))
  return _log(room, pl, "fixed-deposit", amount=amount)


def report_net_worth(room: Room, pl: PlayerState, net_worth: float,
                     cash: Optional[float] = None) -> None:
  # stored as reported; only used when the room trusts client figures
  pl.reported_net_worth = net_worth
  pl.reported_cash = cash
