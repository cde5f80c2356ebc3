# domain/pricing.py
from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional

from domain.models import Instrument

if TYPE_CHECKING:
  from domain.room import Room


def _at(prices: List[float], index: int) -> Optional[float]:
  if 0 <= index < len(prices):
    return prices[index]
  return None


def current_price(instrument: Instrument, start_year: int, month: int) -> float:
  """
  Price of `instrument` at simulated `month` of a game whose month 0 is
  `start_year` in the instrument's year-indexed history.

  Inside a year the price moves linearly from this year's value towards next
  year's. Without a next value the year's own value is used, then the
  fallback (or the last known value), then 0. Pure: same inputs, same price.
  """
  year_offset, month_in_year = divmod(month, 12)
  year = start_year + year_offset
  if instrument.start_year is not None:
    index = year - instrument.start_year
  else:
    index = year

  prices = instrument.prices
  start = _at(prices, index)
  end = _at(prices, index + 1)
  if start is not None and end is not None and month_in_year:
    return round(start + (end - start) * month_in_year / 12)

  if start is not None:
    return start
  if instrument.fallback_price is not None:
    return instrument.fallback_price
  if prices:
    return prices[-1]
  return 0


def snapshot_prices(room: "Room") -> Dict[str, float]:
  """Current price of every catalog instrument for the room's clock."""
  return {
      inst.id: current_price(inst, room.start_year, room.current_month)
      for _, inst in room.catalog.instruments(room.settings.default_gold_price)
  }
