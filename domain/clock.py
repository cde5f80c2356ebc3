# domain/clock.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from loguru import logger

from domain.events import UNLOCK
from domain.models import ScheduledEvent
from domain.portfolio import apply_monthly_yield
from domain.pricing import snapshot_prices
from domain.room import PLAYING, Room


@dataclass
class MonthReport:
  month: int
  year: int
  month_in_year: int
  # (player_id, event) fired this month
  events: List[Tuple[str, ScheduledEvent]] = field(default_factory=list)
  unlocked: List[str] = field(default_factory=list)
  finished: bool = False


def apply_event(room: Room, player_id: str, event: ScheduledEvent) -> bool:
  """Apply one scheduled event; True when it unlocked something new."""
  if event.kind == UNLOCK:
    return room.unlock(event.unlock)
  pl = room.players[player_id]
  # losses take what is there, never more
  pl.cash = max(0.0, pl.cash + (event.amount or 0))
  return False


def advance_month(room: Room) -> Optional[MonthReport]:
  """
  Advance a playing room by one simulated month.

  Returns None (and changes nothing) unless the room is playing. Reaching
  `total_months` only flags the report; ending the game is the caller's job.
  """
  if room.status != PLAYING:
    return None

  room.current_month += 1
  year, month_in_year = divmod(room.current_month, 12)
  report = MonthReport(room.current_month, year, month_in_year)

  room.current_prices = snapshot_prices(room)

  for pl in room.players.values():
    apply_monthly_yield(pl, room.settings)

  if month_in_year == 0 and year > 0:
    for pid, pl in list(room.players.items()):
      event = (pl.scheduled_events or {}).get(year)
      if event is None:
        continue
      if apply_event(room, pid, event):
        report.unlocked.append(event.unlock)
        logger.info("Room {} - unlocked {}", room.code, event.unlock)
      report.events.append((pid, event))
    logger.info("Room {} - year {} complete", room.code, year)

  report.finished = room.current_month >= room.settings.total_months
  return report
