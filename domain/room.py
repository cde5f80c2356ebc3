# domain/room.py
from __future__ import annotations

import asyncio
import random
import time
from types import MappingProxyType
from typing import Dict, List, Optional

from loguru import logger

from config import GameSettings
from domain.errors import (GameAlreadyStarted, GameEnded, NotEnoughPlayers,
                           NotHost, PlayerNotFound)
from domain.events import generate_schedule, unlock_plan_for
from domain.models import Catalog, PlayerState, TradeRecord
from domain.pricing import snapshot_prices

WAITING = "waiting"
PLAYING = "playing"
ENDED = "ended"


class Room:

  def __init__(self, code: str, host_id: str, catalog: Catalog,
               start_year: int, settings: GameSettings):
    self.code = code
    self.host_id = host_id
    self.catalog = catalog
    self.start_year = start_year
    self.settings = settings
    self.status = WAITING  # waiting | playing | ended
    # roster
    self.players: Dict[str, PlayerState] = {}
    # clock / market
    self.current_month = 0
    self.current_prices: Dict[str, float] = {}
    self.available_investments: List[str] = [settings.base_category]
    self.event_log: List[TradeRecord] = []
    # per-player schedules derive from this; never sent to clients
    self.seed = random.randint(1, 10_000)
    # timing
    self.started_at: Optional[float] = None
    self.ended_at: Optional[float] = None
    # owned async handles
    self.tick_task: Optional[asyncio.Task] = None
    self.cleanup_handle: Optional[asyncio.TimerHandle] = None

  # ---------- Roster ----------
  def add_player(self, player_id: str, name: str) -> PlayerState:
    player = PlayerState(player_id, name, self.settings.starting_capital)
    player.is_host = player_id == self.host_id
    self.players[player_id] = player
    return player

  def require_player(self, player_id: str) -> PlayerState:
    player = self.players.get(player_id)
    if player is None:
      raise PlayerNotFound()
    return player

  def remove_player(self, player_id: str) -> Optional[str]:
    """Drop a player; returns the new host id if the host role moved."""
    self.players.pop(player_id, None)
    if player_id != self.host_id or not self.players:
      return None
    self.host_id = next(iter(self.players))
    self.players[self.host_id].is_host = True
    logger.info("Room {} - new host {}", self.code,
                self.players[self.host_id].name)
    return self.host_id

  # ---------- Lifecycle ----------
  def start(self, requester_id: str) -> None:
    if requester_id != self.host_id:
      raise NotHost("Only host can start the game")
    if self.status == ENDED:
      raise GameEnded()
    if self.status != WAITING:
      raise GameAlreadyStarted("Game already started")
    if len(self.players) < self.settings.min_players:
      raise NotEnoughPlayers(
          f"Need at least {self.settings.min_players} players to start")

    self.current_month = 0
    self.current_prices = snapshot_prices(self)
    plan = unlock_plan_for(self.catalog)
    for pid, pl in self.players.items():
      if pl.scheduled_events is None:
        rng = random.Random(f"{self.seed}:{pid}")
        pl.scheduled_events = MappingProxyType(
            generate_schedule(plan, rng, self.settings.total_months))
    self.status = PLAYING
    self.started_at = time.time()

  def end(self) -> bool:
    """playing -> ended. False when the room was not playing."""
    if self.status != PLAYING:
      return False
    self.status = ENDED
    self.ended_at = time.time()
    self.stop_ticker()
    return True

  def unlock(self, category: str) -> bool:
    if category in self.available_investments:
      return False
    self.available_investments.append(category)
    return True

  def elapsed_ms(self) -> int:
    if self.started_at is None:
      return 0
    end = self.ended_at or time.time()
    return int((end - self.started_at) * 1000)

  # ---------- Async handles ----------
  def stop_ticker(self) -> None:
    """Release the tick task; safe to call any number of times."""
    task, self.tick_task = self.tick_task, None
    if task is None or task.done():
      return
    try:
      current = asyncio.current_task()
    except RuntimeError:
      current = None
    # the ticker ending its own game just lets its loop return
    if task is not current:
      task.cancel()

  def cancel_cleanup(self) -> None:
    handle, self.cleanup_handle = self.cleanup_handle, None
    if handle is not None:
      handle.cancel()
