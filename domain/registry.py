# domain/registry.py
from __future__ import annotations

import secrets
import string
from dataclasses import dataclass
from typing import Dict, Optional

from loguru import logger

from config import GameSettings
from domain.errors import (GameAlreadyStarted, GameEnded, RoomFull,
                           RoomNotFound)
from domain.models import Catalog, PlayerState
from domain.room import ENDED, WAITING, Room

# no 0/O or 1/I to keep codes readable aloud
ROOM_CODE_ALPHABET = "".join(
    c for c in string.ascii_uppercase if c not in "IO") + "23456789"
ROOM_CODE_LENGTH = 6


def gen_room_code() -> str:
  return "".join(
      secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


@dataclass
class Departure:
  room: Room
  player: PlayerState
  new_host_id: Optional[str]
  room_deleted: bool


class SessionRegistry:
  """
  Owner of every live room, keyed by room code.

  Other components look rooms up here by code on each use and never keep
  their own long-lived references.
  """

  def __init__(self, settings: GameSettings):
    self.settings = settings
    self.rooms: Dict[str, Room] = {}
    self.room_by_player: Dict[str, str] = {}

  def __len__(self) -> int:
    return len(self.rooms)

  def _new_code(self) -> str:
    code = gen_room_code()
    while code in self.rooms:
      code = gen_room_code()
    return code

  def create_room(self, host_id: str, host_name: str, catalog: Catalog,
                  start_year: int = 0) -> Room:
    room = Room(self._new_code(), host_id, catalog, start_year, self.settings)
    room.add_player(host_id, host_name)
    self.rooms[room.code] = room
    self.room_by_player[host_id] = room.code
    logger.info("Room {} created by {} ({} instruments) - {} active rooms",
                room.code, host_name, len(catalog.stocks), len(self.rooms))
    return room

  def ensure_joinable(self, room: Room, player_id: str) -> None:
    if room.status == ENDED:
      raise GameEnded()
    if room.status != WAITING:
      raise GameAlreadyStarted()
    if player_id not in room.players and len(
        room.players) >= self.settings.max_players:
      raise RoomFull(f"Room is full (max {self.settings.max_players} players)")

  def join_room(self, code: str, player_id: str, name: str) -> PlayerState:
    room = self.require_room(code)
    self.ensure_joinable(room, player_id)
    player = room.players.get(player_id)
    if player is None:
      player = room.add_player(player_id, name)
    else:
      player.name = name
    self.room_by_player[player_id] = room.code
    logger.info("{} joined room {}", name, room.code)
    return player

  def get_room(self, code: Optional[str]) -> Optional[Room]:
    if not code:
      return None
    return self.rooms.get(code.upper())

  def require_room(self, code: Optional[str]) -> Room:
    room = self.get_room(code)
    if room is None:
      raise RoomNotFound()
    return room

  def room_of(self, player_id: str) -> Optional[Room]:
    return self.get_room(self.room_by_player.get(player_id))

  def remove_room(self, code: str, expected: Optional[Room] = None) -> bool:
    room = self.rooms.get(code)
    if room is None or (expected is not None and room is not expected):
      return False
    room.stop_ticker()
    room.cancel_cleanup()
    del self.rooms[code]
    for pid in list(room.players):
      if self.room_by_player.get(pid) == code:
        del self.room_by_player[pid]
    logger.info("Room {} deleted - {} active rooms", code, len(self.rooms))
    return True

  def leave(self, player_id: str) -> Optional[Departure]:
    """Remove a player from whichever room they are in."""
    code = self.room_by_player.pop(player_id, None)
    room = self.get_room(code)
    if room is None:
      return None
    player = room.players.get(player_id)
    if player is None:
      return None

    new_host_id = room.remove_player(player_id)
    logger.info("{} left room {}", player.name, room.code)
    deleted = False
    if not room.players:
      deleted = self.remove_room(room.code, expected=room)
    return Departure(room, player, new_host_id, deleted)
