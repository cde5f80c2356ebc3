# domain/errors.py
from typing import Optional


class GameError(Exception):
  """
  Base for every rejected client action.

  Carries a stable machine `code` and a human-readable `message`. These are
  always reported to the initiator only; room state is left untouched.
  """
  code = "error"
  default_message = "Request failed"

  def __init__(self, message: Optional[str] = None):
    self.message = message or self.default_message
    super().__init__(self.message)

  def to_payload(self) -> dict:
    return {"type": "error", "code": self.code, "message": self.message}


# ---------- NotFound ----------
class NotFound(GameError):
  code = "not_found"
  default_message = "Not found"


class RoomNotFound(NotFound):
  code = "room_not_found"
  default_message = "Room not found"


class PlayerNotFound(NotFound):
  code = "player_not_found"
  default_message = "Player not found"


class InstrumentNotFound(NotFound):
  code = "instrument_not_found"
  default_message = "Instrument not available"


# ---------- InvalidState ----------
class InvalidState(GameError):
  code = "invalid_state"
  default_message = "Action not allowed right now"


class GameAlreadyStarted(InvalidState):
  code = "game_already_started"
  default_message = "Game already in progress"


class GameEnded(InvalidState):
  code = "game_ended"
  default_message = "Game has already ended"


class GameNotActive(InvalidState):
  code = "game_not_active"
  default_message = "Game not active"


class NotHost(InvalidState):
  code = "not_host"
  default_message = "Only host can do that"


class NotEnoughPlayers(InvalidState):
  code = "not_enough_players"
  default_message = "Need more players to start"


class RoomFull(InvalidState):
  code = "room_full"
  default_message = "Room is full"


# ---------- InsufficientResources ----------
class InsufficientResources(GameError):
  code = "insufficient_resources"
  default_message = "Insufficient resources"


class InsufficientFunds(InsufficientResources):
  code = "insufficient_funds"
  default_message = "Insufficient funds"


class InsufficientShares(InsufficientResources):
  code = "insufficient_shares"
  default_message = "Insufficient shares"


# ---------- Validation ----------
class InvalidRequest(GameError):
  code = "invalid_request"
  default_message = "Invalid request"
