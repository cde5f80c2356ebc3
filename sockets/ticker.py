import asyncio

from loguru import logger

from domain.clock import advance_month
from domain.portfolio import leaderboard
from domain.registry import SessionRegistry
from domain.room import PLAYING, Room
from sockets.utils import broadcast_room, month_update, send_to_player


def start_ticker(registry: SessionRegistry, room: Room) -> asyncio.Task:
  if room.tick_task is None or room.tick_task.done():
    room.tick_task = asyncio.create_task(room_ticker(registry, room))
  return room.tick_task


async def room_ticker(registry: SessionRegistry, room: Room):
  """
  One simulated month per `month_duration_ms` while the room is playing.

  The room is looked up again by code before every tick; once it is gone
  (or replaced, or no longer playing) the loop just returns.
  """
  code = room.code
  tick_s = room.settings.month_duration_ms / 1000
  logger.info("Starting month timer for room {} ({}s per month)", code, tick_s)

  try:
    while True:
      await asyncio.sleep(tick_s)
      if registry.get_room(code) is not room or room.status != PLAYING:
        return

      try:
        report = advance_month(room)
      except Exception:
        logger.exception("Room {} - tick failed at month {}", code,
                         room.current_month)
        continue
      if report is None:
        return

      for pid, event in report.events:
        await send_to_player(
            pid, {
                "type": "year-event",
                "year": report.year,
                "month": report.month,
                "event": event.to_payload(),
                "availableInvestments": list(room.available_investments),
            })
      await broadcast_room(room, month_update(room))

      if report.finished:
        await finish_game(registry, room)
        return
  finally:
    if room.tick_task is asyncio.current_task():
      room.tick_task = None


async def finish_game(registry: SessionRegistry, room: Room) -> bool:
  """End a playing room, publish the final standings, schedule deletion."""
  if not room.end():
    return False

  board = leaderboard(room)
  await broadcast_room(
      room, {
          "type": "game-ended",
          "leaderboard": board,
          "events": [r.to_payload() for r in room.event_log],
          "duration": room.elapsed_ms(),
      })
  logger.info("Game ended in room {} - winner: {} with {}", room.code,
              board[0]["name"] if board else None,
              board[0]["netWorth"] if board else None)

  # late readers may still fetch room info during the grace period
  loop = asyncio.get_running_loop()
  room.cancel_cleanup()
  room.cleanup_handle = loop.call_later(room.settings.cleanup_delay_sec,
                                        registry.remove_room, room.code, room)
  return True
