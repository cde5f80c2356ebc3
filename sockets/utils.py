from loguru import logger
from fastapi import WebSocket

from domain.models import PlayerState
from domain.portfolio import leaderboard
from domain.room import Room
from state import ws_by_user


async def send_json_safe(ws: WebSocket, payload: dict):
  try:
    await ws.send_json(payload)
  except Exception as exc:
    # peer went away mid-send; its disconnect handler cleans up
    logger.debug("send to socket failed: {}", exc)


async def send_to_player(player_id: str, payload: dict):
  ws = ws_by_user.get(player_id)
  if ws:
    await send_json_safe(ws, payload)


async def broadcast_room(room: Room, payload: dict):
  for uid in list(room.players):
    await send_to_player(uid, payload)


def player_payload(pl: PlayerState) -> dict:
  return {
      "id": pl.id,
      "name": pl.name,
      "isHost": pl.is_host,
      "cash": round(pl.cash, 2),
      "holdings": {iid: h.to_payload() for iid, h in pl.holdings.items()},
      "savings": round(pl.savings, 2),
      "mutualFunds": round(pl.mutual_funds, 2),
      "ppf": round(pl.ppf, 2),
      "fixedDeposits": [fd.to_payload() for fd in pl.fixed_deposits],
  }


def room_payload(room: Room) -> dict:
  return {
      "code": room.code,
      "hostId": room.host_id,
      "status": room.status,
      "startYear": room.start_year,
      "currentMonth": room.current_month,
      "currentPrices": room.current_prices,
      "availableInvestments": list(room.available_investments),
      "players": [player_payload(pl) for pl in room.players.values()],
      "instruments": [{
          "id": inst.id,
          "name": inst.name,
          "category": category
      } for category, inst in room.catalog.instruments()],
  }


def leaderboard_update(room: Room) -> dict:
  return {
      "type": "leaderboard-update",
      "leaderboard": leaderboard(room),
      "currentMonth": room.current_month,
  }


def month_update(room: Room) -> dict:
  year, month_in_year = divmod(room.current_month, 12)
  return {
      "type": "month-update",
      "currentMonth": room.current_month,
      "currentYear": year,
      "monthInYear": month_in_year,
      "currentPrices": room.current_prices,
      "leaderboard": leaderboard(room),
      "availableInvestments": list(room.available_investments),
  }
