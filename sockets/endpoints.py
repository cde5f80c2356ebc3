import asyncio
import json
from typing import Optional, Set

from fastapi import Query, WebSocket, WebSocketDisconnect
from loguru import logger

from domain.errors import GameError, GameNotActive, InvalidRequest, NotHost
from domain.execution import (buy_instrument, invest_fixed_deposit,
                              invest_mutual_fund, invest_ppf, invest_savings,
                              report_net_worth, require_active,
                              sell_instrument)
from domain.models import GOLD_ID
from domain.portfolio import leaderboard, snapshot_portfolio
from domain.registry import Departure
from domain.room import PLAYING
from sockets.schemas import (CreateRoom, FixedDepositInvestment, GoldTrade,
                             Investment, JoinRoom, NetWorthReport, StockTrade,
                             Trade, parse)
from sockets.ticker import finish_game, start_ticker
from sockets.utils import (broadcast_room, leaderboard_update, player_payload,
                           room_payload, send_json_safe)
from state import clients, gen_user_id, registry, user_by_ws, ws_by_user

# strong refs to in-flight departure notices
_background: Set[asyncio.Task] = set()


async def ws_endpoint(ws: WebSocket,
                      userId: Optional[str] = Query(default=None)):
  await ws.accept()
  clients.add(ws)

  # assign / restore userId
  uid = userId if userId else gen_user_id()
  user_by_ws[ws] = uid
  ws_by_user[uid] = ws
  logger.info("Client connected: {}", uid)

  await send_json_safe(ws, {"type": "hello", "userId": uid})

  try:
    while True:
      raw = await ws.receive_text()
      await dispatch(ws, uid, raw)
  except WebSocketDisconnect:
    pass
  finally:
    clients.discard(ws)
    user_by_ws.pop(ws, None)
    # a newer socket for the same user keeps the seat
    if ws_by_user.get(uid) is ws:
      ws_by_user.pop(uid, None)
      drop_player(uid)
    logger.info("Client disconnected: {}", uid)


async def dispatch(ws: WebSocket, uid: str, raw: str):
  try:
    msg = json.loads(raw)
  except ValueError:
    msg = None
  if not isinstance(msg, dict):
    await send_json_safe(ws, InvalidRequest("Message must be a JSON object").to_payload())
    return

  mtype = msg.get("type")
  handler = HANDLERS.get(mtype)
  if handler is None:
    await send_json_safe(ws, InvalidRequest(f"Unknown event {mtype!r}").to_payload())
    return

  try:
    await handler(ws, uid, msg)
  except GameError as err:
    logger.debug("{} rejected for {}: {}", mtype, uid, err.message)
    await send_json_safe(ws, err.to_payload())
  except Exception:
    logger.exception("Unhandled error on {} from {}", mtype, uid)
    await send_json_safe(ws, {
        "type": "error",
        "code": "internal_error",
        "message": "Internal server error"
    })


def _room_code(uid: str) -> Optional[str]:
  return registry.room_by_player.get(uid)


def drop_player(uid: str) -> Optional[asyncio.Task]:
  """
  Remove a disconnected player and notify the rest of the room.

  The roster change happens right away. The notices go out from their own
  task so a cancelled socket task cannot cut them short.
  """
  departure = registry.leave(uid)
  if departure is None or departure.room_deleted:
    return None
  task = asyncio.create_task(announce_departure(departure))
  _background.add(task)
  task.add_done_callback(_background.discard)
  return task


async def announce_departure(departure: Optional[Departure]):
  if departure is None or departure.room_deleted:
    return
  room = departure.room
  if departure.new_host_id:
    await broadcast_room(room, {"type": "new-host", "hostId": departure.new_host_id})
  await broadcast_room(
      room, {
          "type": "player-left",
          "playerId": departure.player.id,
          "playerName": departure.player.name,
          "totalPlayers": len(room.players),
      })
  await broadcast_room(room, leaderboard_update(room))


# ---------- Lobby ----------
async def on_create_room(ws: WebSocket, uid: str, msg: dict):
  req = parse(CreateRoom, msg)
  departure = registry.leave(uid)
  start_year = req.start_year
  if start_year is None:
    start_year = req.game_data.game_start_year or 0
  room = registry.create_room(uid, req.player_name, req.game_data, start_year)
  await announce_departure(departure)
  await send_json_safe(
      ws, {
          "type": "room-created",
          "roomCode": room.code,
          "player": player_payload(room.players[uid]),
          "room": room_payload(room),
      })


async def on_join_room(ws: WebSocket, uid: str, msg: dict):
  req = parse(JoinRoom, msg)
  room = registry.require_room(req.room_code)
  registry.ensure_joinable(room, uid)
  # no await until the seat is taken, or the room could fill or start
  # after the player has already left their old one
  departure = None
  if registry.room_of(uid) is not room:
    departure = registry.leave(uid)
  player = registry.join_room(room.code, uid, req.player_name)
  await announce_departure(departure)

  await send_json_safe(
      ws, {
          "type": "room-joined",
          "roomCode": room.code,
          "player": player_payload(player),
          "room": room_payload(room),
      })
  await broadcast_room(
      room, {
          "type": "player-joined",
          "player": {
              "id": player.id,
              "name": player.name
          },
          "totalPlayers": len(room.players),
      })


async def on_start_game(ws: WebSocket, uid: str, msg: dict):
  room = registry.require_room(_room_code(uid))
  room.start(uid)
  start_ticker(registry, room)

  s = room.settings
  await broadcast_room(
      room, {
          "type": "game-started",
          "startTime": int(room.started_at * 1000),
          "duration": s.total_months * s.month_duration_ms,
          "monthDuration": s.month_duration_ms,
          "currentPrices": room.current_prices,
          "leaderboard": leaderboard(room),
          "availableInvestments": list(room.available_investments),
      })
  logger.info("Game started in room {} - {} players", room.code,
              len(room.players))


async def on_end_game(ws: WebSocket, uid: str, msg: dict):
  room = registry.require_room(_room_code(uid))
  if uid != room.host_id:
    raise NotHost("Only host can end the game")
  if room.status != PLAYING:
    raise GameNotActive()
  await finish_game(registry, room)


async def on_get_room_info(ws: WebSocket, uid: str, msg: dict):
  room = registry.require_room(_room_code(uid))
  await send_json_safe(ws, {
      "type": "room-info",
      "room": room_payload(room),
      "leaderboard": leaderboard(room),
  })


async def on_leave_room(ws: WebSocket, uid: str, msg: dict):
  await announce_departure(registry.leave(uid))


async def on_ping(ws: WebSocket, uid: str, msg: dict):
  await send_json_safe(ws, {"type": "pong"})


# ---------- Trading ----------
async def _settled(ws: WebSocket, room, pl, payload: dict):
  payload.update({
      "cash": round(pl.cash, 2),
      "pocketCash": round(pl.cash, 2),
      "portfolio": snapshot_portfolio(room, pl),
  })
  await send_json_safe(ws, payload)
  await broadcast_room(room, leaderboard_update(room))


def _trade_handler(side: str, schema):
  settle = buy_instrument if side == "buy" else sell_instrument

  async def handler(ws: WebSocket, uid: str, msg: dict):
    req = parse(schema, msg)
    room, pl = require_active(registry, _room_code(uid), uid)
    record = settle(room, pl, req.instrument_id, req.quantity)
    await _settled(
        ws, room, pl, {
            "type": "transaction-success",
            "action": side,
            "instrumentId": record.instrument_id,
            "category": room.catalog.category_of(record.instrument_id),
            "quantity": record.quantity,
            "price": record.price,
        })

  return handler


async def on_buy_gold(ws: WebSocket, uid: str, msg: dict):
  req = parse(GoldTrade, msg)
  room, pl = require_active(registry, _room_code(uid), uid)
  record = buy_instrument(room, pl, GOLD_ID, req.grams)
  await _settled(ws, room, pl, {
      "type": "investment-success",
      "kind": "gold",
      "grams": req.grams,
      "price": record.price,
  })


def _invest_handler(kind: str, invest):

  async def handler(ws: WebSocket, uid: str, msg: dict):
    req = parse(Investment, msg)
    room, pl = require_active(registry, _room_code(uid), uid)
    invest(room, pl, req.amount)
    await _settled(ws, room, pl, {
        "type": "investment-success",
        "kind": kind,
        "amount": req.amount,
    })

  return handler


async def on_invest_fixed_deposit(ws: WebSocket, uid: str, msg: dict):
  req = parse(FixedDepositInvestment, msg)
  room, pl = require_active(registry, _room_code(uid), uid)
  invest_fixed_deposit(room, pl, req.amount, req.term_months)
  await _settled(ws, room, pl, {
      "type": "investment-success",
      "kind": "fixedDeposit",
      "amount": req.amount,
      "termMonths": req.term_months,
  })


async def on_update_networth(ws: WebSocket, uid: str, msg: dict):
  req = parse(NetWorthReport, msg)
  room, pl = require_active(registry, _room_code(uid), uid)
  report_net_worth(room, pl, req.net_worth, req.cash)
  await broadcast_room(room, leaderboard_update(room))


HANDLERS = {
    "create-room": on_create_room,
    "join-room": on_join_room,
    "start-game": on_start_game,
    "end-game": on_end_game,
    "get-room-info": on_get_room_info,
    "leave-room": on_leave_room,
    "ping": on_ping,
    "buy-stock": _trade_handler("buy", StockTrade),
    "sell-stock": _trade_handler("sell", StockTrade),
    "buy-asset": _trade_handler("buy", Trade),
    "sell-asset": _trade_handler("sell", Trade),
    "buy-gold": on_buy_gold,
    "invest-savings": _invest_handler("savings", invest_savings),
    "invest-mutual-fund": _invest_handler("mutualFunds", invest_mutual_fund),
    "invest-ppf": _invest_handler("ppf", invest_ppf),
    "invest-fixed-deposit": on_invest_fixed_deposit,
    "update-networth": on_update_networth,
}
