# domain/portfolio.py
from __future__ import annotations

from typing import TYPE_CHECKING, List

from config import GameSettings
from domain.models import PlayerState

if TYPE_CHECKING:
  from domain.room import Room


def holdings_value(room: "Room", pl: PlayerState) -> float:
  return sum(h.quantity * room.current_prices.get(iid, 0)
             for iid, h in pl.holdings.items())


def net_worth(room: "Room", pl: PlayerState) -> int:
  total = pl.cash + holdings_value(room, pl)
  total += pl.savings + pl.mutual_funds + pl.ppf
  total += sum(fd.principal + fd.profit for fd in pl.fixed_deposits)
  return round(total)


def growth_percent(value: float, starting_capital: float) -> float:
  return round((value / starting_capital - 1) * 100, 2)


def leaderboard(room: "Room") -> List[dict]:
  """
  Ranked rows, richest first. Equal net worth keeps roster order.

  With `trust_reported_networth` on, a player's last self-reported figures
  replace the computed ones.
  """
  settings = room.settings
  rows = []
  for pid, pl in room.players.items():
    worth = net_worth(room, pl)
    cash = pl.cash
    if settings.trust_reported_networth and pl.reported_net_worth is not None:
      worth = pl.reported_net_worth
      if pl.reported_cash is not None:
        cash = pl.reported_cash
    rows.append({
        "id": pid,
        "name": pl.name,
        "netWorth": worth,
        "cash": round(cash, 2),
        "growth": growth_percent(worth, settings.starting_capital),
        "portfolioValue": round(worth - cash, 2),
    })
  rows.sort(key=lambda r: r["netWorth"], reverse=True)
  return rows


def apply_monthly_yield(pl: PlayerState, settings: GameSettings) -> None:
  """One month of passive growth on the player's non-traded balances."""
  pl.savings *= 1 + settings.savings_rate / 100 / 12
  pl.mutual_funds *= 1 + settings.mutual_fund_rate / 100 / 12
  pl.ppf *= 1 + settings.ppf_rate / 100 / 12

  for fd in pl.fixed_deposits:
    if fd.matured:
      continue
    fd.months_elapsed += 1
    fd.profit = fd.principal * (fd.rate / 100) * fd.months_elapsed / fd.term_months


def snapshot_portfolio(room: "Room", pl: PlayerState) -> dict:
  worth = net_worth(room, pl)
  return {
      "cash": round(pl.cash, 2),
      "netWorth": worth,
      "growth": growth_percent(worth, room.settings.starting_capital),
      "holdings": {iid: h.to_payload() for iid, h in pl.holdings.items()},
      "savings": round(pl.savings, 2),
      "mutualFunds": round(pl.mutual_funds, 2),
      "ppf": round(pl.ppf, 2),
      "fixedDeposits": [fd.to_payload() for fd in pl.fixed_deposits],
  }
