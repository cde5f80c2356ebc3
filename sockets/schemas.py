from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from domain.errors import InvalidRequest
from domain.models import Catalog


class Request(BaseModel):
  model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CreateRoom(Request):
  player_name: str = Field(alias="playerName", min_length=1, max_length=40)
  game_data: Catalog = Field(alias="gameData")
  start_year: Optional[int] = Field(default=None, alias="startYear", ge=0)


class JoinRoom(Request):
  room_code: str = Field(alias="roomCode", min_length=1)
  player_name: str = Field(alias="playerName", min_length=1, max_length=40)


class Trade(Request):
  instrument_id: str = Field(alias="instrumentId", min_length=1)
  quantity: float = Field(gt=0)


class StockTrade(Trade):
  # older clients send stockId / shares
  instrument_id: str = Field(alias="stockId", min_length=1)
  quantity: float = Field(alias="shares", gt=0)


class GoldTrade(Request):
  grams: float = Field(gt=0)


class Investment(Request):
  amount: float = Field(gt=0)


class FixedDepositInvestment(Investment):
  term_months: int = Field(alias="termMonths", gt=0)


class NetWorthReport(Request):
  net_worth: float = Field(alias="netWorth")
  cash: Optional[float] = None


def parse(model, msg: dict):
  """Validate an inbound message, mapping failures to InvalidRequest."""
  try:
    return model.model_validate(msg)
  except ValidationError as exc:
    err = exc.errors()[0]
    where = ".".join(str(p) for p in err.get("loc", ())) or "payload"
    raise InvalidRequest(f"Invalid {where}: {err.get('msg')}") from exc
