# config.py
import os
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


def project_root() -> Path:
    return Path(__file__).resolve().parent


class GameSettings(BaseModel):
    """Tunable game rules. Defaults reproduce the classic 20-year game."""

    month_duration_ms: int = Field(default=5000, gt=0)
    total_months: int = Field(default=240, gt=0)
    starting_capital: float = 50_000.0
    min_players: int = 2
    max_players: int = 8
    cleanup_delay_sec: float = 5 * 60

    # annual %, compounded monthly
    savings_rate: float = 4.0
    mutual_fund_rate: float = 12.0
    ppf_rate: float = 7.1
    # term in months -> annual %
    fixed_deposit_rates: Dict[int, float] = Field(
        default_factory=lambda: {12: 6.5, 24: 6.8, 36: 7.0, 60: 7.5})

    base_category: str = "savings"
    default_gold_price: int = 350
    # False: leaderboard is computed from holdings x current prices.
    # True: a player's self-reported net worth is shown when present.
    trust_reported_networth: bool = False


class LogSettings(BaseModel):
    level: str = "INFO"
    to_file: bool = False
    dir: str = "logs"
    rotation: str = "1 day"
    retention: str = "30 days"


class AppSettings(BaseModel):
    game: GameSettings = Field(default_factory=GameSettings)
    log: LogSettings = Field(default_factory=LogSettings)
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @classmethod
    def load(cls, env_file: Optional[str] = None) -> "AppSettings":
        """
        Build settings from the process environment.

        `.env` at the project root (or `env_file`) is loaded first; variables
        already present in the environment win.
        """
        load_dotenv(env_file or project_root() / ".env")

        game = {}
        if os.getenv("MONTH_DURATION"):
            game["month_duration_ms"] = int(os.environ["MONTH_DURATION"])
        if os.getenv("TRUST_REPORTED_NETWORTH"):
            game["trust_reported_networth"] = (
                os.environ["TRUST_REPORTED_NETWORTH"].lower() in ("1", "true", "yes"))

        log = {}
        if os.getenv("LOG_LEVEL"):
            log["level"] = os.environ["LOG_LEVEL"]
        if os.getenv("LOG_DIR"):
            log["dir"] = os.environ["LOG_DIR"]
            log["to_file"] = True

        raw = {"game": game, "log": log}
        if os.getenv("PORT"):
            raw["port"] = int(os.environ["PORT"])
        if os.getenv("FRONTEND_URL"):
            raw["cors_origins"] = [os.environ["FRONTEND_URL"]]
        return cls(**raw)


settings = AppSettings.load()
