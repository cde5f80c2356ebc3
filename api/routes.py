# api/routes.py
from fastapi import APIRouter

from state import registry

router = APIRouter()


@router.get("/")
async def index():
    return {
        "message": "Build Your Dhan - Multiplayer Server",
        "version": "2.0",
        "activeGames": len(registry),
    }


@router.get("/health")
async def health():
    """
    Aggregate room status. Outside the game protocol; meant for health checks and
    for eyeballing a running server.
    """
    game = registry.settings
    return {
        "status": "ok",
        "activeRooms": len(registry),
        "monthDuration": f"{game.month_duration_ms}ms",
        "yearDuration": f"{game.month_duration_ms * 12 / 1000}s",
        "totalMonths": game.total_months,
        "rooms": [
            {
                "code": room.code,
                "players": len(room.players),
                "status": room.status,
                "currentMonth": room.current_month,
                "currentYear": room.current_month // 12,
                "stocks": len(room.catalog.stocks),
            }
            for room in registry.rooms.values()
        ],
    }
