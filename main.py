# main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

# REST routes
from api.routes import router as api_router
from config import settings
# WebSocket endpoint
from sockets.endpoints import ws_endpoint
from state import registry
from utils.logger import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log)
    game = settings.game
    logger.info(
        "Game speed: {}ms per month ({}s per year)",
        game.month_duration_ms,
        game.month_duration_ms * 12 / 1000,
    )
    yield
    # stop every tick loop before the event loop goes away
    for code in list(registry.rooms):
        registry.remove_room(code)


app = FastAPI(title="Build Your Dhan - Multiplayer Server", version="2.0",
              lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    allow_credentials=True,
)

# --- REST API (/ and /health) ---
app.include_router(api_router)

# --- WebSockets ---
app.add_api_websocket_route("/ws", ws_endpoint)

# --- Dev runner ---
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=True)
