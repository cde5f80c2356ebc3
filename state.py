from __future__ import annotations

import random
import string
from typing import Dict, Set

from fastapi import WebSocket

from config import settings
from domain.registry import SessionRegistry

# ---- Connections / sessions ----
clients: Set[WebSocket] = set()                    # all connected sockets
user_by_ws: Dict[WebSocket, str] = {}              # ws -> userId
ws_by_user: Dict[str, WebSocket] = {}              # userId -> ws

# ---- Rooms ----
registry = SessionRegistry(settings.game)          # roomCode -> Room


# ---- ID generators ----
def gen_user_id() -> str:
    """Generate a short opaque user id, e.g. 'k8z2q1m9d0'."""
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=10))
