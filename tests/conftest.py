# tests/conftest.py
from types import MappingProxyType

import pytest
from loguru import logger

from config import GameSettings
from domain.models import Catalog
from domain.registry import SessionRegistry


@pytest.fixture(autouse=True)
def disable_file_logger():
    logger.remove()
    logger.add(lambda msg: None)
    yield


@pytest.fixture
def game_settings() -> GameSettings:
    return GameSettings()


@pytest.fixture
def catalog() -> Catalog:
    """One stock priced 100 in year 0 and 200 in year 1."""
    return Catalog.model_validate({
        "stocks": [{"id": "ACME", "name": "Acme Corp", "prices": [100, 200]}],
    })


@pytest.fixture
def registry(game_settings) -> SessionRegistry:
    return SessionRegistry(game_settings)


@pytest.fixture
def make_room(registry, catalog):
    """
    Factory for a two-player room.

    quiet=True pre-assigns empty event schedules so no random gain/loss
    touches cash while the clock runs.
    """

    def _make(start: bool = True, quiet: bool = True, cat: Catalog = None):
        room = registry.create_room("p1", "Asha", cat or catalog, 0)
        registry.join_room(room.code, "p2", "Ravi")
        if quiet:
            for pl in room.players.values():
                pl.scheduled_events = MappingProxyType({})
        if start:
            room.start("p1")
        return room

    return _make
