"""Shared test fixtures and configuration for backend tests."""
import asyncio
from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from webchat.chat.coordinator import SessionCoordinator, set_coordinator
from webchat.main import app
from webchat.store import IdentityStore, MessageLog


class FakeConnection:
    """Stands in for a WebSocket: records every frame sent to it."""

    def __init__(self, fail: bool = False, delay: float = 0.0) -> None:
        self.sent: List[dict] = []
        self.fail = fail
        self.delay = delay

    async def send_json(self, data: dict) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(data)

    def of_type(self, event_type: str) -> List[dict]:
        return [frame for frame in self.sent if frame.get("type") == event_type]

    def last(self, event_type: str) -> Optional[dict]:
        frames = self.of_type(event_type)
        return frames[-1] if frames else None


@pytest.fixture(autouse=True)
def coordinator():
    """Install a SessionCoordinator backed by in-memory DuckDB for each test."""
    coord = SessionCoordinator(IdentityStore(":memory:"), MessageLog(":memory:"))
    set_coordinator(coord)
    yield coord
    set_coordinator(None)
    coord.close()


@pytest.fixture
def make_connection():
    """Factory for FakeConnection objects."""
    return FakeConnection


@pytest.fixture
def api_client():
    """Provide a TestClient for the main FastAPI app."""
    return TestClient(app)
