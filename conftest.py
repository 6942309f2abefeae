"""
Global pytest configuration for hms-realtime.

Points the application at an in-memory database before any project module is
imported and provides shared fixtures for the notification service tests.
"""

import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest
from unittest.mock import AsyncMock, Mock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.websockets import WebSocketState

from hms_realtime.database import Base
from hms_realtime.models import appointment, doctor, health_tip, notification  # noqa: F401
from hms_realtime.core.notifications import NotificationService
from hms_realtime.core.storage import Storage
from hms_realtime.schemas import GeneratedHealthTip


@pytest.fixture
def db_engine():
    """Fresh in-memory database shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def storage(db_engine):
    return Storage(sessionmaker(autocommit=False, autoflush=False, bind=db_engine))


@pytest.fixture
def service(storage):
    return NotificationService(storage)


@pytest.fixture
def make_socket():
    """Factory for mock WebSocket connections in the open state."""
    def _make(open_=True):
        websocket = Mock()
        websocket.send_text = AsyncMock()
        websocket.close = AsyncMock()
        state = WebSocketState.CONNECTED if open_ else WebSocketState.DISCONNECTED
        websocket.client_state = state
        websocket.application_state = state
        return websocket
    return _make


@pytest.fixture
def tip_generator():
    """Generator stub returning a fixed tip."""
    generator = Mock()
    generator.generate = AsyncMock(return_value=GeneratedHealthTip(
        title="Stay Hydrated",
        content="Drink at least eight glasses of water a day.",
        category="hydration",
        weather_context="hot",
        season="summer",
        priority="high",
        target_audience="all"
    ))
    return generator


@pytest.fixture
def sent_messages():
    """Decoded JSON payloads written to a mock socket."""
    def _decode(websocket):
        return [json.loads(call.args[0]) for call in websocket.send_text.call_args_list]
    return _decode
