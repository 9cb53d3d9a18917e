"""Shared test fixtures."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

import geocluster.main as main_module
from geocluster.config import AppConfig
from geocluster.core.models import SensorPoint


@pytest.fixture(autouse=True)
def _init_server():
    """Initialize server singletons for every test."""
    config = AppConfig()
    config.logging.level = "warning"
    config.session.debounce_ms = 0.0

    session, stats = main_module.build_components(config)

    # Patch module-level singletons
    main_module._config = config
    main_module._stats = stats
    main_module._session = session

    yield

    # Cleanup
    main_module._config = None
    main_module._stats = None
    main_module._session = None


@pytest.fixture
async def client():
    from geocluster.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def six_points() -> list[SensorPoint]:
    """Five sensors packed around (10, 10) and one alone at (80, 80)."""
    return [
        SensorPoint("s1", 10.0, 10.0, 1.0, timestamp=1_000),
        SensorPoint("s2", 10.01, 10.0, 2.0, timestamp=2_000),
        SensorPoint("s3", 9.99, 10.0, 3.0),
        SensorPoint("s4", 10.0, 10.01, 9.5, timestamp=5_000),
        SensorPoint("s5", 10.0, 9.99, 0.5),
        SensorPoint("far", 80.0, 80.0, 4.0),
    ]
