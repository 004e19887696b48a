"""
Widget API Backend: Startup Tests
====================================

What we test:
    ✅ The signing key is decoded during startup, before any request
    ✅ A JWT_SECRET that is not valid base64 stops startup
"""

from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI

from widget_api import main
from widget_api.auth.token_validator import get_token_validator
from widget_api.config import settings


@pytest.fixture
def fresh_validator(monkeypatch):
    """Clears the cached validator around the test; keeps logging and the engine untouched."""
    monkeypatch.setattr(main, "setup_logging", lambda: None)
    monkeypatch.setattr(main, "dispose_engine", AsyncMock())
    get_token_validator.cache_clear()
    yield
    get_token_validator.cache_clear()


@pytest.mark.asyncio
async def test_startup_builds_validator(fresh_validator):
    async with main.lifespan(FastAPI()):
        assert get_token_validator.cache_info().currsize == 1
    main.dispose_engine.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("secret", ["not base64 !!", ""])
async def test_bad_secret_stops_startup(fresh_validator, monkeypatch, secret):
    monkeypatch.setattr(settings, "jwt_secret", secret)

    with pytest.raises(ValueError, match="JWT_SECRET"):
        async with main.lifespan(FastAPI()):
            pytest.fail("application started with an unusable signing key")

    assert get_token_validator.cache_info().currsize == 0
