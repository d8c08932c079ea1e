from __future__ import annotations

import pytest

from basisbot.config.schema import EngineConfig
from tests.fakes.fake_venue import SleepRecorder


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(retry_delay_ms=1000, order_followup_delay_ms=2000)


@pytest.fixture(autouse=True)
def _clear_venue_env(monkeypatch):
    for name in (
        "ASTERDEX_API_KEY",
        "ASTERDEX_API_SECRET",
        "FUTURES_API_URL",
        "SPOT_API_URL",
        "MAX_PRICE_DIFF_PERCENT",
        "RETRY_DELAY_MS",
    ):
        monkeypatch.delenv(name, raising=False)
