"""Shared test fixtures."""

from pathlib import Path

import pytest

from clipcast.config import Config

FIXTURES_DIR = Path(__file__).parent / "fixtures"

ENV_KEYS = (
    "YOUTUBE_API_KEY", "YOUTUBE_CHANNEL_ID", "YOUTUBE_CHANNELS",
    "MONITORING_INTERVAL_MINUTES", "GEMINI_API_KEY", "TIKTOK_CLIENT_KEY",
    "TIKTOK_CLIENT_SECRET", "TEMP_DIR", "OUTPUT_DIR", "SILENCE_THRESHOLD",
    "ACCELERATION_FACTOR", "TARGET_RESOLUTION", "SLIDING_WINDOW_PARTS",
    "SLIDING_WINDOW_STEP_PERCENT", "LOG_LEVEL", "LOG_FILE", "LOG_QUIET",
    "OPERATION_MODE", "PROCESS_TEST_VIDEOS_FIRST",
)


@pytest.fixture
def sample_config_path() -> Path:
    return FIXTURES_DIR / "sample_config.json"


@pytest.fixture
def clean_env(monkeypatch):
    # setenv first so values loaded from a .env during the test are undone too
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    cfg = Config()
    cfg.paths.temp_dir = tmp_path / "tmp"
    cfg.paths.output_dir = tmp_path / "out"
    cfg.paths.watch_state_file = tmp_path / "watch_state.json"
    return cfg
