"""Root test configuration for XSSGate.

Clears XSSGATE_* environment overrides so config tests see a clean
environment, and resets the shared slowapi admin limiter between tests.
"""

from __future__ import annotations

from typing import Any

import pytest

from xssgate.config import Config


@pytest.fixture(autouse=True)
def clean_xssgate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove env overrides that would leak from the developer's shell."""
    for name in (
        "XSSGATE_CONFIG",
        "XSSGATE_PORT",
        "XSSGATE_REDIS_URL",
        "XSSGATE_ARCHIVE_DB_PATH",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_admin_limiter() -> None:
    """Reset the in-memory slowapi storage between tests.

    Prevents test-to-test rate limit bleed on /admin/archive.
    """
    from xssgate.guard.limiter import admin_limiter

    admin_limiter.reset()


@pytest.fixture()
def app_config(tmp_path: Any) -> Config:
    """Default config with the archive database under tmp_path."""
    config = Config.defaults()
    config.archive.db_path = str(tmp_path / "archive.db")
    return config


class FakeClock:
    """Manually advanced monotonic clock for deterministic limiter tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()
