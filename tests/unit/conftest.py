import pytest

from selenium_module.core import drivers
from selenium_module.utils.config import Settings

from fakes import FakeDriver


@pytest.fixture
def fake_drivers(monkeypatch):
    """Register a 'fake' web driver; returns the list of drivers it creates."""
    created: list[FakeDriver] = []

    def factory(settings):
        d = FakeDriver(settings)
        created.append(d)
        return d

    monkeypatch.setitem(drivers._FACTORIES, "fake", factory)
    return created


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DRIVER="fake",
        POLL_INTERVAL_MS=10,
        UNTIL_TIMEOUT_MS=200,
        MAX_RETRIES=0,
        OUTPUT_DIR=tmp_path / "runs",
    )
