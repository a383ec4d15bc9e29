from __future__ import annotations

import pytest

from panelwatch.config import Settings
from panelwatch.services.container import ServiceContainer

from tests.helpers import FakeSource


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def settings() -> Settings:
    return Settings(poller_enabled=False, poll_ms=50, send_timeout_s=0.5, log_format="console")


@pytest.fixture
def container(settings: Settings, source: FakeSource) -> ServiceContainer:
    return ServiceContainer(settings, source=source)
