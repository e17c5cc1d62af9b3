"""
Test Configuration and Fixtures

This module provides:
- Environment setup before any application module reads settings
- In-memory storage, event bus and entity store fixtures
- Activity / booking builders shared by every unit test

Architecture:
- Unit tests (test/**/unit/): pure in-memory doubles, no Kvrocks, no network
- Remote adapters are exercised through httpx.MockTransport
"""

# =============================================================================
# CRITICAL: Environment setup MUST happen before any other imports
# Settings and the loguru sinks are configured at import time
# =============================================================================
import os
from pathlib import Path


def _early_setup_test_environment() -> None:
    """Set test environment variables before any module imports."""
    test_log_dir = Path(__file__).parent / 'test_log'
    test_log_dir.mkdir(exist_ok=True)
    os.environ['TEST_LOG_DIR'] = str(test_log_dir)

    os.environ['STORAGE_BACKEND'] = 'memory'
    os.environ.setdefault('DEFAULT_TIMEZONE', 'UTC')
    os.environ.setdefault('KVROCKS_KEY_PREFIX', 'test_')


_early_setup_test_environment()

from collections.abc import Callable  # noqa: E402
from datetime import datetime  # noqa: E402

import pytest  # noqa: E402

from src.platform.event.event_bus import InMemoryEventBus  # noqa: E402
from src.platform.state.memory_storage import InMemoryStorageBackend  # noqa: E402
from src.service.booking_widget.driven_adapter.repo.entity_store_impl import (  # noqa: E402
    EntityStore,
)
from src.service.booking_widget.driven_adapter.repo.storage_keys import (  # noqa: E402
    default_legacy_sources,
)
from test.constants import DEFAULT_ORGANIZATION_ID, FROZEN_NOW  # noqa: E402


@pytest.fixture
def frozen_clock() -> Callable[[], datetime]:
    return lambda: FROZEN_NOW


@pytest.fixture
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def storage() -> InMemoryStorageBackend:
    return InMemoryStorageBackend()


@pytest.fixture
def entity_store(storage, event_bus, frozen_clock) -> EntityStore:
    return EntityStore(
        storage=storage,
        event_bus=event_bus,
        default_organization_id=DEFAULT_ORGANIZATION_ID,
        legacy_sources=default_legacy_sources(),
        clock=frozen_clock,
    )


@pytest.fixture
def recorded_events(event_bus) -> list[str]:
    """Every `<kind>-updated` event emitted during the test, in order"""
    events: list[str] = []
    for name in ('activities-updated', 'bookings-updated', 'gift-vouchers-updated'):
        event_bus.subscribe(name, events.append)
    return events
