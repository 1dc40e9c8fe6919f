from datetime import date

import pytest
from prometheus_client import CollectorRegistry

# fixed "today" so gap-fill windows are deterministic
TODAY = date(2025, 3, 10)


@pytest.fixture()
def registry() -> "CollectorRegistry":
    """
    fresh Prometheus registry to avoid cross-test state.
    """
    return CollectorRegistry()


@pytest.fixture()
def today() -> "date":
    return TODAY
