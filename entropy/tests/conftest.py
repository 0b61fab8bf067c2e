import pytest
from prometheus_client import CollectorRegistry

from entropy.metrics import Metrics


@pytest.fixture
def metrics() -> Metrics:
    # Fresh registry per test; the module singleton would collide on re-registration.
    return Metrics(registry=CollectorRegistry())
