import pytest
from prometheus_client import CollectorRegistry

from poemeter.record_store import RecordStore


@pytest.fixture()
def registry() -> "CollectorRegistry":
    """
    fresh Prometheus registry to avoid cross-test state.
    """
    return CollectorRegistry()


@pytest.fixture()
def record_store() -> "RecordStore":
    return RecordStore()
