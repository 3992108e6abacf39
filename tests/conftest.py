import sys
from pathlib import Path

import pytest

# Make repository root importable for tests without installing the package.
# Keeps local iteration fast (pytest sees source directly).
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from connectors.base import IngestionStream, SearchCluster  # noqa: E402
from connectors.models import AppendResult, AwsCredentials, ClusterInfo, SearchHit, SearchResult  # noqa: E402


class FakeSearchCluster(SearchCluster):
    """In-memory stand-in for the OpenSearch adapter.

    ``health_error`` / ``exists_error`` / ``query_error`` are raised by the
    matching call when set; every call is recorded in ``calls``.
    """

    def __init__(self, exists=True, hits=None, health_error=None, exists_error=None, query_error=None):
        self.exists = exists
        self.hits = hits if hits is not None else []
        self.health_error = health_error
        self.exists_error = exists_error
        self.query_error = query_error
        self.calls = []

    def health_check(self):
        self.calls.append(("health_check",))
        if self.health_error is not None:
            raise self.health_error
        return ClusterInfo(cluster_id="123456789012:mydomain", version="2.11.0")

    def resource_exists(self, name):
        self.calls.append(("resource_exists", name))
        if self.exists_error is not None:
            raise self.exists_error
        return self.exists

    def query(self, resource, spec):
        self.calls.append(("query", resource, spec))
        if self.query_error is not None:
            raise self.query_error
        items = tuple(self.hits[spec.offset:spec.offset + spec.size])
        return SearchResult(total=len(self.hits), items=items)


class FakeStream(IngestionStream):
    def __init__(self, append_error=None):
        self.append_error = append_error
        self.records = []

    def health_check(self):
        return ClusterInfo(cluster_id="firehose:us-east-1", version="2015-08-04")

    def resource_exists(self, name):
        return True

    def append(self, stream, record):
        if self.append_error is not None:
            raise self.append_error
        self.records.append((stream, dict(record)))
        return AppendResult(accepted_id=f"record-{len(self.records)}")


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def credentials():
    return AwsCredentials(access_key_id="AKIAEXAMPLE", secret_access_key="secret", region="eu-west-1")


@pytest.fixture
def fake_cluster():
    hits = [SearchHit(id=f"doc-{i}", source={"pipe-20": i}, score=1.0) for i in range(15)]
    return FakeSearchCluster(hits=hits)


@pytest.fixture
def fake_stream():
    return FakeStream()


@pytest.fixture
def fake_clock():
    return FakeClock()
