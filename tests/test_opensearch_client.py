import pytest
from opensearchpy.exceptions import AuthorizationException, ConnectionError, ConnectionTimeout, NotFoundError

from connectors.errors import InvalidRequestError, TransportError
from connectors.models import EndpointDescriptor, QuerySpec
from connectors.opensearch_client import OpenSearchCluster
from diagnostics.faults import FaultCategory, classify_error

ENDPOINT = EndpointDescriptor.parse("https://vpc-mydomain.us-east-1.es.amazonaws.com")


# A fake low-level client so the adapter can be exercised without a cluster.
class MockOpenSearch:
    def __init__(self, *args, **kwargs):
        self.init_kwargs = kwargs
        self.error = None
        self.last_search = None
        self.closed = False

        outer = self

        class MockIndices:
            def exists(self, index):
                if outer.error is not None:
                    raise outer.error
                return index == "events"

        class MockCat:
            def indices(self, format=None):
                return [
                    {"index": "events", "docs.count": "42", "store.size": "1mb"},
                    {"index": ".kibana", "docs.count": None, "store.size": None},
                ]

        class MockTransport:
            def close(self):
                outer.closed = True

        self.indices = MockIndices()
        self.cat = MockCat()
        self.transport = MockTransport()

    def info(self):
        if self.error is not None:
            raise self.error
        return {"cluster_name": "123456789012:mydomain", "version": {"number": "2.11.0"}}

    def search(self, index, body):
        if self.error is not None:
            raise self.error
        self.last_search = {"index": index, "body": body}
        return {
            "hits": {
                "total": {"value": 2, "relation": "eq"},
                "hits": [
                    {"_id": "a", "_source": {"pipe-20": 112}, "_score": None},
                    {"_id": "b", "_source": {"pipe-20": 7}, "_score": None},
                ],
            }
        }

    def count(self, index):
        return {"count": 42}


@pytest.fixture
def mock_client():
    return MockOpenSearch()


@pytest.fixture
def cluster(mock_client):
    return OpenSearchCluster(ENDPOINT, os_client=mock_client)


def test_health_check_reports_cluster_and_version(cluster):
    info = cluster.health_check()
    assert info.cluster_id == "123456789012:mydomain"
    assert info.version == "2.11.0"


def test_resource_exists(cluster):
    assert cluster.resource_exists("events") is True
    assert cluster.resource_exists("missing") is False


def test_query_builds_body_and_parses_hits(cluster, mock_client):
    result = cluster.query("events", QuerySpec(size=5, offset=10, exists_field="pipe-20"))

    assert mock_client.last_search["index"] == "events"
    body = mock_client.last_search["body"]
    assert body["query"] == {"exists": {"field": "pipe-20"}}
    assert body["size"] == 5 and body["from"] == 10
    assert body["sort"] == [{"@timestamp": {"order": "desc"}}]
    assert result.total == 2
    assert [hit.id for hit in result.items] == ["a", "b"]
    assert result.items[0].source == {"pipe-20": 112}


def test_query_rejects_bad_input_before_network(cluster, mock_client):
    with pytest.raises(InvalidRequestError):
        cluster.query("", QuerySpec())
    with pytest.raises(InvalidRequestError):
        cluster.query("events", {"size": 10})
    assert mock_client.last_search is None


def test_authorization_error_is_translated(cluster, mock_client):
    mock_client.error = AuthorizationException(
        403, "security_exception", {"message": "The security token included in the request is invalid."}
    )
    with pytest.raises(TransportError) as excinfo:
        cluster.health_check()
    assert excinfo.value.status_code == 403
    assert "security token" in excinfo.value.message
    assert classify_error(excinfo.value) is FaultCategory.AUTHENTICATION_FAILURE


def test_timeout_is_translated_without_status(cluster, mock_client):
    mock_client.error = ConnectionTimeout("TIMEOUT", "timed out", Exception("Read timed out. (read timeout=30)"))
    with pytest.raises(TransportError) as excinfo:
        cluster.query("events", QuerySpec())
    assert excinfo.value.status_code is None
    assert classify_error(excinfo.value) is FaultCategory.TIMED_OUT


def test_connection_error_is_translated(cluster, mock_client):
    mock_client.error = ConnectionError(
        "N/A", "conn failed", Exception("Failed to establish a new connection: [Errno 111] Connection refused")
    )
    with pytest.raises(TransportError) as excinfo:
        cluster.resource_exists("events")
    assert classify_error(excinfo.value) is FaultCategory.NETWORK_UNREACHABLE


def test_not_found_is_translated(cluster, mock_client):
    mock_client.error = NotFoundError(404, "index_not_found_exception", {"error": {"reason": "no such index"}})
    with pytest.raises(TransportError) as excinfo:
        cluster.query("events", QuerySpec())
    assert excinfo.value.status_code == 404
    assert classify_error(excinfo.value) is FaultCategory.RESOURCE_NOT_FOUND


def test_list_indices_and_count(cluster, mock_client):
    indices = cluster.list_indices()
    assert indices == [
        {"index": ".kibana", "docs_count": 0, "store_size": "0b"},
        {"index": "events", "docs_count": 42, "store_size": "1mb"},
    ]
    assert cluster.document_count("events") == 42
    cluster.close()
    assert mock_client.closed is True


def test_client_is_built_without_retries(monkeypatch):
    monkeypatch.setattr("connectors.opensearch_client.OpenSearch", MockOpenSearch)
    cluster = OpenSearchCluster(ENDPOINT, credentials=None, timeout=12.5)
    kwargs = cluster.client.init_kwargs
    assert kwargs["hosts"] == [{"host": ENDPOINT.host, "port": 443}]
    assert kwargs["use_ssl"] is True
    assert kwargs["timeout"] == 12.5
    assert kwargs["max_retries"] == 0
    assert kwargs["http_auth"] is None


def test_signed_client_uses_sigv4(monkeypatch, credentials):
    captured = {}

    def fake_signer(creds, region, service):
        captured.update(creds=creds, region=region, service=service)
        return "signer"

    monkeypatch.setattr("connectors.opensearch_client.OpenSearch", MockOpenSearch)
    monkeypatch.setattr("connectors.opensearch_client.AWSV4SignerAuth", fake_signer)
    cluster = OpenSearchCluster(ENDPOINT, credentials=credentials)

    assert cluster.client.init_kwargs["http_auth"] == "signer"
    assert captured["region"] == "eu-west-1"
    assert captured["service"] == "es"
    assert captured["creds"].access_key == "AKIAEXAMPLE"
