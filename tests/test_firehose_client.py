import json
from datetime import datetime, timezone

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from connectors.errors import InvalidRequestError, TransportError
from connectors.firehose_client import FirehoseStream, enrich_record
from diagnostics.faults import FaultCategory, classify_error


def client_error(code, message, status=400, operation="PutRecord"):
    return ClientError(
        {"Error": {"Code": code, "Message": message}, "ResponseMetadata": {"HTTPStatusCode": status}},
        operation,
    )


class MockFirehose:
    def __init__(self):
        self.put_calls = []
        self.error = None
        self.streams = {"events"}

    def put_record(self, DeliveryStreamName, Record):
        if self.error is not None:
            raise self.error
        self.put_calls.append({"stream": DeliveryStreamName, "data": Record["Data"]})
        return {"RecordId": "49546986683135544286507457936321625675700192471156785154", "Encrypted": False}

    def describe_delivery_stream(self, DeliveryStreamName):
        if self.error is not None:
            raise self.error
        if DeliveryStreamName not in self.streams:
            raise client_error(
                "ResourceNotFoundException",
                f"Firehose {DeliveryStreamName} under account 123456789012 not found.",
                operation="DescribeDeliveryStream",
            )
        return {"DeliveryStreamDescription": {"DeliveryStreamName": DeliveryStreamName}}

    def list_delivery_streams(self, Limit):
        if self.error is not None:
            raise self.error
        return {"DeliveryStreamNames": sorted(self.streams)[:Limit], "HasMoreDeliveryStreams": False}


@pytest.fixture
def mock_firehose():
    return MockFirehose()


@pytest.fixture
def stream(mock_firehose):
    return FirehoseStream(region="us-east-1", firehose_client=mock_firehose)


def test_append_writes_one_enriched_json_line(stream, mock_firehose):
    result = stream.append("events", {"pipe-20": 112})

    assert result.accepted_id.startswith("4954698668")
    call = mock_firehose.put_calls[0]
    assert call["stream"] == "events"
    data = call["data"].decode("utf-8")
    assert data.endswith("\n") and data.count("\n") == 1
    doc = json.loads(data)
    assert doc["pipe-20"] == 112
    assert doc["timestamp"] == doc["@timestamp"]


def test_append_does_not_mutate_caller_record(stream):
    record = {"a": 1}
    stream.append("events", record)
    assert record == {"a": 1}


def test_append_rejects_bad_input_before_network(stream, mock_firehose):
    with pytest.raises(InvalidRequestError):
        stream.append("events", ["not", "an", "object"])
    with pytest.raises(InvalidRequestError):
        stream.append("", {"a": 1})
    with pytest.raises(InvalidRequestError):
        stream.append("events", {"when": object()})
    assert mock_firehose.put_calls == []


def test_client_error_keeps_code_and_status(stream, mock_firehose):
    mock_firehose.error = client_error(
        "UnrecognizedClientException", "The security token included in the request is invalid."
    )
    with pytest.raises(TransportError) as excinfo:
        stream.append("events", {"a": 1})
    assert excinfo.value.status_code == 400
    assert excinfo.value.message.startswith("UnrecognizedClientException:")
    assert classify_error(excinfo.value) is FaultCategory.AUTHENTICATION_FAILURE


def test_endpoint_connection_error_is_unreachable(stream, mock_firehose):
    mock_firehose.error = EndpointConnectionError(endpoint_url="https://firehose.us-east-1.amazonaws.com/")
    with pytest.raises(TransportError) as excinfo:
        stream.health_check()
    assert excinfo.value.status_code is None
    assert classify_error(excinfo.value) is FaultCategory.NETWORK_UNREACHABLE


def test_resource_exists(stream):
    assert stream.resource_exists("events") is True
    assert stream.resource_exists("other") is False


def test_health_check(stream):
    info = stream.health_check()
    assert info.cluster_id == "firehose:us-east-1"
    assert info.version == FirehoseStream.API_VERSION


def test_region_follows_credentials(mock_firehose, credentials):
    stream = FirehoseStream(credentials=credentials, firehose_client=mock_firehose)
    assert stream.region == "eu-west-1"
    assert stream.health_check().cluster_id == "firehose:eu-west-1"


def test_enrich_record_stamps_utc():
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    doc = enrich_record({"timestamp": "old"}, now=now)
    assert doc["timestamp"] == "2024-05-01T12:00:00+00:00"
    assert doc["@timestamp"] == doc["timestamp"]
