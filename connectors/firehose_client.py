import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .base import IngestionStream
from .errors import InvalidRequestError, TransportError
from .models import AppendResult, AwsCredentials, ClusterInfo

logger = logging.getLogger(__name__)


def _to_transport_error(exc: Exception) -> TransportError:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = error.get("Code", "ClientError")
        message = error.get("Message") or str(exc)
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        return TransportError(f"{code}: {message}", status_code=status if isinstance(status, int) else None)
    return TransportError(str(exc) or exc.__class__.__name__)


def enrich_record(record: Mapping[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Copy ``record`` and stamp ``timestamp`` / ``@timestamp`` (UTC ISO-8601)."""
    stamp = (now or datetime.now(timezone.utc)).isoformat()
    doc = dict(record)
    doc["timestamp"] = stamp
    doc["@timestamp"] = stamp
    return doc


class FirehoseStream(IngestionStream):
    """Ingestion stream adapter for a Kinesis Data Firehose delivery stream.

    Records are written as one JSON document per line so the downstream
    OpenSearch destination can split them.
    """

    API_VERSION = "2015-08-04"

    def __init__(
        self,
        credentials: Optional[AwsCredentials] = None,
        region: Optional[str] = None,
        timeout: float = 30.0,
        firehose_client: Any = None,
    ):
        self.credentials = credentials
        self.region = region or (credentials.region if credentials else "us-east-1")
        self.timeout = timeout
        self.client = firehose_client if firehose_client is not None else self._build_client()

    def _build_client(self):
        kwargs: Dict[str, Any] = {}
        if self.credentials is not None:
            kwargs.update(
                aws_access_key_id=self.credentials.access_key_id,
                aws_secret_access_key=self.credentials.secret_access_key,
                aws_session_token=self.credentials.session_token,
            )
        boto_config = BotoConfig(
            connect_timeout=self.timeout,
            read_timeout=self.timeout,
            retries={"total_max_attempts": 1},
        )
        return boto3.client("firehose", region_name=self.region, config=boto_config, **kwargs)

    def health_check(self) -> ClusterInfo:
        try:
            self.client.list_delivery_streams(Limit=1)
        except (ClientError, BotoCoreError) as exc:
            raise _to_transport_error(exc) from exc
        return ClusterInfo(cluster_id=f"firehose:{self.region}", version=self.API_VERSION)

    def resource_exists(self, name: str) -> bool:
        if not name or not name.strip():
            raise InvalidRequestError("delivery stream name must not be empty")
        try:
            self.client.describe_delivery_stream(DeliveryStreamName=name)
            return True
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ResourceNotFoundException":
                return False
            raise _to_transport_error(exc) from exc
        except BotoCoreError as exc:
            raise _to_transport_error(exc) from exc

    def append(self, stream: str, record: Mapping[str, Any]) -> AppendResult:
        if not stream or not stream.strip():
            raise InvalidRequestError("delivery stream name must not be empty")
        if not isinstance(record, Mapping):
            raise InvalidRequestError(f"record must be a JSON object, got {type(record).__name__}")
        try:
            data = json.dumps(enrich_record(record)) + "\n"
        except (TypeError, ValueError) as exc:
            raise InvalidRequestError(f"record is not JSON serializable: {exc}") from exc

        try:
            result = self.client.put_record(DeliveryStreamName=stream, Record={"Data": data.encode("utf-8")})
        except (ClientError, BotoCoreError) as exc:
            raise _to_transport_error(exc) from exc
        record_id = result.get("RecordId", "")
        logger.debug("Appended record stream=%s id=%s", stream, record_id)
        return AppendResult(accepted_id=record_id)
