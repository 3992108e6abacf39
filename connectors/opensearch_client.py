import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError

# Import the class symbols directly so tests can monkeypatch
from opensearchpy import AWSV4SignerAuth, OpenSearch, RequestsHttpConnection  # type: ignore
from opensearchpy.exceptions import OpenSearchException  # type: ignore

from .base import SearchCluster
from .errors import InvalidRequestError, TransportError
from .models import AwsCredentials, ClusterInfo, EndpointDescriptor, QuerySpec, SearchHit, SearchResult

logger = logging.getLogger(__name__)


def _to_transport_error(exc: Exception) -> TransportError:
    """Flatten an opensearch-py / botocore exception into a TransportError."""
    status = getattr(exc, "status_code", None)
    if not isinstance(status, int) or isinstance(status, bool):
        status = None  # ConnectionError reports "N/A"
    message = str(exc) or exc.__class__.__name__
    info = getattr(exc, "info", None)
    if isinstance(info, dict):
        detail = info.get("message") or info.get("Message")
        error = info.get("error")
        if not detail and isinstance(error, dict):
            detail = error.get("reason")
        if detail and str(detail) not in message:
            message = f"{message}: {detail}"
    return TransportError(message, status_code=status)


class OpenSearchCluster(SearchCluster):
    """Search cluster adapter for an AWS OpenSearch domain.

    Requests are signed with SigV4 when credentials are given. The wrapped
    client is built once and reused; it holds no per-call state, so one
    instance can serve concurrent requests.

    Parameters
    ----------
    endpoint : EndpointDescriptor
        Domain endpoint (VPC or public).
    credentials : AwsCredentials | None
        Key pair used for signing. ``None`` sends unsigned requests.
    timeout : float
        Per-request timeout in seconds.
    verify_certs : bool
        TLS certificate verification.
    service : str
        Signing service name, ``es`` for managed domains, ``aoss`` for serverless.
    os_client : OpenSearch | None
        Pre-instantiated low-level client (mainly for tests / dependency injection).
    """

    def __init__(
        self,
        endpoint: EndpointDescriptor,
        credentials: Optional[AwsCredentials] = None,
        timeout: float = 30.0,
        verify_certs: bool = True,
        service: str = "es",
        os_client: Optional[OpenSearch] = None,
    ):
        self.endpoint = endpoint
        self.credentials = credentials
        self.timeout = timeout
        self.verify_certs = verify_certs
        self.service = service
        self.client = os_client if os_client is not None else self._build_client()

    def _build_client(self) -> OpenSearch:
        auth = None
        if self.credentials is not None:
            session = boto3.Session(
                aws_access_key_id=self.credentials.access_key_id,
                aws_secret_access_key=self.credentials.secret_access_key,
                aws_session_token=self.credentials.session_token,
                region_name=self.credentials.region,
            )
            auth = AWSV4SignerAuth(session.get_credentials(), self.credentials.region, self.service)
        logger.debug("Building OpenSearch client for %s (signed=%s)", self.endpoint.base_url, auth is not None)
        return OpenSearch(
            hosts=[{"host": self.endpoint.host, "port": self.endpoint.port}],
            http_auth=auth,
            use_ssl=self.endpoint.use_ssl,
            verify_certs=self.verify_certs,
            ssl_show_warn=False,
            connection_class=RequestsHttpConnection,
            timeout=self.timeout,
            max_retries=0,
            retry_on_timeout=False,
            pool_maxsize=20,
        )

    # ------------------------------------------------------------------
    # RemoteService
    # ------------------------------------------------------------------
    def health_check(self) -> ClusterInfo:
        try:
            info = self.client.info()
        except (OpenSearchException, BotoCoreError) as exc:
            raise _to_transport_error(exc) from exc
        version = (info.get("version") or {}).get("number", "unknown")
        cluster_id = info.get("cluster_name") or info.get("cluster_uuid") or "unknown"
        return ClusterInfo(cluster_id=str(cluster_id), version=str(version))

    def resource_exists(self, name: str) -> bool:
        if not name or not name.strip():
            raise InvalidRequestError("index name must not be empty")
        try:
            return bool(self.client.indices.exists(index=name))
        except (OpenSearchException, BotoCoreError) as exc:
            raise _to_transport_error(exc) from exc

    # ------------------------------------------------------------------
    # SearchCluster
    # ------------------------------------------------------------------
    def query(self, resource: str, spec: QuerySpec) -> SearchResult:
        if not resource or not resource.strip():
            raise InvalidRequestError("index name must not be empty")
        if not isinstance(spec, QuerySpec):
            raise InvalidRequestError(f"expected QuerySpec, got {type(spec).__name__}")
        try:
            response = self.client.search(index=resource, body=spec.to_body())
        except (OpenSearchException, BotoCoreError) as exc:
            raise _to_transport_error(exc) from exc

        hits = response.get("hits") or {}
        total = hits.get("total", 0)
        # 7.x+ reports {"value": n, "relation": "eq"}, older clusters a bare int
        if isinstance(total, dict):
            total = total.get("value", 0)
        items = tuple(
            SearchHit(id=str(hit.get("_id")), source=hit.get("_source") or {}, score=hit.get("_score"))
            for hit in hits.get("hits", [])
        )
        logger.debug("Query index=%s total=%s returned=%d", resource, total, len(items))
        return SearchResult(total=int(total or 0), items=items)

    # Maintenance helpers used by the listing script
    def list_indices(self) -> List[Dict[str, Any]]:
        """Return ``[{'index', 'docs_count', 'store_size'}]`` sorted by name."""
        try:
            rows = self.client.cat.indices(format="json")
        except (OpenSearchException, BotoCoreError) as exc:
            raise _to_transport_error(exc) from exc
        indices = [
            {
                "index": row.get("index"),
                "docs_count": int(row.get("docs.count") or 0),
                "store_size": row.get("store.size") or "0b",
            }
            for row in rows or []
        ]
        return sorted(indices, key=lambda row: row["index"] or "")

    def document_count(self, index: str) -> int:
        if not index or not index.strip():
            raise InvalidRequestError("index name must not be empty")
        try:
            return int(self.client.count(index=index).get("count", 0))
        except (OpenSearchException, BotoCoreError) as exc:
            raise _to_transport_error(exc) from exc

    def close(self) -> None:
        """Close underlying transport (best-effort)."""
        try:
            self.client.transport.close()  # type: ignore[attr-defined]
        except Exception as exc:  # pragma: no cover (network specifics)
            logger.debug("Ignoring error while closing OpenSearch transport: %s", exc)
