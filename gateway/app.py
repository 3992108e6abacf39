"""FastAPI gateway: forwards events to the delivery stream and runs read
queries against the search cluster.

Handlers are plain ``def`` functions; FastAPI runs them in its threadpool, so
the blocking facades never stall the event loop. The facades are injected
through ``create_app`` and shared read-only by all requests.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from connectors.base import IngestionStream, SearchCluster
from connectors.errors import InvalidRequestError, TransportError
from connectors.models import AwsCredentials, QuerySpec
from diagnostics.faults import remediation_hint
from diagnostics.pipeline import (
    DEFAULT_HANDSHAKE_TIMEOUT_MS,
    DEFAULT_TRANSPORT_TIMEOUT_MS,
    ConnectivityDiagnostics,
    ServiceFactory,
)

from . import responses

logger = logging.getLogger(__name__)

DEFAULT_PIPE_DATA = {"pipe-20": 112}
PIPE_FIELD = "pipe-20"


@dataclass(frozen=True)
class GatewaySettings:
    endpoint_url: Optional[str] = None
    index: str = "mydomain"
    stream_name: Optional[str] = None
    credentials: Optional[AwsCredentials] = None
    environment: str = "production"
    transport_timeout_ms: int = DEFAULT_TRANSPORT_TIMEOUT_MS
    handshake_timeout_ms: int = DEFAULT_HANDSHAKE_TIMEOUT_MS

    @classmethod
    def from_config(cls, cfg) -> "GatewaySettings":
        return cls(
            endpoint_url=cfg.OPENSEARCH_ENDPOINT,
            index=cfg.OPENSEARCH_INDEX,
            stream_name=cfg.FIREHOSE_STREAM,
            credentials=AwsCredentials.from_values(
                cfg.AWS_ACCESS_KEY_ID,
                cfg.AWS_SECRET_ACCESS_KEY,
                region=cfg.AWS_REGION,
                session_token=cfg.AWS_SESSION_TOKEN,
            ),
            environment=cfg.ENVIRONMENT,
            transport_timeout_ms=cfg.TRANSPORT_TIMEOUT_MS,
            handshake_timeout_ms=cfg.HANDSHAKE_TIMEOUT_MS,
        )


_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _int_param(raw: Optional[str], default: int) -> int:
    """Lenient query-string integer.

    Reads the leading digits ("10.5" -> 10, "12abc" -> 12); a missing,
    non-numeric or zero value falls back to ``default``.
    """
    match = _LEADING_INT.match(raw or "")
    if match is None:
        return default
    return int(match.group(1)) or default


def _json(body, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=body, status_code=status_code)


def create_app(
    search: Optional[SearchCluster],
    stream: Optional[IngestionStream],
    settings: GatewaySettings,
    pipeline_options: Optional[Dict[str, Any]] = None,
    diagnostics_factory: Optional[ServiceFactory] = None,
) -> FastAPI:
    """Build the app around shared facades.

    ``pipeline_options`` are extra keyword arguments for
    ``ConnectivityDiagnostics`` (resolver, transport probe, clock).
    ``diagnostics_factory`` builds a dedicated handle for each
    ``/test-connection`` run, with the handshake timeout; without it the
    shared search handle is reused.
    """
    app = FastAPI(title="Search/Ingest Bridge", version="1.0.0")

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return _json({"success": False, "error": "invalid request",
                      "details": [err.get("msg") for err in exc.errors()],
                      "timestamp": responses.utc_timestamp()}, 400)

    @app.exception_handler(InvalidRequestError)
    async def _invalid_request(request: Request, exc: InvalidRequestError):
        return _json({"success": False, "error": str(exc), "timestamp": responses.utc_timestamp()}, 400)

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _json({"success": False, "error": str(exc) or exc.__class__.__name__,
                      "timestamp": responses.utc_timestamp()}, 500)

    # ------------------------------------------------------------------
    # Health / diagnostics
    # ------------------------------------------------------------------
    @app.get("/health")
    def health():
        return {
            "status": "healthy",
            "message": "Search/ingest bridge is running",
            "timestamp": responses.utc_timestamp(),
            "environment": settings.environment,
            "opensearchEndpoint": settings.endpoint_url,
            "firehoseStream": settings.stream_name,
            "hasCredentials": settings.credentials is not None,
        }

    @app.get("/test-connection")
    def test_connection():
        built = []

        def factory(endpoint, credentials, timeout):
            if diagnostics_factory is None:
                return search
            service = diagnostics_factory(endpoint, credentials, timeout)
            built.append(service)
            return service

        pipeline = ConnectivityDiagnostics(
            endpoint_url=settings.endpoint_url if search is not None else None,
            credentials=settings.credentials,
            resource_name=settings.index,
            service_factory=factory,
            transport_timeout_ms=settings.transport_timeout_ms,
            handshake_timeout_ms=settings.handshake_timeout_ms,
            **(pipeline_options or {}),
        )
        try:
            report = pipeline.run()
        finally:
            for service in built:
                service.close()
        body = report.to_dict()
        body["timestamp"] = responses.utc_timestamp()
        failure = report.failure
        if failure is None:
            return body
        category = failure.category
        body.update(
            error=f"{failure.stage.value} stage failed: {failure.outcome.detail}",
            category=category.value,
            remediation=remediation_hint(category),
            troubleshooting=responses.troubleshooting_flags(category),
        )
        return _json(body, responses.http_status_for(category))

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------
    def _append(record: Any, message: str):
        if stream is None or not settings.stream_name:
            body = responses.unconfigured_payload("Delivery stream")
            return _json(body, responses.status_of(body))
        try:
            result = stream.append(settings.stream_name, record)
        except TransportError as exc:
            logger.error("Send to %s failed: %s", settings.stream_name, exc.message)
            body = responses.error_payload(exc)
            return _json(body, responses.status_of(body))
        logger.info("Data sent: recordId=%s stream=%s", result.accepted_id, settings.stream_name)
        return responses.success_payload(message=message, recordId=result.accepted_id, data=record)

    @app.post("/send")
    def send(record: Any = Body(None)):
        if not isinstance(record, dict):
            raise InvalidRequestError("request body must be a JSON object")
        return _append(record, "Data sent to Firehose successfully")

    @app.post("/send-pipe-data")
    def send_pipe_data(record: Any = Body(None)):
        if record in (None, {}):
            record = dict(DEFAULT_PIPE_DATA)
        if not isinstance(record, dict):
            raise InvalidRequestError("request body must be a JSON object")
        return _append(record, "Pipe data sent to Firehose successfully")

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------
    def _search(spec: QuerySpec, note: str, error_prefix: str = "", **extra: Any):
        if search is None:
            body = responses.unconfigured_payload("OpenSearch endpoint", troubleshooting=True)
            return _json(body, responses.status_of(body))
        try:
            result = search.query(settings.index, spec)
        except TransportError as exc:
            logger.error("Search on %s failed: %s", settings.index, exc.message)
            body = responses.error_payload(exc, prefix=error_prefix, troubleshooting=True)
            return _json(body, responses.status_of(body))
        return responses.success_payload(
            total=result.total,
            count=result.count,
            data=result.to_list(),
            note=note,
            **extra,
        )

    @app.get("/search/all")
    def search_all(size: Optional[str] = Query(None), offset: Optional[str] = Query(None, alias="from")):
        spec = QuerySpec(size=_int_param(size, 10), offset=_int_param(offset, 0))
        return _search(spec, "Documents from the OpenSearch domain")

    @app.get("/search/pipe-data")
    def search_pipe_data(size: Optional[str] = Query(None)):
        spec = QuerySpec(size=_int_param(size, 10), exists_field=PIPE_FIELD)
        return _search(spec, f"Documents carrying '{PIPE_FIELD}'")

    @app.get("/search/real-opensearch")
    def search_real(size: Optional[str] = Query(None), offset: Optional[str] = Query(None, alias="from")):
        spec = QuerySpec(size=_int_param(size, 10), offset=_int_param(offset, 0))
        logger.info("Querying OpenSearch index %s", settings.index)
        return _search(
            spec,
            "Documents retrieved from the OpenSearch domain",
            error_prefix="Failed to query real OpenSearch: ",
            endpoint=settings.endpoint_url,
        )

    return app


__all__ = ["create_app", "GatewaySettings"]
