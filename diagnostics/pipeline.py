"""Connectivity diagnostic pipeline.

Five read-only probes run in order against a search cluster (or any other
``RemoteService``):

    config -> dns -> transport -> handshake -> resource

Each stage yields exactly one ``Finding``. A stage only runs when the one
before it succeeded, so the first blocking failure ends the run and the
report keeps the findings gathered so far. The pipeline itself never raises
for a failing stage.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from connectors.base import RemoteService
from connectors.errors import TransportError
from connectors.models import AwsCredentials, EndpointDescriptor

from . import probes
from .faults import FaultCategory, classify_error

logger = logging.getLogger(__name__)

DEFAULT_TRANSPORT_TIMEOUT_MS = 10000
DEFAULT_HANDSHAKE_TIMEOUT_MS = 30000


class StageName(str, Enum):
    CONFIG = "config"
    DNS = "dns"
    TRANSPORT = "transport"
    HANDSHAKE = "handshake"
    RESOURCE = "resource"


STAGE_ORDER: Tuple[StageName, ...] = tuple(StageName)


@dataclass(frozen=True)
class Success:
    detail: str = ""
    payload: Any = None


@dataclass(frozen=True)
class Failure:
    category: FaultCategory
    detail: str = ""


Outcome = Union[Success, Failure]


def _plain(payload: Any) -> Any:
    """JSON-ready copy of a (read-only) success payload."""
    if isinstance(payload, Mapping):
        return {key: _plain(value) for key, value in payload.items()}
    if isinstance(payload, tuple):
        return [_plain(item) for item in payload]
    return payload


@dataclass(frozen=True)
class Finding:
    stage: StageName
    outcome: Outcome
    duration_ms: int

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, Success)

    @property
    def category(self) -> Optional[FaultCategory]:
        return self.outcome.category if isinstance(self.outcome, Failure) else None

    def to_dict(self) -> Dict[str, Any]:
        outcome: Dict[str, Any]
        if isinstance(self.outcome, Success):
            outcome = {"status": "success", "detail": self.outcome.detail, "payload": _plain(self.outcome.payload)}
        else:
            outcome = {"status": "failure", "category": self.outcome.category.value, "detail": self.outcome.detail}
        return {"stage": self.stage.value, "outcome": outcome, "durationMs": self.duration_ms}


@dataclass(frozen=True)
class DiagnosticReport:
    """Findings of one run, in stage order. Immutable once returned."""

    findings: Tuple[Finding, ...]

    def __post_init__(self):
        stages = [STAGE_ORDER.index(f.stage) for f in self.findings]
        if stages != list(range(len(stages))):
            raise ValueError(f"findings out of stage order: {[f.stage.value for f in self.findings]}")

    @property
    def succeeded(self) -> bool:
        return len(self.findings) == len(STAGE_ORDER) and all(f.succeeded for f in self.findings)

    @property
    def failure(self) -> Optional[Finding]:
        """The finding that ended the run early, if any."""
        for finding in self.findings:
            if not finding.succeeded:
                return finding
        return None

    def __len__(self) -> int:
        return len(self.findings)

    def __iter__(self):
        return iter(self.findings)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.succeeded, "findings": [f.to_dict() for f in self.findings]}


ServiceFactory = Callable[[EndpointDescriptor, AwsCredentials, float], RemoteService]


class _StageFailed(Exception):
    def __init__(self, category: FaultCategory, detail: str):
        super().__init__(detail)
        self.category = category
        self.detail = detail


class ConnectivityDiagnostics:
    """Runs the five-stage probe sequence and returns a DiagnosticReport.

    Parameters
    ----------
    endpoint_url : str | None
        Endpoint to probe, as configured (may be missing).
    credentials : AwsCredentials | None
        Signing material (may be missing).
    resource_name : str
        Index (or stream) whose existence the last stage checks.
    service_factory : callable
        ``(endpoint, credentials, timeout_seconds) -> RemoteService``. Only
        called when the handshake stage is reached.
    resolver, transport_probe : callable
        Injection points for the DNS and reachability probes.
    clock : callable
        Monotonic clock in seconds, used for ``duration_ms``.
    """

    def __init__(
        self,
        endpoint_url: Optional[str],
        credentials: Optional[AwsCredentials],
        resource_name: str,
        service_factory: ServiceFactory,
        transport_timeout_ms: int = DEFAULT_TRANSPORT_TIMEOUT_MS,
        handshake_timeout_ms: int = DEFAULT_HANDSHAKE_TIMEOUT_MS,
        resolver: Callable[[EndpointDescriptor], Sequence[str]] = probes.resolve_host,
        transport_probe: Callable[[EndpointDescriptor, float], int] = probes.probe_transport,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.endpoint_url = endpoint_url
        self.credentials = credentials
        self.resource_name = resource_name
        self.service_factory = service_factory
        self.transport_timeout_ms = transport_timeout_ms
        self.handshake_timeout_ms = handshake_timeout_ms
        self.resolver = resolver
        self.transport_probe = transport_probe
        self.clock = clock

    def run(self) -> DiagnosticReport:
        # Per-run state lives in locals so one instance can serve concurrent runs
        state: Dict[str, Any] = {}
        stages: List[Tuple[StageName, Callable[[Dict[str, Any]], Success]]] = [
            (StageName.CONFIG, self._check_config),
            (StageName.DNS, self._check_dns),
            (StageName.TRANSPORT, self._check_transport),
            (StageName.HANDSHAKE, self._check_handshake),
            (StageName.RESOURCE, self._check_resource),
        ]
        findings: List[Finding] = []
        for stage, check in stages:
            finding = self._run_stage(stage, check, state)
            findings.append(finding)
            if not finding.succeeded and self._is_blocking(finding):
                logger.warning(
                    "Diagnostics stopped at stage '%s': %s (%s)",
                    stage.value,
                    finding.category.value,
                    finding.outcome.detail,
                )
                break
        return DiagnosticReport(findings=tuple(findings))

    @staticmethod
    def _is_blocking(finding: Finding) -> bool:
        if finding.stage is StageName.HANDSHAKE:
            return finding.category is not FaultCategory.RESOURCE_NOT_FOUND
        return True

    def _run_stage(self, stage: StageName, check, state: Dict[str, Any]) -> Finding:
        started = self.clock()
        try:
            outcome: Outcome = check(state)
        except _StageFailed as failed:
            outcome = Failure(failed.category, failed.detail)
        duration_ms = int(round((self.clock() - started) * 1000))
        logger.debug("Stage %s finished in %dms: %s", stage.value, duration_ms, outcome)
        return Finding(stage=stage, outcome=outcome, duration_ms=duration_ms)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------
    def _check_config(self, state: Dict[str, Any]) -> Success:
        missing = []
        if not self.endpoint_url:
            missing.append("endpoint")
        if self.credentials is None:
            missing.append("credentials")
        if not (self.resource_name or "").strip():
            missing.append("target resource name")
        if missing:
            raise _StageFailed(FaultCategory.UNCONFIGURED, f"missing {', '.join(missing)}")
        try:
            endpoint = EndpointDescriptor.parse(self.endpoint_url)
        except ValueError as exc:
            raise _StageFailed(FaultCategory.UNCONFIGURED, str(exc))
        state["endpoint"] = endpoint
        return Success(
            detail=f"{endpoint.scheme}://{endpoint.host}:{endpoint.port} (region {self.credentials.region})",
            payload=MappingProxyType({"host": endpoint.host, "port": endpoint.port, "scheme": endpoint.scheme}),
        )

    def _check_dns(self, state: Dict[str, Any]) -> Success:
        endpoint = state["endpoint"]
        try:
            addresses = tuple(self.resolver(endpoint))
        except TransportError as exc:
            raise _StageFailed(FaultCategory.DNS_FAILURE, exc.message)
        return Success(detail=f"resolved {', '.join(addresses)}", payload=addresses)

    def _check_transport(self, state: Dict[str, Any]) -> Success:
        endpoint = state["endpoint"]
        timeout = self.transport_timeout_ms / 1000.0
        started = self.clock()
        try:
            status = self.transport_probe(endpoint, timeout)
        except TransportError as exc:
            category = classify_error(exc)
            if category not in (FaultCategory.TIMED_OUT, FaultCategory.DNS_FAILURE):
                category = FaultCategory.NETWORK_UNREACHABLE
            raise _StageFailed(category, exc.message)
        # The probe's timeout is per connection attempt; a host with several
        # dead addresses can answer only after the stage bound has passed.
        elapsed = self.clock() - started
        if elapsed > timeout:
            raise _StageFailed(
                FaultCategory.TIMED_OUT,
                f"HTTP {status} from {endpoint.base_url} arrived after {elapsed:.1f}s, over the {timeout:g}s bound",
            )
        return Success(detail=f"HTTP {status} from {endpoint.base_url}", payload=status)

    def _check_handshake(self, state: Dict[str, Any]) -> Success:
        service = self.service_factory(state["endpoint"], self.credentials, self.handshake_timeout_ms / 1000.0)
        state["service"] = service
        try:
            info = service.health_check()
        except TransportError as exc:
            raise _StageFailed(classify_error(exc), exc.message)
        return Success(
            detail=f"cluster {info.cluster_id}, version {info.version}",
            payload=MappingProxyType({"clusterId": info.cluster_id, "version": info.version}),
        )

    def _check_resource(self, state: Dict[str, Any]) -> Success:
        service: RemoteService = state["service"]
        try:
            exists = service.resource_exists(self.resource_name)
        except TransportError as exc:
            raise _StageFailed(classify_error(exc), exc.message)
        if exists:
            return Success(detail=f"'{self.resource_name}' exists", payload=True)
        return Success(detail=f"'{self.resource_name}' does not exist", payload=False)
