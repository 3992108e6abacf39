"""Value types shared by the connectors, the gateway and the diagnostics."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from .errors import InvalidRequestError

_DEFAULT_PORTS = {"https": 443, "http": 80}

# OpenSearch rejects from+size beyond index.max_result_window (10k by default)
MAX_QUERY_SIZE = 10000


@dataclass(frozen=True)
class EndpointDescriptor:
    host: str
    port: int
    scheme: str

    @classmethod
    def parse(cls, url: str) -> "EndpointDescriptor":
        """Parse an endpoint URL such as ``https://vpc-x.us-east-1.es.amazonaws.com``.

        A bare host name is treated as https. Raises ``ValueError`` when no
        host can be extracted or the scheme is not http/https.
        """
        if not url or not url.strip():
            raise ValueError("endpoint URL is empty")
        raw = url.strip()
        if "://" not in raw:
            raw = f"https://{raw}"
        parsed = urlparse(raw)
        scheme = (parsed.scheme or "").lower()
        if scheme not in _DEFAULT_PORTS:
            raise ValueError(f"unsupported endpoint scheme '{parsed.scheme}'")
        if not parsed.hostname:
            raise ValueError(f"no host in endpoint URL '{url}'")
        try:
            port = parsed.port or _DEFAULT_PORTS[scheme]
        except ValueError as exc:  # port out of range / not numeric
            raise ValueError(f"invalid port in endpoint URL '{url}'") from exc
        return cls(host=parsed.hostname, port=port, scheme=scheme)

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    @property
    def use_ssl(self) -> bool:
        return self.scheme == "https"


@dataclass(frozen=True)
class AwsCredentials:
    access_key_id: str
    secret_access_key: str
    region: str = "us-east-1"
    session_token: Optional[str] = None

    @classmethod
    def from_values(
        cls,
        access_key_id: Optional[str],
        secret_access_key: Optional[str],
        region: Optional[str] = None,
        session_token: Optional[str] = None,
    ) -> Optional["AwsCredentials"]:
        """Return credentials, or None when the key pair is incomplete."""
        if not access_key_id or not secret_access_key:
            return None
        return cls(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            region=region or "us-east-1",
            session_token=session_token or None,
        )


@dataclass(frozen=True)
class ClusterInfo:
    cluster_id: str
    version: str


@dataclass(frozen=True)
class QuerySpec:
    """Structured search request.

    ``exists_field`` switches from ``match_all`` to an ``exists`` query.
    Results are sorted by ``sort_field`` descending.
    """

    size: int = 10
    offset: int = 0
    exists_field: Optional[str] = None
    sort_field: Optional[str] = "@timestamp"

    def __post_init__(self):
        for name in ("size", "offset"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise InvalidRequestError(f"{name} must be an integer, got {value!r}")
        if self.size < 0 or self.size > MAX_QUERY_SIZE:
            raise InvalidRequestError(f"size must be between 0 and {MAX_QUERY_SIZE}")
        if self.offset < 0:
            raise InvalidRequestError("from must not be negative")
        if self.exists_field is not None and not str(self.exists_field).strip():
            raise InvalidRequestError("exists field must not be blank")

    def to_body(self) -> Dict[str, Any]:
        if self.exists_field:
            query: Dict[str, Any] = {"exists": {"field": self.exists_field}}
        else:
            query = {"match_all": {}}
        body: Dict[str, Any] = {"query": query, "size": self.size, "from": self.offset}
        if self.sort_field:
            body["sort"] = [{self.sort_field: {"order": "desc"}}]
        return body


@dataclass(frozen=True)
class SearchHit:
    id: str
    source: Dict[str, Any]
    score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "source": self.source, "score": self.score}


@dataclass(frozen=True)
class SearchResult:
    total: int
    items: Tuple[SearchHit, ...] = field(default_factory=tuple)

    @property
    def count(self) -> int:
        return len(self.items)

    def to_list(self) -> List[Dict[str, Any]]:
        return [hit.to_dict() for hit in self.items]


@dataclass(frozen=True)
class AppendResult:
    accepted_id: str
