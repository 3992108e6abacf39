"""Abstract interfaces for the remote services.

Concrete adapters own the network transport and request signing; callers
only see these methods and ``TransportError``. Adapters never retry, so each
method issues at most one remote request per call.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping

from .models import AppendResult, ClusterInfo, QuerySpec, SearchResult


class RemoteService(ABC):
    """Operations shared by the search cluster and the ingestion stream."""

    @abstractmethod
    def health_check(self) -> ClusterInfo:
        """Authenticated round-trip returning cluster identity and version."""

    @abstractmethod
    def resource_exists(self, name: str) -> bool:
        """Return True if the named index or delivery stream exists."""

    def close(self) -> None:
        """Release the underlying transport. No-op unless the adapter holds one."""


class SearchCluster(RemoteService):

    @abstractmethod
    def query(self, resource: str, spec: QuerySpec) -> SearchResult:
        """Run ``spec`` against index ``resource``."""


class IngestionStream(RemoteService):

    @abstractmethod
    def append(self, stream: str, record: Mapping[str, Any]) -> AppendResult:
        """Append one record to ``stream``."""
