"""Build the shared service handles from configuration.

Handles are created once by the launcher and passed to whatever needs them.
"""

import logging
from typing import Optional

from .firehose_client import FirehoseStream
from .models import AwsCredentials, EndpointDescriptor
from .opensearch_client import OpenSearchCluster

logger = logging.getLogger(__name__)


def credentials_from_config(cfg) -> Optional[AwsCredentials]:
    return AwsCredentials.from_values(
        cfg.AWS_ACCESS_KEY_ID,
        cfg.AWS_SECRET_ACCESS_KEY,
        region=cfg.AWS_REGION,
        session_token=cfg.AWS_SESSION_TOKEN,
    )


def search_cluster_factory(cfg):
    """Return ``(endpoint, credentials, timeout) -> OpenSearchCluster`` for the pipeline."""

    def build(endpoint: EndpointDescriptor, credentials: Optional[AwsCredentials], timeout: float) -> OpenSearchCluster:
        return OpenSearchCluster(
            endpoint,
            credentials,
            timeout=timeout,
            verify_certs=cfg.OPENSEARCH_VERIFY_CERTS,
            service=cfg.OPENSEARCH_SIGNING_SERVICE,
        )

    return build


def build_search_cluster(cfg) -> Optional[OpenSearchCluster]:
    """Return the cluster handle, or None when no usable endpoint is configured."""
    if not cfg.OPENSEARCH_ENDPOINT:
        logger.warning("OPENSEARCH_ENDPOINT is not set; search routes will answer 503")
        return None
    try:
        endpoint = EndpointDescriptor.parse(cfg.OPENSEARCH_ENDPOINT)
    except ValueError as exc:
        logger.error("Invalid OPENSEARCH_ENDPOINT %r: %s", cfg.OPENSEARCH_ENDPOINT, exc)
        return None
    build = search_cluster_factory(cfg)
    return build(endpoint, credentials_from_config(cfg), cfg.OPENSEARCH_REQUEST_TIMEOUT)


def build_ingestion_stream(cfg) -> FirehoseStream:
    return FirehoseStream(
        credentials=credentials_from_config(cfg),
        region=cfg.AWS_REGION,
        timeout=cfg.OPENSEARCH_REQUEST_TIMEOUT,
    )
