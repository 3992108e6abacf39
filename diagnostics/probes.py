"""Low-level network probes used by the diagnostic pipeline.

Both probes raise ``TransportError`` on failure so the pipeline can treat
them like facade calls.
"""

import logging
import socket
import warnings
from typing import List

import requests
from urllib3.exceptions import InsecureRequestWarning

from connectors.errors import TransportError
from connectors.models import EndpointDescriptor

logger = logging.getLogger(__name__)


def resolve_host(endpoint: EndpointDescriptor) -> List[str]:
    """Resolve the endpoint host to its unique addresses (IPv4 first)."""
    try:
        results = socket.getaddrinfo(endpoint.host, endpoint.port, type=socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError) as exc:
        raise TransportError(f"getaddrinfo ENOTFOUND {endpoint.host}: {exc}") from exc

    addresses: List[str] = []
    for family, _, _, _, sockaddr in sorted(results, key=lambda r: r[0] != socket.AF_INET):
        address = sockaddr[0]
        if address not in addresses:
            addresses.append(address)
    if not addresses:
        raise TransportError(f"getaddrinfo ENOTFOUND {endpoint.host}: no addresses returned")
    return addresses


def probe_transport(endpoint: EndpointDescriptor, timeout: float) -> int:
    """Issue ``GET /`` and return the HTTP status, whatever it is.

    Any answer proves reachability; only a missing answer is a failure.
    ``timeout`` bounds each connect attempt and each read, in seconds; the
    pipeline checks the stage as a whole against the same bound.
    """
    url = f"{endpoint.base_url}/"
    try:
        # Certificates are checked by the handshake stage, not here
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", InsecureRequestWarning)
            # stream=True: headers are enough, do not download the body
            with requests.get(url, timeout=timeout, verify=False, allow_redirects=False, stream=True) as response:
                logger.debug("Transport probe %s -> HTTP %s", url, response.status_code)
                return response.status_code
    except requests.Timeout as exc:
        raise TransportError(f"connection to {url} timed out after {timeout:g}s") from exc
    except requests.RequestException as exc:
        raise TransportError(f"connection to {url} failed: {exc}") from exc
