import socket
import warnings

import pytest
import requests
from urllib3.exceptions import InsecureRequestWarning

from connectors.errors import TransportError
from connectors.models import EndpointDescriptor
from diagnostics import probes
from diagnostics.faults import FaultCategory, classify_error

ENDPOINT = EndpointDescriptor.parse("https://vpc-mydomain.us-east-1.es.amazonaws.com")


def test_resolve_host_dedupes_and_prefers_ipv4(monkeypatch):
    def fake_getaddrinfo(host, port, type=0):
        assert host == ENDPOINT.host and port == 443
        return [
            (socket.AF_INET6, socket.SOCK_STREAM, 6, "", ("fd00::5", 443, 0, 0)),
            (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("10.0.1.5", 443)),
            (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("10.0.1.5", 443)),
            (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("10.0.2.7", 443)),
        ]

    monkeypatch.setattr(probes.socket, "getaddrinfo", fake_getaddrinfo)
    assert probes.resolve_host(ENDPOINT) == ["10.0.1.5", "10.0.2.7", "fd00::5"]


def test_resolve_host_failure_is_dns(monkeypatch):
    def fail(host, port, type=0):
        raise socket.gaierror(-2, "Name or service not known")

    monkeypatch.setattr(probes.socket, "getaddrinfo", fail)
    with pytest.raises(TransportError) as excinfo:
        probes.resolve_host(ENDPOINT)
    assert classify_error(excinfo.value) is FaultCategory.DNS_FAILURE


class FakeResponse:
    status_code = 403

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def test_probe_transport_accepts_any_status(monkeypatch):
    seen = {}

    def fake_get(url, **kwargs):
        seen.update(url=url, **kwargs)
        return FakeResponse()

    monkeypatch.setattr(probes.requests, "get", fake_get)
    assert probes.probe_transport(ENDPOINT, 10.0) == 403
    assert seen["url"] == "https://vpc-mydomain.us-east-1.es.amazonaws.com:443/"
    assert seen["timeout"] == 10.0
    assert seen["verify"] is False


def test_probe_transport_timeout(monkeypatch):
    def fake_get(url, **kwargs):
        raise requests.ConnectTimeout("Connection to host timed out. (connect timeout=10)")

    monkeypatch.setattr(probes.requests, "get", fake_get)
    with pytest.raises(TransportError) as excinfo:
        probes.probe_transport(ENDPOINT, 10.0)
    assert classify_error(excinfo.value) is FaultCategory.TIMED_OUT


def test_probe_transport_refused(monkeypatch):
    def fake_get(url, **kwargs):
        raise requests.ConnectionError("Failed to establish a new connection: [Errno 111] Connection refused")

    monkeypatch.setattr(probes.requests, "get", fake_get)
    with pytest.raises(TransportError) as excinfo:
        probes.probe_transport(ENDPOINT, 10.0)
    assert classify_error(excinfo.value) is FaultCategory.NETWORK_UNREACHABLE


def test_insecure_warning_is_silenced_only_for_the_request(monkeypatch):
    def fake_get(url, **kwargs):
        warnings.warn("Unverified HTTPS request", InsecureRequestWarning)
        return FakeResponse()

    monkeypatch.setattr(probes.requests, "get", fake_get)
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        probes.probe_transport(ENDPOINT, 10.0)
        assert caught == []
        warnings.warn("Unverified HTTPS request", InsecureRequestWarning)
    assert [w.category for w in caught] == [InsecureRequestWarning]
