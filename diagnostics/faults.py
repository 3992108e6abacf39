"""Fault taxonomy for failed calls to the search cluster or ingestion stream.

Raw failures (an error message plus an optional HTTP status) are matched
against an ordered rule table; the first rule that matches decides the
category. Message markers follow the vocabulary of the Node/Python socket
layers, urllib3, opensearch-py and the AWS service error responses.
"""

import re
from enum import Enum
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Tuple


class FaultCategory(str, Enum):
    UNCONFIGURED = "unconfigured"
    DNS_FAILURE = "dns_failure"
    NETWORK_UNREACHABLE = "network_unreachable"
    TIMED_OUT = "timed_out"
    AUTHENTICATION_FAILURE = "authentication_failure"
    AUTHORIZATION_FAILURE = "authorization_failure"
    RESOURCE_NOT_FOUND = "resource_not_found"
    UNKNOWN = "unknown"


def _markers(*phrases: str) -> "re.Pattern[str]":
    return re.compile("|".join(phrases), re.IGNORECASE)


_DNS = _markers(
    r"enotfound",
    r"eai_again",
    r"getaddrinfo",
    r"name or service not known",
    r"nodename nor servname",
    r"failed to resolve",
    r"temporary failure in name resolution",
    r"no address associated with hostname",
    r"name resolution",
)
_UNREACHABLE = _markers(
    r"econnrefused",
    r"connection refused",
    r"ehostunreach",
    r"enetunreach",
    r"network is unreachable",
    r"no route to host",
    r"host is unreachable",
    r"could not connect to the endpoint",
    r"econnreset",
    r"connection reset",
)
_DEADLINE = _markers(r"timeout", r"timed out", r"etimedout", r"deadline exceeded")
_DENIED = _markers(
    r"\b403\b",
    r"forbidden",
    r"not authorized",
    r"unauthorized",
    r"access ?denied",
    r"no permissions",
    r"security_exception",
)
_BAD_CREDENTIALS = _markers(
    r"security token included in the request is invalid",
    r"signature",
    r"unrecognizedclient",
    r"invalidclienttokenid",
    r"expiredtoken",
    r"token (has|is) expired",
    r"invalid credentials",
    r"unable to locate credentials",
)
_MISSING = _markers(
    r"\b404\b",
    r"index_not_found_exception",
    r"no such index",
    r"resourcenotfound",
    r"not found",
    r"does not exist",
)

Rule = Tuple[Callable[[str, Optional[int]], bool], Callable[[str, Optional[int]], FaultCategory]]


def _fixed(category: FaultCategory) -> Callable[[str, Optional[int]], FaultCategory]:
    return lambda message, status: category


def _denied_category(message: str, status: Optional[int]) -> FaultCategory:
    if status == 401 or _BAD_CREDENTIALS.search(message):
        return FaultCategory.AUTHENTICATION_FAILURE
    return FaultCategory.AUTHORIZATION_FAILURE


# Order matters: a DNS error that mentions "404" in its URL is still DNS.
_RULES: Tuple[Rule, ...] = (
    (lambda m, s: bool(_DNS.search(m)), _fixed(FaultCategory.DNS_FAILURE)),
    (lambda m, s: bool(_UNREACHABLE.search(m)), _fixed(FaultCategory.NETWORK_UNREACHABLE)),
    (lambda m, s: s in (408, 504) or bool(_DEADLINE.search(m)), _fixed(FaultCategory.TIMED_OUT)),
    (
        lambda m, s: s in (401, 403) or bool(_DENIED.search(m)) or bool(_BAD_CREDENTIALS.search(m)),
        _denied_category,
    ),
    (lambda m, s: s == 404 or bool(_MISSING.search(m)), _fixed(FaultCategory.RESOURCE_NOT_FOUND)),
)


def classify(message: Optional[str], status_code: Optional[int] = None) -> FaultCategory:
    """Map a raw failure to exactly one FaultCategory. Never raises."""
    text = message if isinstance(message, str) else ("" if message is None else str(message))
    status = status_code if isinstance(status_code, int) and not isinstance(status_code, bool) else None
    for matches, resolve in _RULES:
        if matches(text, status):
            return resolve(text, status)
    return FaultCategory.UNKNOWN


def classify_error(exc: BaseException) -> FaultCategory:
    """Classify an exception carrying ``message``/``status_code`` (TransportError)."""
    message = getattr(exc, "message", None) or str(exc)
    return classify(message, getattr(exc, "status_code", None))


_REMEDIATION_HINTS: Mapping[FaultCategory, str] = MappingProxyType(
    {
        FaultCategory.UNCONFIGURED: "set OPENSEARCH_ENDPOINT, AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY",
        FaultCategory.DNS_FAILURE: "check DNS resolution and VPC configuration (VPC endpoints only resolve inside the VPC)",
        FaultCategory.NETWORK_UNREACHABLE: "check security groups, network ACLs and that port 443 is open to the domain",
        FaultCategory.TIMED_OUT: "check security groups and network ACLs (outbound 443 from the host, inbound 443 on the domain)",
        FaultCategory.AUTHENTICATION_FAILURE: "check the AWS access key pair, session token and region used for signing",
        FaultCategory.AUTHORIZATION_FAILURE: "check access policy and IAM permissions",
        FaultCategory.RESOURCE_NOT_FOUND: "create the index or delivery stream, or check OPENSEARCH_INDEX / FIREHOSE_DELIVERY_STREAM_NAME",
        FaultCategory.UNKNOWN: "inspect the error message and service logs",
    }
)


def remediation_hint(category: FaultCategory) -> str:
    return _REMEDIATION_HINTS[category]
