"""Response bodies for the gateway routes.

Every body carries ``success`` and ``timestamp``. Failed remote calls are
classified once here; route handlers never look at error text.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from diagnostics.faults import FaultCategory, classify_error, remediation_hint

_NETWORK = {FaultCategory.DNS_FAILURE, FaultCategory.NETWORK_UNREACHABLE, FaultCategory.TIMED_OUT}
_PERMISSION = {FaultCategory.AUTHENTICATION_FAILURE, FaultCategory.AUTHORIZATION_FAILURE}

_HTTP_STATUS = {
    FaultCategory.UNCONFIGURED: 503,
    FaultCategory.TIMED_OUT: 504,
    FaultCategory.RESOURCE_NOT_FOUND: 404,
    FaultCategory.UNKNOWN: 500,
}


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def http_status_for(category: FaultCategory) -> int:
    """Upstream failures default to 502 Bad Gateway."""
    return _HTTP_STATUS.get(category, 502)


def troubleshooting_flags(category: FaultCategory) -> Dict[str, bool]:
    return {
        "networkIssue": category in _NETWORK,
        "dnsIssue": category is FaultCategory.DNS_FAILURE,
        "permissionIssue": category in _PERMISSION,
        "credentialIssue": category is FaultCategory.AUTHENTICATION_FAILURE,
        "indexMissing": category is FaultCategory.RESOURCE_NOT_FOUND,
        "configurationIssue": category is FaultCategory.UNCONFIGURED,
    }


def success_payload(**fields: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    body.update(fields)
    body["timestamp"] = utc_timestamp()
    return body


def failure_payload(
    message: str,
    category: FaultCategory,
    troubleshooting: bool = False,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "success": False,
        "error": message,
        "category": category.value,
        "remediation": remediation_hint(category),
        "timestamp": utc_timestamp(),
    }
    if troubleshooting:
        body["troubleshooting"] = troubleshooting_flags(category)
    return body


def error_payload(exc: BaseException, prefix: str = "", troubleshooting: bool = False) -> Dict[str, Any]:
    """Classify a TransportError into a failure body."""
    category = classify_error(exc)
    message = getattr(exc, "message", None) or str(exc)
    return failure_payload(f"{prefix}{message}", category, troubleshooting=troubleshooting)


def unconfigured_payload(what: str, troubleshooting: bool = False) -> Dict[str, Any]:
    return failure_payload(f"{what} is not configured", FaultCategory.UNCONFIGURED, troubleshooting)


def status_of(body: Dict[str, Any]) -> int:
    """HTTP status matching a failure body's category."""
    try:
        return http_status_for(FaultCategory(body["category"]))
    except (KeyError, ValueError):
        return 500
