from typing import Optional


class TransportError(Exception):
    """Failure reported by a remote service call.

    This is the only exception the connectors raise for remote failures.
    ``status_code`` is the HTTP status when the service answered, ``None``
    when the request never got a response (DNS, refused, timeout).
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"TransportError({self.message!r}, status_code={self.status_code!r})"


class InvalidRequestError(ValueError):
    """Malformed query or record, rejected before any network call."""
