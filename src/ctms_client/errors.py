from __future__ import annotations

from typing import Any, Dict, Optional


class CtmsClientError(Exception):
    """Base error for client failures."""


class CtmsTransportError(CtmsClientError):
    """Network-level failure (DNS, connect, timeout, reset)."""


class CtmsHTTPError(CtmsClientError):
    def __init__(
        self,
        *,
        status_code: int,
        method: str,
        url: str,
        message: str,
        response_json: Optional[Dict[str, Any]] = None,
        response_text: Optional[str] = None,
    ):
        super().__init__(f"{status_code} {method} {url}: {message}")
        self.status_code = status_code
        self.method = method
        self.url = url
        self.message = message
        self.response_json = response_json
        self.response_text = response_text

    @property
    def incident(self) -> Optional[Any]:
        if not self.response_json:
            return None
        return self.response_json.get("incident")


class ConflictError(CtmsHTTPError):
    """HTTP 409 carrying a structured CTMS incident payload."""

    @property
    def code(self) -> Optional[str]:
        code = (self.response_json or {}).get("code")
        return str(code) if code is not None else None

    @property
    def is_name_collision(self) -> bool:
        return self.code == "409"


class CtmsParseError(CtmsClientError):
    pass


class CtmsModelValidationError(CtmsClientError):
    pass


class DiscoveryError(CtmsClientError):
    """A required resource or relation is missing while bootstrapping."""

    def __init__(self, message: str, *, domain: Optional[str] = None):
        super().__init__(message)
        self.domain = domain


class AuthenticationError(CtmsClientError):
    """The identity provider rejected the credentials."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StateError(CtmsClientError):
    """
    An expected link relation is absent on a document, meaning the
    operation is not allowed in the resource's current state.
    """

    def __init__(self, relation: str, *, ref: Optional[str] = None):
        where = f" on {ref}" if ref else ""
        super().__init__(f"Relation '{relation}' is not available{where}")
        self.relation = relation
        self.ref = ref


__all__ = [
    "CtmsClientError",
    "CtmsTransportError",
    "CtmsHTTPError",
    "ConflictError",
    "CtmsParseError",
    "CtmsModelValidationError",
    "DiscoveryError",
    "AuthenticationError",
    "StateError",
]
