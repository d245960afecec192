"""ctms_client package exports."""

from .client import CtmsClient, RetryConfig
from .config import MissingConfigError, load_env_config
from .connection import CtmsConnection
from .errors import (
    AuthenticationError,
    ConflictError,
    CtmsClientError,
    CtmsHTTPError,
    CtmsModelValidationError,
    CtmsParseError,
    CtmsTransportError,
    DiscoveryError,
    StateError,
)
from .hal import (
    expand_template,
    get_embedded,
    get_link,
    get_link_href,
    require_link_href,
    strip_template,
)
from .logging import setup_logging
from .models import AssetObject, ClientConfig, Credentials, Session
from .paging import drain_pages
from .polling import BulkPollOutcome, PollState, await_completion
from .store import ResourceStore

__all__ = [
    # Client
    "CtmsClient",
    "CtmsConnection",
    "RetryConfig",
    "ResourceStore",
    # Models
    "AssetObject",
    "ClientConfig",
    "Credentials",
    "Session",
    # Exceptions
    "CtmsClientError",
    "CtmsHTTPError",
    "CtmsTransportError",
    "CtmsParseError",
    "CtmsModelValidationError",
    "ConflictError",
    "DiscoveryError",
    "AuthenticationError",
    "StateError",
    "MissingConfigError",
    # HAL utilities
    "get_link",
    "get_link_href",
    "require_link_href",
    "get_embedded",
    "strip_template",
    "expand_template",
    # Walkers
    "drain_pages",
    "await_completion",
    "BulkPollOutcome",
    "PollState",
    # Config / logging
    "load_env_config",
    "setup_logging",
]
