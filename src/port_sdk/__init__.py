"""Port API client.

Typed Python client for the Port developer-portal REST API. Handles
authentication (static token or client credentials), retrying dispatch with
backoff, and structured errors.

Exports:
    PortClient: Request executor used by all service layers.
    ClientConfig: Pydantic configuration model.
    Context: Cancellation and deadline carrier for blocking calls.
    configure_logging: Applies the structlog pipeline at ClientConfig.log_level.
    errors: Module containing the error hierarchy and status helpers.
"""

__version__ = "0.2.0"

from . import errors  # noqa: E402
from .client import PortClient  # noqa: E402
from .config import ClientConfig, load_config  # noqa: E402
from .context import Context  # noqa: E402
from .errors import (  # noqa: E402
    APIError,
    CancelledError,
    DeadlineExceededError,
    DecodeError,
    MaxRetriesExceededError,
    PortError,
    TokenExchangeError,
    TransportError,
    ValidationError,
)
from .log import configure_logging  # noqa: E402

__all__ = [
    "APIError",
    "CancelledError",
    "ClientConfig",
    "Context",
    "DeadlineExceededError",
    "DecodeError",
    "MaxRetriesExceededError",
    "PortClient",
    "PortError",
    "TokenExchangeError",
    "TransportError",
    "ValidationError",
    "configure_logging",
    "errors",
    "load_config",
]
