"""Error types raised while relaying a tracking request."""

from __future__ import annotations

from typing import Dict

BAD_GATEWAY = 502


class RelayError(Exception):
    """Base class for failures that map onto a JSON error response."""

    status_code = 500
    message = "Internal server error."

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_body(self) -> Dict[str, str]:
        return {"error": self.message}


class ClientInputError(RelayError):
    status_code = 400
    message = "Order ID (channel_order_no) is required."


class ServerConfigurationError(RelayError):
    status_code = 500
    message = "Tracking service API token configuration error on server. Please contact support."


class UpstreamContractError(RelayError):
    """The upstream answered, but not with JSON."""

    def __init__(self, upstream_status: int) -> None:
        self.upstream_status = upstream_status
        # A status of 0 means the upstream reported none.
        super().__init__(
            "Received an invalid response from the upstream tracking service. "
            f"Status: {upstream_status}",
            status_code=upstream_status or BAD_GATEWAY,
        )


class UpstreamUnavailableError(RelayError):
    """The upstream could not be reached at all."""

    status_code = 503
    message = "Service Unavailable. Failed to connect to the tracking service via proxy."


__all__ = [
    "BAD_GATEWAY",
    "ClientInputError",
    "RelayError",
    "ServerConfigurationError",
    "UpstreamContractError",
    "UpstreamUnavailableError",
]
