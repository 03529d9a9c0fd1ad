"""
Enumeration types for the domain search system.

These enums provide type-safe constants for availability states, log levels
and error codes used throughout the search pipeline.
"""

from enum import Enum


class AvailabilityStatus(Enum):
    """Canonical availability state of a candidate domain."""

    AVAILABLE = "available"
    TAKEN = "taken"
    UNKNOWN = "unknown"

    @property
    def sort_rank(self) -> int:
        """Rank used for final result ordering (available < taken < unknown)."""
        return _SORT_RANKS[self]


_SORT_RANKS = {
    AvailabilityStatus.AVAILABLE: 0,
    AvailabilityStatus.TAKEN: 1,
    AvailabilityStatus.UNKNOWN: 2,
}


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class ProviderErrorCode(Enum):
    """Error codes for the suggestion/status provider client."""

    NOT_CONFIGURED = "not_configured"
    AUTH_REJECTED = "auth_rejected"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    PARSE_ERROR = "parse_error"


class DNSErrorCode(Enum):
    """Error codes for DNS fallback lookups."""

    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    PARSE_ERROR = "parse_error"
    IDNA_ERROR = "idna_error"
    SERVER_ERROR = "server_error"
