"""
Exception classes for the domain search system.

All exceptions inherit from DomainSearchError and provide structured
error information with codes, messages, and optional details.
"""

from typing import Optional


class DomainSearchError(Exception):
    """Base exception for all domain search errors."""

    http_status = 500

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class InvalidQueryError(DomainSearchError):
    """Raised when the search query is missing or blank."""

    http_status = 400


class ServiceUnavailableError(DomainSearchError):
    """Raised when the suggestion provider cannot be used."""

    http_status = 503

    def __init__(
        self,
        code: str,
        message: str,
        remediation: str = "",
        details: Optional[dict] = None,
    ) -> None:
        super().__init__(code, message, details)
        self.remediation = remediation

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["remediation"] = self.remediation
        return data


class ProviderError(DomainSearchError):
    """Raised by the provider client when a suggestion request fails hard."""

    http_status = 502


class PersistenceError(DomainSearchError):
    """Raised when persistence operations fail (file I/O, HMAC validation)."""

    pass


class TamperingError(PersistenceError):
    """Raised when HMAC validation fails, indicating data tampering."""

    pass
