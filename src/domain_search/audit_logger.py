"""
Structured logging for the domain search system.

Every component takes an optional AuditLogger. Entries are written as JSON
lines, human-readable text, or both. Provider credentials are masked before
anything is written: values under sensitive keys are replaced, and credential
query parameters are stripped from URLs (the WhoisXML key travels in the
query string). In audit mode each entry is signed with HMAC-SHA256.

Entries whose data carries a ``request_id`` expose it as a top-level field so
all log lines of one search can be correlated.
"""

import hashlib
import hmac
import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, TextIO
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .config import LoggingConfig
from .enums import LogLevel


OUTPUT_FORMATS = ("json", "text", "both")

_SEVERITY = {level: rank for rank, level in enumerate(
    (LogLevel.DEBUG, LogLevel.INFO, LogLevel.WARN, LogLevel.ERROR)
)}


@dataclass
class LogEntry:
    """A single structured log event."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    data: dict = field(default_factory=dict)
    signature: Optional[str] = None

    @property
    def request_id(self) -> Optional[str]:
        value = self.data.get("request_id")
        return str(value) if value else None

    def signable(self) -> dict:
        """Fields covered by the audit signature."""
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "component": self.component,
            "message": self.message,
            "data": self.data,
        }


class AuditLogger:
    """
    Structured logger shared by the search pipeline and its clients.

    Entries below ``min_level`` are dropped without being stored or written.
    Logged entries are also kept in memory (``entries``) for inspection.
    """

    # Key fragments that mark a value as a credential
    SENSITIVE_KEYS = frozenset({
        'token', 'secret', 'password', 'api_key', 'apikey', 'hmac_secret',
        'auth', 'authorization', 'credential', 'private_key', 'rapidapi_key',
        'x-rapidapi-key', 'signing_key',
    })

    MASK_VALUE = "***MASKED***"

    def __init__(
        self,
        output_format: str = "both",
        output_stream: Optional[TextIO] = None,
        min_level: LogLevel = LogLevel.DEBUG,
    ):
        """
        Args:
            output_format: 'json', 'text' or 'both'
            output_stream: Destination stream (defaults to sys.stderr)
            min_level: Lowest level that is written
        """
        if output_format not in OUTPUT_FORMATS:
            raise ValueError(f"Invalid output_format: {output_format}")

        self._output_format = output_format
        self._stream = output_stream or sys.stderr
        self._min_level = min_level
        self._signing_key: Optional[bytes] = None
        self._entries: list[LogEntry] = []

    @classmethod
    def from_config(
        cls,
        config: LoggingConfig,
        output_stream: Optional[TextIO] = None,
    ) -> "AuditLogger":
        """Build a logger from the ``logging`` section of the configuration."""
        try:
            min_level = LogLevel(config.level.lower())
        except ValueError:
            min_level = LogLevel.INFO

        logger = cls(config.output_format, output_stream, min_level)
        if config.audit_mode and config.audit_signing_key:
            logger.enable_audit_mode(config.audit_signing_key)
        return logger

    @property
    def output_format(self) -> str:
        return self._output_format

    @property
    def audit_mode(self) -> bool:
        return self._signing_key is not None

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def enable_audit_mode(self, signing_key: str) -> None:
        """Sign every following entry with ``signing_key``."""
        if not signing_key:
            raise ValueError("Signing key cannot be empty")
        self._signing_key = signing_key.encode("utf-8")

    def disable_audit_mode(self) -> None:
        self._signing_key = None

    def is_enabled_for(self, level: LogLevel) -> bool:
        return _SEVERITY[level] >= _SEVERITY[self._min_level]

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Record one event.

        Args:
            level: Severity
            component: Emitting component, e.g. 'SearchOrchestrator'
            message: Human-readable message
            data: Structured context; credentials are masked

        Returns:
            The stored LogEntry, or None if ``level`` is filtered out
        """
        if not self.is_enabled_for(level):
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            data=self.mask_sensitive_data(data or {}),
        )
        if self._signing_key is not None:
            entry.signature = self._sign(entry)

        self._entries.append(entry)
        self._write(entry)
        return entry

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[Exception] = None,
        request_url: Optional[str] = None,
        response_status_code: Optional[int] = None,
        additional_data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Record a failure with its context at ERROR level.

        The exception's type and message are added, plus its ``code`` for
        DomainSearchError subclasses. The request URL is logged with
        credential parameters removed.
        """
        data = dict(additional_data or {})

        if error is not None:
            data["error_type"] = type(error).__name__
            data["error_message"] = getattr(error, "message", None) or str(error)
            error_code = getattr(error, "code", None)
            if isinstance(error_code, str):
                data.setdefault("error_code", error_code)
        if request_url is not None:
            data["request_url"] = request_url
        if response_status_code is not None:
            data["response_status_code"] = response_status_code

        return self.log(LogLevel.ERROR, component, message, data)

    def mask_sensitive_data(self, data: dict) -> dict:
        """Return a copy of ``data`` with credentials masked at any depth."""
        if not isinstance(data, dict):
            return data
        return {key: self._mask_value(key, value) for key, value in data.items()}

    def _mask_value(self, key: Any, value: Any) -> Any:
        if self._is_sensitive(key):
            return self.MASK_VALUE
        if isinstance(value, dict):
            return self.mask_sensitive_data(value)
        if isinstance(value, list):
            return [self._mask_value(None, item) for item in value]
        if isinstance(value, str) and value.startswith(("http://", "https://")):
            return self._redact_url(value)
        return value

    def _is_sensitive(self, key: Any) -> bool:
        if key is None:
            return False
        key_lower = str(key).lower()
        return any(fragment in key_lower for fragment in self.SENSITIVE_KEYS)

    def _redact_url(self, url: str) -> str:
        parts = urlsplit(url)
        if not parts.query:
            return url
        params = parse_qsl(parts.query, keep_blank_values=True)
        if not any(self._is_sensitive(name) for name, _ in params):
            return url
        redacted = [
            (name, self.MASK_VALUE if self._is_sensitive(name) else value)
            for name, value in params
        ]
        return urlunsplit(parts._replace(query=urlencode(redacted)))

    def _sign(self, entry: LogEntry) -> str:
        if self._signing_key is None:
            raise RuntimeError("Signing key not set")
        canonical = json.dumps(entry.signable(), sort_keys=True, ensure_ascii=False, default=str)
        return hmac.new(self._signing_key, canonical.encode("utf-8"), hashlib.sha256).hexdigest()

    def verify_signature(self, entry: LogEntry) -> bool:
        """True if ``entry`` carries a valid signature for the current key."""
        if not entry.signature or self._signing_key is None:
            return False
        return hmac.compare_digest(entry.signature, self._sign(entry))

    def _write(self, entry: LogEntry) -> None:
        lines = []
        if self._output_format != "text":
            lines.append(self.format_json(entry))
        if self._output_format != "json":
            lines.append(self.format_text(entry))
        for line in lines:
            self._stream.write(line + "\n")
        self._stream.flush()

    def format_json(self, entry: LogEntry) -> str:
        """One JSON object per line."""
        record = entry.signable()
        if entry.request_id:
            record["request_id"] = entry.request_id
        if entry.signature:
            record["signature"] = entry.signature
        return json.dumps(record, ensure_ascii=False, default=str)

    def format_text(self, entry: LogEntry) -> str:
        """``[timestamp] LEVEL [component] message {data} [sig:...]``"""
        text = f"[{entry.timestamp}] {entry.level.value.upper()} [{entry.component}] {entry.message}"
        if entry.data:
            text += " " + json.dumps(entry.data, ensure_ascii=False, default=str)
        if entry.signature:
            text += f" [sig:{entry.signature[:16]}...]"
        return text

    def clear_entries(self) -> None:
        self._entries.clear()
