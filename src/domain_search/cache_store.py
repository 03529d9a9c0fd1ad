"""
Domain cache store.

Keeps the most recent availability state (and any fetched WHOIS payload)
per domain. Writes are upserts keyed by domain and are persisted
immediately.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, ContextManager, Optional, Protocol, runtime_checkable

from .enums import AvailabilityStatus
from .models import CacheEntry
from .persistence import HmacJsonStore


CACHE_EXPIRY = timedelta(hours=24)


@runtime_checkable
class DomainCache(Protocol):
    """Interface the search pipeline writes availability states to."""

    def upsert(self, domain: str, status: AvailabilityStatus) -> None:
        ...

    def batch(self) -> ContextManager[None]:
        """Group several writes into one save."""
        ...


def is_expired(entry: CacheEntry, now: Optional[datetime] = None) -> bool:
    """Check whether a cache entry is older than the expiry window."""
    now = now or datetime.now(timezone.utc)
    try:
        last_checked = datetime.fromisoformat(entry.last_checked)
    except ValueError:
        return True
    if last_checked.tzinfo is None:
        last_checked = last_checked.replace(tzinfo=timezone.utc)
    return now - last_checked > CACHE_EXPIRY


class DomainCacheStore(HmacJsonStore):
    """HMAC-protected JSON implementation of the domain cache."""

    def __init__(self, file_path: Path, hmac_secret: str) -> None:
        super().__init__(file_path, hmac_secret)
        self._entries: dict[str, CacheEntry] = {}

    def _to_data(self) -> dict:
        return {
            "domains": {
                domain: {
                    "status": entry.status,
                    "last_checked": entry.last_checked,
                    "whois_data": entry.whois_data,
                }
                for domain, entry in self._entries.items()
            }
        }

    def _from_data(self, data: dict) -> None:
        self._entries = {
            domain: CacheEntry(
                domain=domain,
                status=entry["status"],
                last_checked=entry["last_checked"],
                whois_data=entry.get("whois_data"),
            )
            for domain, entry in data.get("domains", {}).items()
        }

    def get(self, domain: str) -> Optional[CacheEntry]:
        """Get the cache entry for a domain."""
        self.ensure_loaded()
        return self._entries.get(domain)

    def upsert(self, domain: str, status: AvailabilityStatus) -> None:
        """
        Record the latest availability state for a domain.

        An existing WHOIS payload is kept unless the domain is no longer taken.

        Raises:
            PersistenceError: If the cache file cannot be written
        """
        self.ensure_loaded()
        existing = self._entries.get(domain)
        whois_data = None
        if existing is not None and status == AvailabilityStatus.TAKEN:
            whois_data = existing.whois_data

        self._entries[domain] = CacheEntry(
            domain=domain,
            status=status.value,
            last_checked=datetime.now(timezone.utc).isoformat(),
            whois_data=whois_data,
        )
        self._commit()

    def set_whois(self, domain: str, whois_data: Any) -> None:
        """
        Store a fetched WHOIS payload; a domain with WHOIS data is taken.

        Raises:
            PersistenceError: If the cache file cannot be written
        """
        self.ensure_loaded()
        self._entries[domain] = CacheEntry(
            domain=domain,
            status=AvailabilityStatus.TAKEN.value,
            last_checked=datetime.now(timezone.utc).isoformat(),
            whois_data=whois_data,
        )
        self._commit()

    @property
    def entries(self) -> dict[str, CacheEntry]:
        self.ensure_loaded()
        return dict(self._entries)
