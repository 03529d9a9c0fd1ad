"""
Data models for the domain search system.

This module defines the data structures used for provider status records,
registrar offers, search results, and the records kept by the cache and
history stores.
"""

from dataclasses import dataclass
from typing import Any, Optional

from .enums import AvailabilityStatus


# Marker stored in SearchResult.whois for taken domains; the full payload is
# fetched on demand through the WHOIS lookup operation.
WHOIS_PENDING = "pending"


@dataclass(frozen=True)
class ProviderStatusRecord:
    """Status record returned by the provider for a single domain."""

    domain: str
    status: Optional[str] = None  # space-separated token string
    summary: Optional[str] = None  # provider's single-word judgement
    zone: Optional[str] = None

    @property
    def tokens(self) -> frozenset[str]:
        """Lowercased set of status tokens."""
        if not isinstance(self.status, str):
            return frozenset()
        return frozenset(token.lower() for token in self.status.split())


@dataclass
class RegistrarOffer:
    """A registrar's price for registering a domain in a given zone."""

    registrar_id: int
    name: str
    website: str
    affiliate_link_template: str
    price: float
    currency: str = "USD"
    logo_url: Optional[str] = None
    renewal_price: Optional[float] = None
    transfer_price: Optional[float] = None
    display_order: int = 0
    register_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.registrar_id,
            "name": self.name,
            "website": self.website,
            "logo_url": self.logo_url,
            "price": self.price,
            "renewal_price": self.renewal_price,
            "transfer_price": self.transfer_price,
            "currency": self.currency,
            "register_url": self.register_url,
        }


@dataclass
class SearchResult:
    """Resolution of a single candidate domain."""

    domain: str
    zone: str
    status: AvailabilityStatus
    registrars: Optional[list[RegistrarOffer]] = None  # only when available
    whois: Optional[Any] = None  # WHOIS_PENDING when taken
    cached: bool = False

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "domain": self.domain,
            "tld": self.zone,
            "status": self.status.value,
            "cached": self.cached,
        }
        if self.status == AvailabilityStatus.AVAILABLE:
            data["registrars"] = [offer.to_dict() for offer in self.registrars or []]
        if self.status == AvailabilityStatus.TAKEN:
            data["whois"] = self.whois
        return data


@dataclass
class SearchResponse:
    """Complete response for one search request."""

    query: str
    results: list[SearchResult]
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "results": [result.to_dict() for result in self.results],
            "timestamp": self.timestamp,
        }


@dataclass
class CacheEntry:
    """Cached availability state for a domain."""

    domain: str
    status: str
    last_checked: str
    whois_data: Optional[Any] = None


@dataclass
class HistoryRecord:
    """A single search history row."""

    id: int
    request_id: str
    domain: str
    status: str
    zone: str
    search_query: str
    language: Optional[str]
    user_ip: Optional[str]
    user_agent: Optional[str]
    searched_at: str


@dataclass
class SearchContext:
    """Per-request inputs that travel with a search."""

    query: str
    language: Optional[str] = None
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: str = ""


@dataclass
class WhoisResponse:
    """Result of the on-demand WHOIS lookup operation."""

    domain: str
    whois: Any
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "whois": self.whois,
            "timestamp": self.timestamp,
        }
