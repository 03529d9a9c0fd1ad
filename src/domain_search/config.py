"""
Configuration dataclasses for the domain search system.

This module defines all configuration structures used throughout the system,
including provider credentials, DNS fallback settings, search policy limits,
persistence locations, and logging configuration.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class DomainrConfig:
    """Configuration for the Domainr suggestion/status provider."""

    api_key: Optional[str] = None
    base_url: str = "https://domainr.p.rapidapi.com/v2"
    rapidapi_host: str = "domainr.p.rapidapi.com"
    timeout_seconds: float = 10.0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


@dataclass
class DNSConfig:
    """DNS-over-HTTPS resolver used by the fallback checker."""

    resolver_url: str = "https://cloudflare-dns.com/dns-query"
    timeout_seconds: float = 5.0


@dataclass
class WhoisConfig:
    """Configuration for the on-demand WHOIS lookup."""

    api_key: Optional[str] = None
    base_url: str = "https://www.whoisxmlapi.com/whoisserver/WhoisService"
    timeout_seconds: float = 15.0


@dataclass
class RegionConfig:
    """Locale whose national zone is injected as an extra candidate."""

    language: str = "ja"
    zone: str = ".jp"


@dataclass
class SearchConfig:
    """Search pipeline policy."""

    max_candidates: int = 50
    max_registrars: int = 10
    retry_delay_seconds: float = 1.0
    request_timeout_seconds: float = 20.0
    max_concurrency: int = 10
    base_currency: str = "USD"
    converted_currency: str = "JPY"
    fallback_exchange_rate: float = 150.0  # converted_currency per base_currency
    regions: list[RegionConfig] = field(default_factory=lambda: [RegionConfig()])

    def region_zone_for(self, language: Optional[str]) -> Optional[str]:
        """Return the zone to inject for a request language, if any."""
        if not language:
            return None
        language = language.replace("_", "-").split("-", 1)[0].lower()
        for region in self.regions:
            if region.language.lower() == language:
                return region.zone
        return None


@dataclass
class PersistenceConfig:
    """Locations of the cache, history and pricing data files."""

    cache_file_path: Path
    history_file_path: Path
    pricing_file_path: Path
    hmac_secret: str


@dataclass
class LoggingConfig:
    """Logging and audit configuration."""

    level: str = "info"
    audit_mode: bool = False
    audit_signing_key: Optional[str] = None
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class SystemConfig:
    """Main system configuration combining all sub-configurations."""

    domainr: DomainrConfig
    dns: DNSConfig
    whois: WhoisConfig
    search: SearchConfig
    persistence: PersistenceConfig
    logging: LoggingConfig
    language: str = "en"  # 'en' or 'ja'
    simulation_mode: bool = False
