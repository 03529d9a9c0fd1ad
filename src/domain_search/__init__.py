"""
Domain Search - keyword-driven domain availability search.

This package turns a keyword or domain into a ranked list of candidate
domains, each classified as available, taken or unknown, with registrar
pricing for available domains and on-demand WHOIS data for taken ones.
"""

__version__ = "0.1.0"
__author__ = "Domain Search Team"

from domain_search.exceptions import (
    DomainSearchError,
    InvalidQueryError,
    ServiceUnavailableError,
    ProviderError,
    PersistenceError,
    TamperingError,
)
from domain_search.enums import (
    AvailabilityStatus,
    LogLevel,
    ProviderErrorCode,
    DNSErrorCode,
)
from domain_search.config import (
    DomainrConfig,
    DNSConfig,
    WhoisConfig,
    RegionConfig,
    SearchConfig,
    PersistenceConfig,
    LoggingConfig,
    SystemConfig,
)
from domain_search.models import (
    WHOIS_PENDING,
    ProviderStatusRecord,
    RegistrarOffer,
    SearchResult,
    SearchResponse,
    CacheEntry,
    HistoryRecord,
    SearchContext,
    WhoisResponse,
)
from domain_search.normalizer import (
    normalize,
    extract_zone,
    strip_zone,
    derive_region_candidate,
)
from domain_search.classifier import (
    AvailabilityClassifier,
    classify,
)
from domain_search.dns_checker import (
    DNSFallbackChecker,
    DNSLookupResult,
)
from domain_search.domainr_client import (
    DomainrClient,
)
from domain_search.pricing import (
    ExchangeRate,
    ExchangeRateSource,
    PricingRepository,
    JsonPricingRepository,
    build_register_url,
    rank_offers,
)
from domain_search.cache_store import (
    CACHE_EXPIRY,
    DomainCache,
    DomainCacheStore,
    is_expired,
)
from domain_search.history_store import (
    SearchHistory,
    SearchHistoryStore,
    truncate_ip,
    truncate_user_agent,
)
from domain_search.audit_logger import (
    AuditLogger,
    LogEntry,
)
from domain_search.i18n import (
    get_message,
    resolve_language,
    get_missing_translations,
    validate_translations,
    TRANSLATIONS,
    SUPPORTED_LANGUAGES,
    DEFAULT_LANGUAGE,
)
from domain_search.whois_lookup import (
    WhoisLookupService,
)
from domain_search.orchestrator import (
    SearchOrchestrator,
)
from domain_search.cli import (
    main as cli_main,
    create_parser,
    create_default_config,
    load_config_from_file,
    save_config_to_file,
    apply_env_overrides,
)

__all__ = [
    # Exceptions
    "DomainSearchError",
    "InvalidQueryError",
    "ServiceUnavailableError",
    "ProviderError",
    "PersistenceError",
    "TamperingError",
    # Enums
    "AvailabilityStatus",
    "LogLevel",
    "ProviderErrorCode",
    "DNSErrorCode",
    # Configuration
    "DomainrConfig",
    "DNSConfig",
    "WhoisConfig",
    "RegionConfig",
    "SearchConfig",
    "PersistenceConfig",
    "LoggingConfig",
    "SystemConfig",
    # Models
    "WHOIS_PENDING",
    "ProviderStatusRecord",
    "RegistrarOffer",
    "SearchResult",
    "SearchResponse",
    "CacheEntry",
    "HistoryRecord",
    "SearchContext",
    "WhoisResponse",
    # Normalizer
    "normalize",
    "extract_zone",
    "strip_zone",
    "derive_region_candidate",
    # Classifier
    "AvailabilityClassifier",
    "classify",
    # DNS Fallback
    "DNSFallbackChecker",
    "DNSLookupResult",
    # Domainr Client
    "DomainrClient",
    # Pricing
    "ExchangeRate",
    "ExchangeRateSource",
    "PricingRepository",
    "JsonPricingRepository",
    "build_register_url",
    "rank_offers",
    # Cache
    "CACHE_EXPIRY",
    "DomainCache",
    "DomainCacheStore",
    "is_expired",
    # History
    "SearchHistory",
    "SearchHistoryStore",
    "truncate_ip",
    "truncate_user_agent",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # I18n
    "get_message",
    "resolve_language",
    "get_missing_translations",
    "validate_translations",
    "TRANSLATIONS",
    "SUPPORTED_LANGUAGES",
    "DEFAULT_LANGUAGE",
    # WHOIS
    "WhoisLookupService",
    # Orchestrator
    "SearchOrchestrator",
    # CLI
    "cli_main",
    "create_parser",
    "create_default_config",
    "load_config_from_file",
    "save_config_to_file",
    "apply_env_overrides",
]
