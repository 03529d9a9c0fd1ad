"""
Command-line interface for the domain search system.

This module provides the main CLI entry point with commands for:
- search: Search candidate domains for a keyword or domain
- whois: Fetch WHOIS data for a taken domain
- config: Configuration management
- history: Search history reporting and CSV export
"""

import argparse
import asyncio
import json
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from . import __version__
from .audit_logger import AuditLogger
from .cache_store import DomainCacheStore
from .config import (
    DNSConfig,
    DomainrConfig,
    LoggingConfig,
    PersistenceConfig,
    RegionConfig,
    SearchConfig,
    SystemConfig,
    WhoisConfig,
)
from .enums import AvailabilityStatus
from .exceptions import (
    InvalidQueryError,
    PersistenceError,
    ServiceUnavailableError,
)
from .history_store import SearchHistoryStore
from .i18n import SUPPORTED_LANGUAGES, get_message
from .models import SearchResponse
from .orchestrator import SearchOrchestrator
from .whois_lookup import WhoisLookupService


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INVALID_QUERY = 2
EXIT_SERVICE_UNAVAILABLE = 3

DEFAULT_DATA_DIR = Path.home() / ".domain_search"
DEFAULT_CONFIG_PATH = DEFAULT_DATA_DIR / "config.json"
DEFAULT_HMAC_SECRET = "default-secret-change-me"

# Environment variables read by apply_env_overrides
ENV_DOMAINR_API_KEY = "DOMAINR_API_KEY"
ENV_RAPIDAPI_KEY = "RAPIDAPI_KEY"
ENV_WHOIS_API_KEY = "WHOIS_API_KEY"
ENV_HMAC_SECRET = "DOMAIN_SEARCH_HMAC_SECRET"


def create_default_config(
    simulation_mode: bool = False,
    language: str = "en",
    data_dir: Optional[Path] = None,
    hmac_secret: str = DEFAULT_HMAC_SECRET,
) -> SystemConfig:
    """
    Create a default system configuration.

    Args:
        simulation_mode: Enable simulation mode (no real network requests)
        language: Output language ('en' or 'ja')
        data_dir: Directory for cache, history and pricing files
        hmac_secret: Secret for HMAC protection

    Returns:
        SystemConfig with default settings
    """
    if data_dir is None:
        data_dir = DEFAULT_DATA_DIR

    return SystemConfig(
        domainr=DomainrConfig(),
        dns=DNSConfig(),
        whois=WhoisConfig(),
        search=SearchConfig(),
        persistence=PersistenceConfig(
            cache_file_path=data_dir / "cache.json",
            history_file_path=data_dir / "history.json",
            pricing_file_path=data_dir / "pricing.json",
            hmac_secret=hmac_secret,
        ),
        logging=LoggingConfig(
            level="info",
            output_format="text",
        ),
        language=language,
        simulation_mode=simulation_mode,
    )


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        SystemConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        defaults = create_default_config()

        domainr_data = data.get("domainr", {})
        domainr = DomainrConfig(
            api_key=domainr_data.get("api_key"),
            base_url=domainr_data.get("base_url", defaults.domainr.base_url),
            rapidapi_host=domainr_data.get("rapidapi_host", defaults.domainr.rapidapi_host),
            timeout_seconds=domainr_data.get("timeout_seconds", defaults.domainr.timeout_seconds),
        )

        dns_data = data.get("dns", {})
        dns = DNSConfig(
            resolver_url=dns_data.get("resolver_url", defaults.dns.resolver_url),
            timeout_seconds=dns_data.get("timeout_seconds", defaults.dns.timeout_seconds),
        )

        whois_data = data.get("whois", {})
        whois = WhoisConfig(
            api_key=whois_data.get("api_key"),
            base_url=whois_data.get("base_url", defaults.whois.base_url),
            timeout_seconds=whois_data.get("timeout_seconds", defaults.whois.timeout_seconds),
        )

        # Parse search policy
        search_data = data.get("search", {})
        regions = [
            RegionConfig(language=region["language"], zone=region["zone"])
            for region in search_data.get("regions", [])
        ] if "regions" in search_data else defaults.search.regions
        search = SearchConfig(
            max_candidates=search_data.get("max_candidates", defaults.search.max_candidates),
            max_registrars=search_data.get("max_registrars", defaults.search.max_registrars),
            retry_delay_seconds=search_data.get(
                "retry_delay_seconds", defaults.search.retry_delay_seconds
            ),
            request_timeout_seconds=search_data.get(
                "request_timeout_seconds", defaults.search.request_timeout_seconds
            ),
            max_concurrency=search_data.get("max_concurrency", defaults.search.max_concurrency),
            base_currency=search_data.get("base_currency", defaults.search.base_currency),
            converted_currency=search_data.get(
                "converted_currency", defaults.search.converted_currency
            ),
            fallback_exchange_rate=search_data.get(
                "fallback_exchange_rate", defaults.search.fallback_exchange_rate
            ),
            regions=regions,
        )

        # Parse persistence config
        persistence_data = data.get("persistence", {})
        default_paths = defaults.persistence
        persistence = PersistenceConfig(
            cache_file_path=Path(
                persistence_data.get("cache_file_path") or default_paths.cache_file_path
            ),
            history_file_path=Path(
                persistence_data.get("history_file_path") or default_paths.history_file_path
            ),
            pricing_file_path=Path(
                persistence_data.get("pricing_file_path") or default_paths.pricing_file_path
            ),
            hmac_secret=persistence_data.get("hmac_secret", DEFAULT_HMAC_SECRET),
        )

        # Parse logging config
        logging_data = data.get("logging", {})
        logging_config = LoggingConfig(
            level=logging_data.get("level", "info"),
            audit_mode=logging_data.get("audit_mode", False),
            audit_signing_key=logging_data.get("audit_signing_key"),
            output_format=logging_data.get("output_format", "text"),
        )

        return SystemConfig(
            domainr=domainr,
            dns=dns,
            whois=whois,
            search=search,
            persistence=persistence,
            logging=logging_config,
            language=data.get("language", "en"),
            simulation_mode=data.get("simulation_mode", False),
        )

    except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None
    except FileNotFoundError:
        return None


def _file_secret(value: Optional[str], env_var: str) -> Optional[str]:
    """Drop a secret that was supplied through the environment."""
    if value and os.environ.get(env_var) == value:
        return None
    return value


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Secrets that match the current environment are not written.

    Args:
        config: SystemConfig to save
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        domainr_key = _file_secret(
            _file_secret(config.domainr.api_key, ENV_DOMAINR_API_KEY),
            ENV_RAPIDAPI_KEY,
        )
        hmac_secret = _file_secret(config.persistence.hmac_secret, ENV_HMAC_SECRET)

        data = {
            "domainr": {
                "api_key": domainr_key,
                "base_url": config.domainr.base_url,
                "rapidapi_host": config.domainr.rapidapi_host,
                "timeout_seconds": config.domainr.timeout_seconds,
            },
            "dns": {
                "resolver_url": config.dns.resolver_url,
                "timeout_seconds": config.dns.timeout_seconds,
            },
            "whois": {
                "api_key": _file_secret(config.whois.api_key, ENV_WHOIS_API_KEY),
                "base_url": config.whois.base_url,
                "timeout_seconds": config.whois.timeout_seconds,
            },
            "search": {
                "max_candidates": config.search.max_candidates,
                "max_registrars": config.search.max_registrars,
                "retry_delay_seconds": config.search.retry_delay_seconds,
                "request_timeout_seconds": config.search.request_timeout_seconds,
                "max_concurrency": config.search.max_concurrency,
                "base_currency": config.search.base_currency,
                "converted_currency": config.search.converted_currency,
                "fallback_exchange_rate": config.search.fallback_exchange_rate,
                "regions": [
                    {"language": region.language, "zone": region.zone}
                    for region in config.search.regions
                ],
            },
            "persistence": {
                "cache_file_path": str(config.persistence.cache_file_path),
                "history_file_path": str(config.persistence.history_file_path),
                "pricing_file_path": str(config.persistence.pricing_file_path),
                "hmac_secret": hmac_secret or DEFAULT_HMAC_SECRET,
            },
            "logging": {
                "level": config.logging.level,
                "audit_mode": config.logging.audit_mode,
                "audit_signing_key": config.logging.audit_signing_key,
                "output_format": config.logging.output_format,
            },
            "language": config.language,
            "simulation_mode": config.simulation_mode,
        }

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        return True

    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def apply_env_overrides(config: SystemConfig) -> SystemConfig:
    """
    Overlay secrets from the environment (and a ``.env`` file) onto a config.

    Args:
        config: Configuration loaded from file or defaults

    Returns:
        New SystemConfig with environment values applied
    """
    load_dotenv()

    domainr_key = os.environ.get(ENV_DOMAINR_API_KEY) or os.environ.get(ENV_RAPIDAPI_KEY)
    whois_key = os.environ.get(ENV_WHOIS_API_KEY)
    hmac_secret = os.environ.get(ENV_HMAC_SECRET)

    domainr = config.domainr
    if domainr_key:
        domainr = replace(domainr, api_key=domainr_key)

    whois = config.whois
    if whois_key:
        whois = replace(whois, api_key=whois_key)

    persistence = config.persistence
    if hmac_secret:
        persistence = replace(persistence, hmac_secret=hmac_secret)

    return replace(config, domainr=domainr, whois=whois, persistence=persistence)


def _resolve_config(args: argparse.Namespace) -> Optional[SystemConfig]:
    """Load the config named on the command line, or defaults."""
    config = None
    if getattr(args, "config", None):
        config = load_config_from_file(Path(args.config))
        if config is None:
            print(f"Error: Could not load config from {args.config}", file=sys.stderr)
            return None
    elif DEFAULT_CONFIG_PATH.exists():
        config = load_config_from_file(DEFAULT_CONFIG_PATH)

    if config is None:
        config = create_default_config()

    config = apply_env_overrides(config)

    language = getattr(args, "language", None)
    if language:
        config = replace(config, language=language)
    if getattr(args, "dry_run", False):
        config = replace(config, simulation_mode=True)

    return config


def _create_logger(config: SystemConfig, verbose: bool) -> Optional[AuditLogger]:
    if not verbose:
        return None
    return AuditLogger.from_config(replace(config.logging, level="debug"))


def format_search_response(response: SearchResponse, language: str) -> str:
    """Render a search response as human-readable lines."""
    if not response.results:
        return get_message("cli.no_results", language)

    lines = [get_message("cli.found", language, count=len(response.results))]
    markers = {
        AvailabilityStatus.AVAILABLE: "✅",
        AvailabilityStatus.TAKEN: "❌",
        AvailabilityStatus.UNKNOWN: "❔",
    }

    for result in response.results:
        status_text = get_message(f"status.{result.status.value}", language)
        lines.append(f"{markers[result.status]} {result.domain}  {status_text}")

        if result.status == AvailabilityStatus.AVAILABLE:
            for offer in result.registrars or []:
                lines.append("    " + get_message(
                    "cli.register_at",
                    language,
                    registrar=offer.name,
                    price=f"{offer.price:.2f}",
                    currency=offer.currency,
                ))
                if offer.register_url:
                    lines.append(f"      {offer.register_url}")
        elif result.status == AvailabilityStatus.TAKEN:
            lines.append("    " + get_message("cli.whois_on_demand", language, domain=result.domain))

    return "\n".join(lines)


async def run_search(
    query: str,
    config: SystemConfig,
    as_json: bool = False,
    verbose: bool = False,
) -> int:
    """
    Run one search and print the results.

    Returns:
        Exit code (0 success, 2 invalid query, 3 service unavailable)
    """
    language = config.language

    if config.simulation_mode and not as_json:
        print(get_message("simulation.enabled", language))

    if not as_json:
        print(get_message("cli.searching", language, query=query))

    logger = _create_logger(config, verbose)

    try:
        async with SearchOrchestrator(config=config, logger=logger) as orchestrator:
            response = await orchestrator.search(query, language=language)
    except InvalidQueryError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_INVALID_QUERY
    except ServiceUnavailableError as e:
        if as_json:
            print(json.dumps(e.to_dict(), indent=2, ensure_ascii=False))
        else:
            print(f"Error: {e.message}", file=sys.stderr)
            if e.remediation:
                print(f"  {e.remediation}", file=sys.stderr)
        return EXIT_SERVICE_UNAVAILABLE

    if as_json:
        print(json.dumps(response.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(format_search_response(response, language))

    return EXIT_OK


async def run_whois(domain: str, config: SystemConfig, verbose: bool = False) -> int:
    """Fetch and print WHOIS data for a domain."""
    logger = _create_logger(config, verbose)
    cache = DomainCacheStore(
        config.persistence.cache_file_path,
        config.persistence.hmac_secret,
    )

    try:
        async with WhoisLookupService(
            config.whois,
            cache=cache,
            simulation_mode=config.simulation_mode,
            logger=logger,
        ) as service:
            response = await service.lookup(domain, language=config.language)
    except InvalidQueryError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_INVALID_QUERY

    print(json.dumps(response.to_dict(), indent=2, ensure_ascii=False))
    return EXIT_OK


def cmd_search(args: argparse.Namespace) -> int:
    """Handle the 'search' command."""
    config = _resolve_config(args)
    if config is None:
        return EXIT_ERROR

    return asyncio.run(run_search(
        query=args.query,
        config=config,
        as_json=args.json,
        verbose=args.verbose,
    ))


def cmd_whois(args: argparse.Namespace) -> int:
    """Handle the 'whois' command."""
    config = _resolve_config(args)
    if config is None:
        return EXIT_ERROR

    return asyncio.run(run_whois(
        domain=args.domain,
        config=config,
        verbose=args.verbose,
    ))


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"No configuration found at: {config_path}")
            print("Use 'config init' to create a default configuration.")
            return EXIT_ERROR

        config = apply_env_overrides(config)
        print(f"Configuration from: {config_path}")
        print(f"  Language: {config.language}")
        print(f"  Simulation mode: {config.simulation_mode}")
        print(f"  Domainr API key: {'set' if config.domainr.is_configured else 'missing'}")
        print(f"  WHOIS API key: {'set' if config.whois.api_key else 'missing'}")
        print(f"  Max candidates: {config.search.max_candidates}")
        print(f"  Regions: {', '.join(f'{r.language}={r.zone}' for r in config.search.regions)}")
        print(f"  Cache file: {config.persistence.cache_file_path}")
        print(f"  History file: {config.persistence.history_file_path}")
        print(f"  Pricing file: {config.persistence.pricing_file_path}")
        print(f"  Log level: {config.logging.level}")
        print(f"  Audit mode: {config.logging.audit_mode}")
        return EXIT_OK

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return EXIT_ERROR

        config = create_default_config(language=args.language or "en")
        if save_config_to_file(config, config_path):
            print(f"Configuration created at: {config_path}")
            return EXIT_OK
        return EXIT_ERROR

    elif args.action == "validate":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"Error: Could not load config from {config_path}", file=sys.stderr)
            return EXIT_ERROR

        problems = validate_config(config)
        if problems:
            for problem in problems:
                print(f"  - {problem}", file=sys.stderr)
            return EXIT_ERROR

        print(f"Configuration at {config_path} is valid.")
        return EXIT_OK

    return EXIT_ERROR


def validate_config(config: SystemConfig) -> list[str]:
    """Return a list of problems with a configuration; empty when valid."""
    problems = []
    if config.language not in SUPPORTED_LANGUAGES:
        problems.append(f"Unsupported language: {config.language}")
    if config.search.max_candidates < 1:
        problems.append("search.max_candidates must be at least 1")
    if config.search.max_registrars < 0:
        problems.append("search.max_registrars must not be negative")
    if config.search.max_concurrency < 1:
        problems.append("search.max_concurrency must be at least 1")
    if config.search.retry_delay_seconds < 0:
        problems.append("search.retry_delay_seconds must not be negative")
    if config.search.request_timeout_seconds <= 0:
        problems.append("search.request_timeout_seconds must be positive")
    if config.search.fallback_exchange_rate <= 0:
        problems.append("search.fallback_exchange_rate must be positive")
    if config.logging.output_format not in ("json", "text", "both"):
        problems.append(f"Invalid logging.output_format: {config.logging.output_format}")
    return problems


def cmd_history(args: argparse.Namespace) -> int:
    """Handle the 'history' command."""
    config = _resolve_config(args)
    if config is None:
        return EXIT_ERROR

    history = SearchHistoryStore(
        config.persistence.history_file_path,
        config.persistence.hmac_secret,
    )

    try:
        if args.action == "recent":
            for record in history.recent(args.limit):
                print(
                    f"{record.searched_at}  {record.domain:<30} {record.status:<10}"
                    f" {record.search_query} ({record.language or '-'})"
                )
            return EXIT_OK

        elif args.action == "months":
            for month in history.months():
                print(month)
            return EXIT_OK

        elif args.action == "export":
            if not args.month:
                print("Error: export requires a month (YYYY-MM)", file=sys.stderr)
                return EXIT_ERROR

            csv_text = history.export_month_csv(args.month)
            if args.output:
                output_path = Path(args.output)
                output_path.parent.mkdir(parents=True, exist_ok=True)
                with open(output_path, "w", encoding="utf-8", newline="") as f:
                    f.write(csv_text)
                print(f"History written to: {output_path}")
            else:
                sys.stdout.write(csv_text)
            return EXIT_OK

    except PersistenceError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_ERROR
    except OSError as e:
        print(f"Error writing history: {e}", file=sys.stderr)
        return EXIT_ERROR

    return EXIT_ERROR


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="domain-search",
        description="Keyword-driven domain availability search",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    languages = sorted(SUPPORTED_LANGUAGES)

    # 'search' command
    search_parser = subparsers.add_parser(
        "search",
        help="Search candidate domains for a keyword or domain",
    )
    search_parser.add_argument(
        "query",
        help="Keyword or domain to search (e.g., example or example.com)",
    )
    search_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the response as JSON",
    )
    search_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulation mode - no real network requests",
    )
    search_parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    search_parser.add_argument(
        "--language", "-l",
        choices=languages,
        help="Request language (default: from configuration)",
    )
    search_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )
    search_parser.set_defaults(func=cmd_search)

    # 'whois' command
    whois_parser = subparsers.add_parser(
        "whois",
        help="Fetch WHOIS data for a domain",
    )
    whois_parser.add_argument(
        "domain",
        help="Domain to look up (e.g., example.com)",
    )
    whois_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulation mode - no real network requests",
    )
    whois_parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    whois_parser.add_argument(
        "--language", "-l",
        choices=languages,
        help="Message language (default: from configuration)",
    )
    whois_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output",
    )
    whois_parser.set_defaults(func=cmd_whois)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.add_argument(
        "--language", "-l",
        choices=languages,
        help="Default language for new configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    # 'history' command
    history_parser = subparsers.add_parser(
        "history",
        help="Search history reporting",
    )
    history_parser.add_argument(
        "action",
        choices=["recent", "months", "export"],
        help="History action",
    )
    history_parser.add_argument(
        "month",
        nargs="?",
        help="Month to export (YYYY-MM)",
    )
    history_parser.add_argument(
        "--limit", "-n",
        type=int,
        default=20,
        help="Number of recent rows to show (default: 20)",
    )
    history_parser.add_argument(
        "--output", "-o",
        help="Path to write the CSV export",
    )
    history_parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    history_parser.set_defaults(func=cmd_history)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
