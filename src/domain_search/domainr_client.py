"""
Domainr client for domain suggestions and batched status lookups.

This module provides an async client for the Domainr API (served through
RapidAPI) with two operations:
- search: free-text query returning a ranked list of candidate domains
- status: batched status lookup for a set of domains

Suggestion failures that leave the service unusable (missing or rejected
credential, unreachable provider) raise ProviderError. Status lookups never
raise; failures produce an empty mapping so every domain reads as "no record".
"""

import time
from typing import Optional

import httpx

from .audit_logger import AuditLogger
from .config import DomainrConfig
from .enums import LogLevel, ProviderErrorCode
from .exceptions import ProviderError
from .models import ProviderStatusRecord
from .normalizer import derive_region_candidate, extract_zone, normalize


class DomainrClient:
    """
    Async Domainr API client.

    Both operations are idempotent and keep no state between calls beyond
    the pooled HTTP connection.
    """

    SIMULATION_ZONES = (".com", ".net", ".io")

    def __init__(
        self,
        config: DomainrConfig,
        simulation_mode: bool = False,
        logger: Optional[AuditLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the Domainr client.

        Args:
            config: Provider credentials, base URL and timeout
            simulation_mode: If True, no real network requests are made
            logger: Optional audit logger
            transport: Optional httpx transport (used by tests)
        """
        self._config = config
        self._simulation_mode = simulation_mode
        self._logger = logger
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "DomainrClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def is_configured(self) -> bool:
        """True if a credential is available (always true in simulation)."""
        return self._simulation_mode or self._config.is_configured

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url.rstrip("/"),
                verify=True,
                timeout=httpx.Timeout(self._config.timeout_seconds),
                headers={
                    "X-RapidAPI-Key": self._config.api_key or "",
                    "X-RapidAPI-Host": self._config.rapidapi_host,
                    "Accept": "application/json",
                },
                transport=self._transport,
            )
        return self._client

    async def suggest(self, query: str) -> list[str]:
        """
        Search the provider for candidate domains.

        Args:
            query: Normalized user query

        Returns:
            Candidate domains in provider ranking order, without duplicates

        Raises:
            ProviderError: If the credential is missing or rejected, or the
                provider cannot be reached
        """
        if not self.is_configured:
            raise ProviderError(
                code=ProviderErrorCode.NOT_CONFIGURED.value,
                message="Domainr API key is not configured",
            )

        if self._simulation_mode:
            return self._simulated_suggestions(query)

        start_time = time.perf_counter()
        try:
            response = await self._get_client().get("/search", params={"query": query})
        except httpx.TimeoutException as e:
            raise ProviderError(
                code=ProviderErrorCode.TIMEOUT.value,
                message=f"Domainr search timed out after {self._config.timeout_seconds}s",
                details={"error": str(e)},
            )
        except httpx.HTTPError as e:
            raise ProviderError(
                code=ProviderErrorCode.NETWORK_ERROR.value,
                message=f"Domainr search connection error: {e}",
                details={"error": str(e)},
            )

        if response.status_code in (401, 403):
            raise ProviderError(
                code=ProviderErrorCode.AUTH_REJECTED.value,
                message="Domainr rejected the configured API key",
                details={"http_status_code": response.status_code},
            )
        if response.status_code >= 500:
            raise ProviderError(
                code=ProviderErrorCode.SERVER_ERROR.value,
                message=f"Domainr server error: {response.status_code}",
                details={"http_status_code": response.status_code},
            )
        if response.status_code != 200:
            self._log(
                LogLevel.WARN,
                f"Domainr search returned HTTP {response.status_code}",
                {"query": query, "http_status_code": response.status_code},
            )
            return []

        try:
            results = _list_field(response.json(), "results")
        except (ValueError, AttributeError, TypeError) as e:
            self._log(
                LogLevel.WARN,
                f"Failed to parse Domainr search response: {e}",
                {"query": query, "error_code": ProviderErrorCode.PARSE_ERROR.value},
            )
            return []

        candidates: list[str] = []
        seen: set[str] = set()
        for item in results:
            if not isinstance(item, dict):
                continue
            domain = normalize(_text(item.get("domain")) or "")
            if domain and domain not in seen:
                seen.add(domain)
                candidates.append(domain)

        self._log(
            LogLevel.DEBUG,
            f"Domainr search returned {len(candidates)} candidate(s)",
            {"query": query, "duration_ms": (time.perf_counter() - start_time) * 1000},
        )
        return candidates

    async def batch_status(self, domains: list[str]) -> dict[str, ProviderStatusRecord]:
        """
        Look up the status of several domains in one request.

        Args:
            domains: Domains to look up

        Returns:
            Mapping of domain to status record. Domains the provider did not
            report on are absent. Failures yield an empty mapping.
        """
        if not domains:
            return {}

        if self._simulation_mode:
            return {
                domain: ProviderStatusRecord(
                    domain=domain, status="unknown", summary="unknown"
                )
                for domain in domains
            }

        if not self._config.is_configured:
            return {}

        try:
            response = await self._get_client().get(
                "/status", params={"domain": ",".join(domains)}
            )
        except httpx.HTTPError as e:
            self._log(
                LogLevel.WARN,
                f"Domainr status request failed: {e}",
                {"domain_count": len(domains)},
            )
            return {}

        if response.status_code != 200:
            self._log(
                LogLevel.WARN,
                f"Domainr status returned HTTP {response.status_code}",
                {"domain_count": len(domains), "http_status_code": response.status_code},
            )
            return {}

        try:
            items = _list_field(response.json(), "status")
        except (ValueError, AttributeError, TypeError) as e:
            self._log(
                LogLevel.WARN,
                f"Failed to parse Domainr status response: {e}",
                {"error_code": ProviderErrorCode.PARSE_ERROR.value},
            )
            return {}

        records: dict[str, ProviderStatusRecord] = {}
        for item in items:
            if not isinstance(item, dict) or not _text(item.get("domain")):
                continue
            domain = normalize(item["domain"])
            records[domain] = ProviderStatusRecord(
                domain=domain,
                status=_text(item.get("status")),
                summary=_text(item.get("summary")),
                zone=_text(item.get("zone")),
            )
        return records

    def _simulated_suggestions(self, query: str) -> list[str]:
        candidates: list[str] = []
        if extract_zone(query) and " " not in query:
            candidates.append(query)
        for zone in self.SIMULATION_ZONES:
            candidate = derive_region_candidate(query, zone)
            if candidate and candidate not in candidates:
                candidates.append(candidate)
        return candidates

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "DomainrClient", message, data)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None


def _list_field(body, name: str) -> list:
    """``body[name]`` as a list; a missing or null field is empty."""
    value = body.get(name)
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"'{name}' is {type(value).__name__}, expected a list")
    return value


def _text(value) -> Optional[str]:
    """String fields pass through; any other JSON type reads as absent."""
    return value if isinstance(value, str) else None
