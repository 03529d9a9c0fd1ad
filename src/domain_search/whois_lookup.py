"""
On-demand WHOIS lookup.

Search results for taken domains carry a "pending" WHOIS marker; this
service fills it on request by querying the WhoisXML API. Lookups never
raise: a missing key or a failed request yields an explanatory payload.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from .audit_logger import AuditLogger
from .cache_store import DomainCacheStore
from .config import WhoisConfig
from .enums import LogLevel
from .exceptions import InvalidQueryError, PersistenceError
from .i18n import get_message
from .models import WhoisResponse
from .normalizer import normalize


class WhoisLookupService:
    """WHOIS lookup backed by the WhoisXML API."""

    def __init__(
        self,
        config: WhoisConfig,
        cache: Optional[DomainCacheStore] = None,
        simulation_mode: bool = False,
        logger: Optional[AuditLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._cache = cache
        self._simulation_mode = simulation_mode
        self._logger = logger
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "WhoisLookupService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def lookup(self, raw_domain: str, language: Optional[str] = None) -> WhoisResponse:
        """
        Fetch WHOIS data for a domain.

        Raises:
            InvalidQueryError: If the domain is empty after normalization
        """
        domain = normalize(raw_domain or "")
        if not domain:
            raise InvalidQueryError(
                code="empty_domain",
                message=get_message("query.required", language),
            )

        payload = await self._fetch(domain, language)

        if self._cache is not None:
            try:
                self._cache.set_whois(domain, payload)
            except PersistenceError as e:
                self._log(
                    LogLevel.WARN,
                    f"Failed to cache WHOIS data: {e.message}",
                    {"domain": domain},
                )

        return WhoisResponse(
            domain=domain,
            whois=payload,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    async def _fetch(self, domain: str, language: Optional[str]) -> Any:
        if self._simulation_mode:
            return {"domain": domain, "status": "simulated", "WhoisRecord": {}}

        if not self._config.api_key:
            return {
                "domain": domain,
                "status": get_message("whois.not_configured", language),
                "message": get_message("whois.not_configured.hint", language),
            }

        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=True,
                timeout=httpx.Timeout(self._config.timeout_seconds),
                transport=self._transport,
            )

        try:
            response = await self._client.get(
                self._config.base_url,
                params={
                    "apiKey": self._config.api_key,
                    "domainName": domain,
                    "outputFormat": "JSON",
                },
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            # httpx messages embed the request URL, which carries the API key
            if isinstance(e, httpx.HTTPStatusError):
                reason = f"WHOIS API error: {e.response.status_code}"
            else:
                reason = f"WHOIS API request failed: {type(e).__name__}"
            self._log(LogLevel.ERROR, reason, {"domain": domain})
            return {
                "domain": domain,
                "error": get_message("whois.fetch_failed", language),
                "message": reason,
            }

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "WhoisLookupService", message, data)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
