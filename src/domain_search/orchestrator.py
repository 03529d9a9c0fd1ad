"""
Search Orchestrator for the domain search system.

This module provides the search pipeline that coordinates all components to
answer a domain search. For a single request it:
1. Validates and normalizes the query
2. Asks the Domainr client for candidate domains
3. Fetches provider status for all candidates in one batched call
4. Classifies each candidate, falling back to DNS when the provider is
   inconclusive, and enriches available domains with registrar pricing
5. Re-checks still-unknown domains once after a short delay
6. Optionally injects a locale-specific candidate (e.g. ``.jp`` for ``ja``)
7. Orders results available < taken < unknown, stable within each state

Only query validation and suggestion failures abort a search. Pricing,
cache, history and region failures are logged and the pipeline continues.
"""

import asyncio
import functools
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from .audit_logger import AuditLogger
from .cache_store import DomainCache, DomainCacheStore
from .classifier import AvailabilityClassifier
from .config import SystemConfig
from .dns_checker import DNSFallbackChecker
from .domainr_client import DomainrClient
from .enums import AvailabilityStatus, LogLevel, ProviderErrorCode
from .exceptions import InvalidQueryError, ProviderError, ServiceUnavailableError
from .history_store import SearchHistory, SearchHistoryStore
from .i18n import get_message, resolve_language
from .models import (
    WHOIS_PENDING,
    ProviderStatusRecord,
    SearchContext,
    SearchResponse,
    SearchResult,
)
from .normalizer import derive_region_candidate, extract_zone, normalize
from .pricing import (
    ExchangeRate,
    ExchangeRateSource,
    JsonPricingRepository,
    PricingRepository,
    rank_offers,
)


_PROVIDER_ERROR_MESSAGES = {
    ProviderErrorCode.NOT_CONFIGURED.value: "service.provider_not_configured",
    ProviderErrorCode.AUTH_REJECTED.value: "service.provider_rejected",
}


@dataclass
class _RequestState:
    """Per-request working state; never shared between searches."""

    context: SearchContext
    exchange_rate: ExchangeRate
    semaphore: asyncio.Semaphore
    deadline: float
    cache_writes: list = field(default_factory=list)
    history_writes: list = field(default_factory=list)


class SearchOrchestrator:
    """
    Main orchestrator for domain searches.

    Each call to ``search`` is independent: all per-request state lives in
    local variables, so one orchestrator can serve concurrent requests.
    Collaborators default to the implementations configured in
    ``SystemConfig`` and can be replaced individually.
    """

    async def __aenter__(self) -> "SearchOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __init__(
        self,
        config: SystemConfig,
        client: Optional[DomainrClient] = None,
        dns_checker: Optional[DNSFallbackChecker] = None,
        pricing: Optional[PricingRepository] = None,
        exchange_rates: Optional[ExchangeRateSource] = None,
        cache: Optional[DomainCache] = None,
        history: Optional[SearchHistory] = None,
        logger: Optional[AuditLogger] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the search orchestrator.

        Args:
            config: System configuration
            client: Suggestion/status client
            dns_checker: DNS fallback checker
            pricing: Pricing repository
            exchange_rates: Stored exchange rates; the configured fallback
                rate is used when absent
            cache: Domain cache written after each resolution
            history: Search history written after each resolution
            logger: Optional audit logger for logging
            sleep: Coroutine used for the retry delay
        """
        self._config = config
        self._logger = logger
        self._sleep = sleep
        self._classifier = AvailabilityClassifier()

        self._client = client or DomainrClient(
            config.domainr,
            simulation_mode=config.simulation_mode,
            logger=logger,
        )
        self._dns_checker = dns_checker or DNSFallbackChecker(
            config.dns,
            simulation_mode=config.simulation_mode,
            logger=logger,
        )

        if pricing is None:
            catalog = JsonPricingRepository(config.persistence.pricing_file_path)
            pricing = catalog
            if exchange_rates is None:
                exchange_rates = catalog
        self._pricing = pricing
        self._exchange_rates = exchange_rates

        self._cache = cache if cache is not None else DomainCacheStore(
            config.persistence.cache_file_path,
            config.persistence.hmac_secret,
        )
        self._history = history if history is not None else SearchHistoryStore(
            config.persistence.history_file_path,
            config.persistence.hmac_secret,
        )

    async def search(
        self,
        query: str,
        language: Optional[str] = None,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> SearchResponse:
        """
        Run a complete domain search.

        Args:
            query: Raw user query (keyword or domain)
            language: Request language, e.g. 'en' or 'ja'
            client_ip: Client IP address for the search history
            user_agent: Client user agent for the search history

        Returns:
            SearchResponse with results ordered available, taken, unknown

        Raises:
            InvalidQueryError: If the query is empty
            ServiceUnavailableError: If the suggestion provider is unusable
        """
        loop = asyncio.get_running_loop()
        start_time = time.perf_counter()
        search_config = self._config.search
        message_language = resolve_language(language)

        # Step 1: Validate and normalize
        if not query or not query.strip():
            raise InvalidQueryError(
                code="empty_query",
                message=get_message("query.required", message_language),
            )
        normalized = normalize(query)
        if not normalized:
            raise InvalidQueryError(
                code="empty_query",
                message=get_message("query.required", message_language),
                details={"query": query},
            )

        context = SearchContext(
            query=normalized,
            language=language,
            client_ip=client_ip,
            user_agent=user_agent,
            request_id=uuid.uuid4().hex,
        )
        self._log(
            LogLevel.INFO,
            f"Starting search for: {normalized}",
            {"query": normalized, "language": language, "request_id": context.request_id},
        )

        # Step 2: Suggest
        candidates = await self._suggest(normalized, message_language)
        if not candidates:
            self._log(
                LogLevel.INFO,
                "No candidates returned by provider",
                {"query": normalized, "request_id": context.request_id},
            )
            return self._build_response(normalized, [])

        # Step 3: Status fan-out, one batched call
        capped = candidates[: search_config.max_candidates]
        self._log(
            LogLevel.DEBUG,
            f"Checking {len(capped)} of {len(candidates)} candidate(s)",
            {"query": normalized, "request_id": context.request_id},
        )
        statuses = await self._client.batch_status(capped)

        state = _RequestState(
            context=context,
            exchange_rate=self._resolve_exchange_rate(),
            semaphore=asyncio.Semaphore(max(search_config.max_concurrency, 1)),
            deadline=loop.time() + search_config.request_timeout_seconds,
        )

        # Step 4: Per-candidate resolution; gather preserves input order
        resolved = await asyncio.gather(*(
            self._resolve_candidate(domain, statuses.get(domain), state)
            for domain in capped
        ))
        results = [result for result in resolved if result is not None]

        # Step 5: One delayed re-check of unknowns, bounded by the deadline
        unknowns = [r for r in results if r.status == AvailabilityStatus.UNKNOWN]
        if unknowns:
            await self._run_bounded(
                self._retry_unknowns(unknowns, state),
                state,
                "Unknown retry pass",
            )

        # Step 6: Region augmentation
        region_zone = search_config.region_zone_for(language)
        if region_zone:
            region_result = await self._run_bounded(
                self._augment_region(normalized, region_zone, results, state),
                state,
                "Region augmentation",
            )
            if region_result is not None:
                results.append(region_result)

        # Step 7: Stable ordering by state, then by position
        ordered = [
            result for _, result in sorted(
                enumerate(results),
                key=lambda item: (item[1].status.sort_rank, item[0]),
            )
        ]

        # Cache and history writes run off the event loop, one save per store
        await loop.run_in_executor(None, self._apply_writes, state)

        self._log(
            LogLevel.INFO,
            f"Search completed for {normalized}: {len(ordered)} result(s)",
            {
                "query": normalized,
                "request_id": context.request_id,
                "counts": {
                    status.value: sum(1 for r in ordered if r.status == status)
                    for status in AvailabilityStatus
                },
                "duration_ms": (time.perf_counter() - start_time) * 1000,
            },
        )

        # Step 8
        return self._build_response(normalized, ordered)

    async def _suggest(self, normalized: str, language: str) -> list[str]:
        """Call the suggestion client, converting failures to service errors."""
        if not self._client.is_configured:
            raise self._service_unavailable(ProviderErrorCode.NOT_CONFIGURED.value, language)

        try:
            return await self._client.suggest(normalized)
        except ProviderError as e:
            if self._logger:
                self._logger.log_error(
                    "SearchOrchestrator",
                    f"Suggestion provider failed: {e.message}",
                    error=e,
                    additional_data={"query": normalized, "code": e.code},
                )
            raise self._service_unavailable(e.code, language, e.details) from e

    def _service_unavailable(
        self,
        code: str,
        language: str,
        details: Optional[dict] = None,
    ) -> ServiceUnavailableError:
        key = _PROVIDER_ERROR_MESSAGES.get(code, "service.provider_unreachable")
        return ServiceUnavailableError(
            code=code,
            message=get_message(key, language),
            remediation=get_message(f"{key}.hint", language),
            details=details,
        )

    async def _resolve_candidate(
        self,
        domain: str,
        record: Optional[ProviderStatusRecord],
        state: _RequestState,
    ) -> Optional[SearchResult]:
        """
        Resolve one candidate (classification, DNS fallback, enrichment).

        Returns:
            The SearchResult, or None if the provider had no record for it
        """
        if record is None:
            self._log(
                LogLevel.DEBUG,
                f"No status record for {domain}, skipping",
                {"domain": domain, "request_id": state.context.request_id},
            )
            return None

        async with state.semaphore:
            status = self._classifier.classify(record)
            if status == AvailabilityStatus.UNKNOWN:
                status = await self._dns_checker.check(domain)

        result = SearchResult(domain=domain, zone=extract_zone(domain), status=status)
        self._enrich(result, state.exchange_rate)
        state.cache_writes.append(functools.partial(self._write_cache, domain, status))
        state.history_writes.append(
            functools.partial(self._record_history, replace(result), state.context)
        )
        return result

    async def _retry_unknowns(
        self,
        unknowns: list[SearchResult],
        state: _RequestState,
    ) -> None:
        """
        Re-check unknown results once after the configured delay.

        The delay gives the provider time to index recently queried names.
        Results are updated in place.
        """
        await self._sleep(self._config.search.retry_delay_seconds)

        statuses = await self._client.batch_status([r.domain for r in unknowns])

        async def recheck(result: SearchResult) -> None:
            async with state.semaphore:
                status = self._classifier.classify(statuses.get(result.domain))
                if status == AvailabilityStatus.UNKNOWN:
                    status = await self._dns_checker.check(result.domain)

            result.status = status
            self._enrich(result, state.exchange_rate)
            state.cache_writes.append(functools.partial(self._write_cache, result.domain, status))
            if status != AvailabilityStatus.UNKNOWN:
                state.history_writes.append(
                    functools.partial(self._update_history, replace(result), state.context)
                )

        await asyncio.gather(*(recheck(result) for result in unknowns))

        self._log(
            LogLevel.INFO,
            f"Retry pass resolved {sum(1 for r in unknowns if r.status != AvailabilityStatus.UNKNOWN)}"
            f" of {len(unknowns)} unknown domain(s)",
            {"request_id": state.context.request_id},
        )

    async def _augment_region(
        self,
        normalized: str,
        zone: str,
        results: list[SearchResult],
        state: _RequestState,
    ) -> Optional[SearchResult]:
        """Resolve the locale-specific candidate unless it is already present."""
        candidate = derive_region_candidate(normalized, zone)
        if candidate is None:
            return None
        if any(result.domain == candidate for result in results):
            return None

        statuses = await self._client.batch_status([candidate])
        return await self._resolve_candidate(candidate, statuses.get(candidate), state)

    async def _run_bounded(self, coro, state: _RequestState, stage: str):
        """
        Run an optional stage within the request deadline.

        Stage failures and timeouts are logged; the search keeps whatever
        results it already has.
        """
        remaining = state.deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            coro.close()
            self._log(
                LogLevel.WARN,
                f"{stage} skipped: request deadline reached",
                {"request_id": state.context.request_id},
            )
            return None

        try:
            return await asyncio.wait_for(coro, timeout=remaining)
        except asyncio.TimeoutError:
            self._log(
                LogLevel.WARN,
                f"{stage} timed out; returning partial results",
                {"request_id": state.context.request_id, "timeout_seconds": remaining},
            )
        except Exception as e:
            if self._logger:
                self._logger.log_error(
                    "SearchOrchestrator",
                    f"{stage} failed",
                    error=e,
                    additional_data={"request_id": state.context.request_id},
                )
        return None

    def _enrich(self, result: SearchResult, exchange_rate: ExchangeRate) -> None:
        """Attach registrar offers (available) or the WHOIS marker (taken)."""
        result.registrars = None
        result.whois = None

        if result.status == AvailabilityStatus.AVAILABLE:
            result.registrars = self._fetch_offers(result, exchange_rate)
        elif result.status == AvailabilityStatus.TAKEN:
            result.whois = WHOIS_PENDING

    def _fetch_offers(self, result: SearchResult, exchange_rate: ExchangeRate) -> list:
        if not result.zone:
            return []
        try:
            offers = self._pricing.list_active_offers_by_zone(result.zone)
            return rank_offers(
                offers,
                result.domain,
                exchange_rate,
                self._config.search.max_registrars,
            )
        except Exception as e:
            if self._logger:
                self._logger.log_error(
                    "PricingRepository",
                    f"Failed to load offers for {result.zone}",
                    error=e,
                    additional_data={"domain": result.domain, "zone": result.zone},
                )
            return []

    def _resolve_exchange_rate(self) -> ExchangeRate:
        search_config = self._config.search
        rate = None
        if self._exchange_rates is not None:
            try:
                rate = self._exchange_rates.get_exchange_rate(
                    search_config.base_currency,
                    search_config.converted_currency,
                )
            except Exception as e:
                self._log(
                    LogLevel.WARN,
                    f"Exchange rate lookup failed, using fallback: {e}",
                    {"fallback_rate": search_config.fallback_exchange_rate},
                )

        return ExchangeRate(
            base_currency=search_config.base_currency,
            target_currency=search_config.converted_currency,
            rate=rate or search_config.fallback_exchange_rate,
        )

    def _apply_writes(self, state: _RequestState) -> None:
        """Apply the queued writes, saving each store once."""
        for store, component, writes in (
            (self._cache, "DomainCache", state.cache_writes),
            (self._history, "SearchHistory", state.history_writes),
        ):
            if not writes:
                continue
            try:
                with store.batch():
                    for write in writes:
                        write()
            except Exception as e:
                if self._logger:
                    self._logger.log_error(
                        component,
                        "Failed to save batched writes",
                        error=e,
                        additional_data={
                            "request_id": state.context.request_id,
                            "write_count": len(writes),
                        },
                    )

    def _write_cache(self, domain: str, status: AvailabilityStatus) -> None:
        try:
            self._cache.upsert(domain, status)
        except Exception as e:
            if self._logger:
                self._logger.log_error(
                    "DomainCache",
                    "Failed to write cache entry",
                    error=e,
                    additional_data={"domain": domain, "status": status.value},
                )

    def _record_history(self, result: SearchResult, context: SearchContext) -> None:
        try:
            self._history.record(
                domain=result.domain,
                status=result.status,
                zone=result.zone,
                query=context.query,
                language=context.language,
                client_ip=context.client_ip,
                user_agent=context.user_agent,
                request_id=context.request_id,
            )
        except Exception as e:
            if self._logger:
                self._logger.log_error(
                    "SearchHistory",
                    "Failed to record search history",
                    error=e,
                    additional_data={"domain": result.domain},
                )

    def _update_history(self, result: SearchResult, context: SearchContext) -> None:
        try:
            self._history.update_latest_state(
                result.domain,
                context.query,
                result.status,
                request_id=context.request_id,
            )
        except Exception as e:
            if self._logger:
                self._logger.log_error(
                    "SearchHistory",
                    "Failed to update search history",
                    error=e,
                    additional_data={"domain": result.domain},
                )

    def _build_response(self, normalized: str, results: list[SearchResult]) -> SearchResponse:
        return SearchResponse(
            query=normalized,
            results=results,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "SearchOrchestrator", message, data)

    async def close(self) -> None:
        """Close the network clients."""
        await self._client.close()
        await self._dns_checker.close()

    @property
    def config(self) -> SystemConfig:
        """Get the system configuration."""
        return self._config
