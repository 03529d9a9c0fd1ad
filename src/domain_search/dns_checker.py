"""
DNS Fallback Checker.

Resolves a domain's A records through a public DNS-over-HTTPS resolver and
infers a weak availability signal from the outcome. Used only as a
tiebreaker when the provider is inconclusive.

Outcome mapping:
- NXDOMAIN (RCODE 3) -> available
- One or more A records -> taken
- Anything else (NOERROR without A records, SERVFAIL, transport error,
  timeout, malformed body) -> unknown
"""

import time
from dataclasses import dataclass
from typing import Optional

import httpx
import idna

from .audit_logger import AuditLogger
from .config import DNSConfig
from .enums import AvailabilityStatus, DNSErrorCode, LogLevel


RCODE_NOERROR = 0
RCODE_NXDOMAIN = 3
RECORD_TYPE_A = 1


@dataclass
class DNSLookupResult:
    """Detailed outcome of a single DNS fallback lookup."""

    domain: str
    status: AvailabilityStatus
    rcode: Optional[int] = None
    addresses: tuple[str, ...] = ()
    error_code: Optional[DNSErrorCode] = None
    response_time_ms: float = 0.0


class DNSFallbackChecker:
    """
    DNS-over-HTTPS availability checker.

    ``check`` never raises; every failure degrades to UNKNOWN.
    """

    def __init__(
        self,
        config: Optional[DNSConfig] = None,
        simulation_mode: bool = False,
        logger: Optional[AuditLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the DNS fallback checker.

        Args:
            config: Resolver URL and timeout
            simulation_mode: If True, no real network requests are made
            logger: Optional audit logger
            transport: Optional httpx transport (used by tests)
        """
        self._config = config or DNSConfig()
        self._simulation_mode = simulation_mode
        self._logger = logger
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "DNSFallbackChecker":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def check(self, domain: str) -> AvailabilityStatus:
        """Resolve ``domain`` and return the inferred availability state."""
        result = await self.lookup(domain)
        return result.status

    async def lookup(self, domain: str) -> DNSLookupResult:
        """Resolve ``domain`` and return the detailed lookup outcome."""
        start_time = time.perf_counter()

        try:
            ascii_name = idna.encode(domain.rstrip("."), uts46=True).decode("ascii")
        except (idna.IDNAError, UnicodeError) as e:
            return self._unknown(domain, DNSErrorCode.IDNA_ERROR, start_time, str(e))

        if self._simulation_mode:
            return DNSLookupResult(
                domain=domain,
                status=AvailabilityStatus.UNKNOWN,
                response_time_ms=self._elapsed_ms(start_time),
            )

        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=True,
                timeout=httpx.Timeout(self._config.timeout_seconds),
                transport=self._transport,
            )

        try:
            response = await self._client.get(
                self._config.resolver_url,
                params={"name": ascii_name, "type": "A"},
                headers={"Accept": "application/dns-json"},
            )
        except httpx.TimeoutException as e:
            return self._unknown(domain, DNSErrorCode.TIMEOUT, start_time, str(e))
        except httpx.HTTPError as e:
            return self._unknown(domain, DNSErrorCode.NETWORK_ERROR, start_time, str(e))
        except Exception as e:
            return self._unknown(
                domain, DNSErrorCode.NETWORK_ERROR, start_time, f"Unexpected error: {e}"
            )

        if response.status_code != 200:
            return self._unknown(
                domain,
                DNSErrorCode.SERVER_ERROR,
                start_time,
                f"Resolver returned HTTP {response.status_code}",
            )

        try:
            payload = response.json()
            rcode = int(payload["Status"])
            answers = payload.get("Answer") or []
            addresses = tuple(
                str(answer.get("data", ""))
                for answer in answers
                if isinstance(answer, dict) and answer.get("type") == RECORD_TYPE_A
            )
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            return self._unknown(domain, DNSErrorCode.PARSE_ERROR, start_time, str(e))

        if rcode == RCODE_NXDOMAIN:
            status = AvailabilityStatus.AVAILABLE
        elif rcode == RCODE_NOERROR and addresses:
            status = AvailabilityStatus.TAKEN
        else:
            status = AvailabilityStatus.UNKNOWN

        return DNSLookupResult(
            domain=domain,
            status=status,
            rcode=rcode,
            addresses=addresses,
            response_time_ms=self._elapsed_ms(start_time),
        )

    def _unknown(
        self,
        domain: str,
        error_code: DNSErrorCode,
        start_time: float,
        message: str,
    ) -> DNSLookupResult:
        if self._logger:
            self._logger.log(
                LogLevel.WARN,
                "DNSFallbackChecker",
                f"DNS lookup degraded to unknown: {message}",
                {"domain": domain, "error_code": error_code.value},
            )
        return DNSLookupResult(
            domain=domain,
            status=AvailabilityStatus.UNKNOWN,
            error_code=error_code,
            response_time_ms=self._elapsed_ms(start_time),
        )

    def _elapsed_ms(self, start_time: float) -> float:
        return (time.perf_counter() - start_time) * 1000

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
