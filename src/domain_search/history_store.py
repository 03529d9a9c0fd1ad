"""
Search history store.

Records one row per resolved candidate for every search, with the request's
language and an anonymized client IP and user agent. Rows carry the request
id so the retry pass can update exactly the row its own request wrote.
"""

import csv
import io
import ipaddress
from datetime import datetime, timezone
from pathlib import Path
from typing import ContextManager, Optional, Protocol, runtime_checkable

from .enums import AvailabilityStatus
from .models import HistoryRecord
from .persistence import HmacJsonStore


USER_AGENT_MAX_LENGTH = 255
CSV_COLUMNS = (
    "id",
    "domain",
    "status",
    "tld",
    "search_query",
    "language",
    "user_ip",
    "user_agent",
    "searched_at",
)


@runtime_checkable
class SearchHistory(Protocol):
    """Interface the search pipeline writes audit rows to."""

    def record(
        self,
        domain: str,
        status: AvailabilityStatus,
        zone: str,
        query: str,
        language: Optional[str],
        client_ip: Optional[str],
        user_agent: Optional[str],
        request_id: str = "",
    ) -> int:
        ...

    def update_latest_state(
        self,
        domain: str,
        query: str,
        new_status: AvailabilityStatus,
        request_id: Optional[str] = None,
    ) -> bool:
        ...

    def batch(self) -> ContextManager[None]:
        """Group several writes into one save."""
        ...


def truncate_ip(client_ip: Optional[str]) -> Optional[str]:
    """
    Anonymize a client IP address.

    IPv4 addresses keep their /24 network, IPv6 addresses their /48.
    Unparseable values are dropped.
    """
    if not client_ip:
        return None
    try:
        address = ipaddress.ip_address(client_ip.strip())
    except ValueError:
        return None
    prefix = 24 if address.version == 4 else 48
    network = ipaddress.ip_network(f"{address}/{prefix}", strict=False)
    return str(network.network_address)


def truncate_user_agent(user_agent: Optional[str]) -> Optional[str]:
    if not user_agent:
        return None
    return user_agent[:USER_AGENT_MAX_LENGTH]


class SearchHistoryStore(HmacJsonStore):
    """HMAC-protected JSON implementation of the search history."""

    def __init__(self, file_path: Path, hmac_secret: str) -> None:
        super().__init__(file_path, hmac_secret)
        self._records: list[HistoryRecord] = []
        self._next_id = 1

    def _to_data(self) -> dict:
        return {
            "next_id": self._next_id,
            "records": [
                {
                    "id": record.id,
                    "request_id": record.request_id,
                    "domain": record.domain,
                    "status": record.status,
                    "tld": record.zone,
                    "search_query": record.search_query,
                    "language": record.language,
                    "user_ip": record.user_ip,
                    "user_agent": record.user_agent,
                    "searched_at": record.searched_at,
                }
                for record in self._records
            ],
        }

    def _from_data(self, data: dict) -> None:
        self._records = [
            HistoryRecord(
                id=row["id"],
                request_id=row.get("request_id", ""),
                domain=row["domain"],
                status=row["status"],
                zone=row.get("tld", ""),
                search_query=row.get("search_query", ""),
                language=row.get("language"),
                user_ip=row.get("user_ip"),
                user_agent=row.get("user_agent"),
                searched_at=row["searched_at"],
            )
            for row in data.get("records", [])
        ]
        highest_id = max((record.id for record in self._records), default=0)
        self._next_id = max(int(data.get("next_id", 1)), highest_id + 1)

    def record(
        self,
        domain: str,
        status: AvailabilityStatus,
        zone: str,
        query: str,
        language: Optional[str],
        client_ip: Optional[str],
        user_agent: Optional[str],
        request_id: str = "",
    ) -> int:
        """
        Append a history row.

        Returns:
            The new row id

        Raises:
            PersistenceError: If the history file cannot be written
        """
        self.ensure_loaded()
        record = HistoryRecord(
            id=self._next_id,
            request_id=request_id,
            domain=domain,
            status=status.value,
            zone=zone,
            search_query=query,
            language=language,
            user_ip=truncate_ip(client_ip),
            user_agent=truncate_user_agent(user_agent),
            searched_at=datetime.now(timezone.utc).isoformat(),
        )
        self._records.append(record)
        self._next_id += 1
        self._commit()
        return record.id

    def update_latest_state(
        self,
        domain: str,
        query: str,
        new_status: AvailabilityStatus,
        request_id: Optional[str] = None,
    ) -> bool:
        """
        Update the state of the most recent matching row.

        Rows are matched on (domain, query) and, when given, the request id.

        Returns:
            True if a row was updated

        Raises:
            PersistenceError: If the history file cannot be written
        """
        self.ensure_loaded()
        for record in reversed(self._records):
            if record.domain != domain or record.search_query != query:
                continue
            if request_id and record.request_id != request_id:
                continue
            record.status = new_status.value
            self._commit()
            return True
        return False

    def recent(self, limit: int = 100) -> list[HistoryRecord]:
        """Return the newest rows first."""
        self.ensure_loaded()
        return list(reversed(self._records))[: max(limit, 0)]

    def months(self) -> list[str]:
        """Return distinct ``YYYY-MM`` months with history, newest first."""
        self.ensure_loaded()
        return sorted({record.searched_at[:7] for record in self._records}, reverse=True)

    def by_month(self, month: str) -> list[HistoryRecord]:
        """Return rows searched in ``month`` (``YYYY-MM``), oldest first."""
        self.ensure_loaded()
        return [record for record in self._records if record.searched_at.startswith(month)]

    def export_month_csv(self, month: str) -> str:
        """Render a month's rows as CSV text."""
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_COLUMNS)
        for record in self.by_month(month):
            writer.writerow([
                record.id,
                record.domain,
                record.status,
                record.zone,
                record.search_query,
                record.language or "",
                record.user_ip or "",
                record.user_agent or "",
                record.searched_at,
            ])
        return buffer.getvalue()

    @property
    def records(self) -> list[HistoryRecord]:
        self.ensure_loaded()
        return list(self._records)
