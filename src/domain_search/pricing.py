"""
Registrar pricing for available domains.

This module provides:
- The PricingRepository and ExchangeRateSource interfaces the search
  pipeline reads from
- A JSON-file backed implementation of both
- ``rank_offers``, which projects repository rows onto a candidate domain,
  deduplicates by registrar, sorts by currency-normalized price and caps
  the list
"""

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from .exceptions import PersistenceError
from .models import RegistrarOffer


DOMAIN_PLACEHOLDERS = ("{{ domain }}", "{domain}")


@runtime_checkable
class PricingRepository(Protocol):
    """Read-only source of active registrar offers."""

    def list_active_offers_by_zone(self, zone: str) -> list[RegistrarOffer]:
        """
        Return active offers for a zone, in the repository's display order.

        Args:
            zone: Zone including the leading dot (e.g. '.com')
        """
        ...


@runtime_checkable
class ExchangeRateSource(Protocol):
    """Source of stored currency conversion rates."""

    def get_exchange_rate(self, base_currency: str, target_currency: str) -> Optional[float]:
        """Return units of ``target_currency`` per ``base_currency``, if known."""
        ...


@dataclass(frozen=True)
class ExchangeRate:
    """Conversion between the base currency and one other currency."""

    base_currency: str
    target_currency: str
    rate: float  # target units per base unit

    def to_base(self, price: float, currency: str) -> Optional[float]:
        """
        Express ``price`` in the base currency.

        Returns:
            The converted price, or None if ``currency`` is neither the base
            nor the target currency
        """
        currency = (currency or self.base_currency).upper()
        if currency == self.base_currency.upper():
            return price
        if currency == self.target_currency.upper() and self.rate > 0:
            return price / self.rate
        return None


def build_register_url(template: str, domain: str) -> str:
    """Substitute ``domain`` into an affiliate link template."""
    url = template
    for placeholder in DOMAIN_PLACEHOLDERS:
        url = url.replace(placeholder, domain)
    return url


def rank_offers(
    offers: list[RegistrarOffer],
    domain: str,
    exchange_rate: ExchangeRate,
    limit: int,
) -> list[RegistrarOffer]:
    """
    Project, deduplicate, sort and cap registrar offers for a domain.

    The first offer per registrar id wins, so the repository's display order
    decides between duplicate rows. The sort is stable on the base-currency
    price; offers in a currency the rate cannot convert go last, in display
    order, and are never compared against converted prices.

    Args:
        offers: Repository rows in display order
        domain: Candidate domain substituted into the register URL
        exchange_rate: Rate used to normalize prices before comparison
        limit: Maximum number of offers to keep

    Returns:
        New RegistrarOffer objects with ``register_url`` populated
    """
    unique: list[RegistrarOffer] = []
    seen_ids: set[int] = set()
    for offer in offers:
        if offer.registrar_id in seen_ids:
            continue
        seen_ids.add(offer.registrar_id)
        unique.append(
            replace(
                offer,
                register_url=build_register_url(offer.affiliate_link_template, domain),
            )
        )

    convertible: list[tuple[float, RegistrarOffer]] = []
    unconvertible: list[RegistrarOffer] = []
    for offer in unique:
        base_price = exchange_rate.to_base(offer.price, offer.currency)
        if base_price is None:
            unconvertible.append(offer)
        else:
            convertible.append((base_price, offer))

    convertible.sort(key=lambda item: item[0])
    ranked = [offer for _, offer in convertible] + unconvertible
    return ranked[: max(limit, 0)]


class JsonPricingRepository:
    """
    Pricing repository backed by a JSON catalog file.

    File layout::

        {
          "registrars": [{"id": 1, "name": ..., "website": ...,
                          "affiliate_link_template": ..., "logo_url": ...,
                          "is_active": true, "display_order": 1}],
          "pricing": [{"registrar_id": 1, "tld": ".com", "currency": "USD",
                       "price": 10.98, "renewal_price": 14.98,
                       "transfer_price": null}],
          "exchange_rates": [{"base_currency": "USD",
                              "target_currency": "JPY", "rate": 150.0}]
        }

    The file is read lazily on first use and cached for the lifetime of the
    repository.
    """

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._data: Optional[dict] = None

    def _load(self) -> dict:
        if self._data is not None:
            return self._data

        if not self._file_path.exists():
            self._data = {"registrars": [], "pricing": [], "exchange_rates": []}
            return self._data

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Failed to parse pricing catalog: {e}",
                details={"file_path": str(self._file_path)},
            )
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to read pricing catalog: {e}",
                details={"file_path": str(self._file_path)},
            )

        if not isinstance(data, dict):
            raise PersistenceError(
                code="parse_error",
                message="Pricing catalog must be a JSON object",
                details={"file_path": str(self._file_path)},
            )

        self._data = data
        return self._data

    def list_active_offers_by_zone(self, zone: str) -> list[RegistrarOffer]:
        data = self._load()
        zone = zone.lower()

        registrars = {
            registrar["id"]: registrar
            for registrar in data.get("registrars", [])
            if registrar.get("is_active", True)
        }

        rows = []
        for pricing in data.get("pricing", []):
            registrar = registrars.get(pricing.get("registrar_id"))
            if registrar is None or str(pricing.get("tld", "")).lower() != zone:
                continue
            rows.append(
                RegistrarOffer(
                    registrar_id=registrar["id"],
                    name=registrar["name"],
                    website=registrar.get("website", ""),
                    affiliate_link_template=registrar.get("affiliate_link_template", ""),
                    logo_url=registrar.get("logo_url"),
                    price=float(pricing["price"]),
                    renewal_price=_optional_float(pricing.get("renewal_price")),
                    transfer_price=_optional_float(pricing.get("transfer_price")),
                    currency=str(pricing.get("currency") or "USD").upper(),
                    display_order=int(registrar.get("display_order", 0)),
                )
            )

        # Stable sort keeps catalog order between equal display orders
        rows.sort(key=lambda offer: offer.display_order)
        return rows

    def get_exchange_rate(self, base_currency: str, target_currency: str) -> Optional[float]:
        data = self._load()
        for entry in data.get("exchange_rates", []):
            if (
                str(entry.get("base_currency", "")).upper() == base_currency.upper()
                and str(entry.get("target_currency", "")).upper() == target_currency.upper()
            ):
                rate = _optional_float(entry.get("rate"))
                if rate is not None and rate > 0:
                    return rate
        return None


def _optional_float(value) -> Optional[float]:
    if value is None:
        return None
    return float(value)
