"""
Domain normalization and zone extraction.

Turns a raw user query into a comparable lowercase domain string and derives
the registry zone used for pricing lookups.
"""

import re
from typing import Optional


_PROTOCOL_PATTERN = re.compile(r"^https?://")
_WWW_PREFIX = "www."
_TOKEN_SEPARATORS = re.compile(r"[\s,]+")
_TRAILING_ROOT = re.compile(r"[\s.]+$")


def normalize(raw: str) -> str:
    """
    Canonicalize a raw query into a NormalizedDomain.

    Lowercases the input, strips a leading ``http://``/``https://`` and
    ``www.``, drops a single trailing slash, truncates at the first remaining
    slash and trims surrounding whitespace. The trailing root dot of a fully
    qualified name (``example.com.``) is dropped. Never fails.

    Prefixes are stripped until none remain, so ``normalize`` is idempotent
    even for inputs such as ``https://www.https://example.com``.
    """
    if not raw:
        return ""

    domain = raw.lower()
    previous = None
    while domain != previous:
        previous = domain
        domain = domain.strip()
        domain = _PROTOCOL_PATTERN.sub("", domain)
        if domain.startswith(_WWW_PREFIX):
            domain = domain[len(_WWW_PREFIX):]

    if domain.endswith("/"):
        domain = domain[:-1]
    domain = domain.split("/", 1)[0]
    return _TRAILING_ROOT.sub("", domain.strip())


def extract_zone(domain: str) -> str:
    """
    Extract the zone (TLD) of a normalized domain.

    Compound zones such as ``.co.jp`` are recognised by a short (three
    characters or fewer) second-to-last label.

    Examples:
        >>> extract_zone("example.co.jp")
        '.co.jp'
        >>> extract_zone("example.com")
        '.com'
        >>> extract_zone("example")
        ''
    """
    labels = domain.split(".")
    if len(labels) < 2:
        return ""
    if len(labels) >= 3 and len(labels[-2]) <= 3:
        return "." + ".".join(labels[-2:])
    return "." + labels[-1]


def strip_zone(domain: str) -> str:
    """Remove the zone from a domain, leaving the registrable label(s)."""
    zone = extract_zone(domain)
    if not zone:
        return domain
    return domain[: -len(zone)]


def derive_region_candidate(normalized_query: str, zone: str) -> Optional[str]:
    """
    Build the region-specific candidate for a query.

    Takes the first whitespace/comma-delimited token of the query, strips any
    zone it already carries and appends the target zone.

    Returns:
        The candidate domain, or None if the query yields no usable label
    """
    tokens = [token for token in _TOKEN_SEPARATORS.split(normalized_query) if token]
    if not tokens:
        return None

    label = strip_zone(tokens[0]).strip(".")
    if not label:
        return None

    if not zone.startswith("."):
        zone = "." + zone
    return f"{label}{zone.lower()}"
