"""
Availability Classifier for provider status records.

This module maps a provider status record into one of the three canonical
availability states. The provider's synthesized ``summary`` is trusted over
its raw ``status`` tokens; tokens are consulted only when the summary itself
reports uncertainty.
"""

from typing import Optional

from .enums import AvailabilityStatus
from .models import ProviderStatusRecord


class AvailabilityClassifier:
    """
    Stateless classifier for provider status records.

    Rules, first match wins:
    1. No record -> UNKNOWN
    2. Summary in AVAILABLE_SUMMARIES -> AVAILABLE
    3. Summary in TAKEN_SUMMARIES -> TAKEN
    4. Summary "unknown" or empty -> inspect status tokens
    5. Any other summary -> UNKNOWN
    """

    AVAILABLE_SUMMARIES = frozenset({"inactive", "available", "undelegated"})
    TAKEN_SUMMARIES = frozenset({"active", "parked", "claimed", "registered", "reserved"})
    UNCERTAIN_SUMMARIES = frozenset({"unknown", ""})

    AVAILABLE_TOKENS = frozenset({"undelegated", "inactive", "available"})
    TAKEN_TOKENS = frozenset({"active", "parked", "premium", "registered", "reserved"})

    def classify(self, record: Optional[ProviderStatusRecord]) -> AvailabilityStatus:
        """
        Classify a provider status record.

        Args:
            record: The provider record, or None when the provider returned nothing

        Returns:
            The canonical AvailabilityStatus
        """
        if record is None:
            return AvailabilityStatus.UNKNOWN

        summary = record.summary.strip().lower() if isinstance(record.summary, str) else ""

        if summary in self.AVAILABLE_SUMMARIES:
            return AvailabilityStatus.AVAILABLE

        if summary in self.TAKEN_SUMMARIES:
            return AvailabilityStatus.TAKEN

        if summary in self.UNCERTAIN_SUMMARIES:
            return self._classify_tokens(record.tokens)

        # Unrecognized summary: never guess
        return AvailabilityStatus.UNKNOWN

    def _classify_tokens(self, tokens: frozenset[str]) -> AvailabilityStatus:
        if tokens & self.AVAILABLE_TOKENS:
            return AvailabilityStatus.AVAILABLE
        if tokens & self.TAKEN_TOKENS:
            return AvailabilityStatus.TAKEN
        return AvailabilityStatus.UNKNOWN


def classify(record: Optional[ProviderStatusRecord]) -> AvailabilityStatus:
    """Classify a record with a default classifier."""
    return _DEFAULT_CLASSIFIER.classify(record)


_DEFAULT_CLASSIFIER = AvailabilityClassifier()
