from abc import ABC, abstractmethod
from typing import Dict

from pubsuggest.utils.exceptions import (  # noqa: F401 - re-exported for providers
    APIError,
    HydrationFailure,
    ProviderUnavailableError,
    RateLimitError,
)


class PublicationProvider(ABC):
    """Abstract base class for publication metadata providers

    All providers must implement this interface so the hydration layer can
    treat the metadata service, caches and test doubles alike.
    """

    @abstractmethod
    async def fetch(self, doi: str, no_cache: bool = False) -> Dict:
        """Fetch the raw record for a DOI

        Must be safe to call repeatedly for the same DOI.

        Args:
            doi: Normalized DOI
            no_cache: Bypass any cache layer

        Returns:
            Raw record with title, author, year, container, citation and
            reference fields

        Raises:
            HydrationFailure: If this DOI cannot be fetched
            ProviderUnavailableError: If the provider is unavailable as a whole
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name for logging and identification"""
        pass
