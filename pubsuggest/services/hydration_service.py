"""Publication hydration.

Issues concurrent fetch requests for placeholder publications, bounded by a
semaphore. Every request receives a per-DOI generation number when it is
issued; a result is applied only if no later-issued request for the same DOI
has already been applied, so out-of-order completion never overwrites newer
metadata.
"""

import asyncio
from typing import Dict, List, Sequence

import structlog

from pubsuggest.models.publication import Publication
from pubsuggest.models.session import HydrationReport
from pubsuggest.services.providers.base import PublicationProvider
from pubsuggest.utils.exceptions import HydrationFailure, ProviderUnavailableError

logger = structlog.get_logger()


class HydrationService:
    """Hydrate publications through a PublicationProvider."""

    def __init__(self, provider: PublicationProvider, max_concurrent: int = 10):
        """Initialize hydration service.

        Args:
            provider: Fetch/cache collaborator
            max_concurrent: Maximum outstanding fetch requests
        """
        self.provider = provider
        self.max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._issued: Dict[str, int] = {}
        self._applied: Dict[str, int] = {}
        self.stale_discarded = 0

    def issued_generation(self, doi: str) -> int:
        return self._issued.get(doi, 0)

    def applied_generation(self, doi: str) -> int:
        return self._applied.get(doi, 0)

    async def hydrate(self, publication: Publication, no_cache: bool = False) -> bool:
        """Hydrate one publication.

        Args:
            publication: Publication to populate in place
            no_cache: Force a refetch even if already hydrated

        Returns:
            True if the publication holds fetched metadata afterwards

        Raises:
            ProviderUnavailableError: If the provider is unavailable as a whole
        """
        if publication.was_fetched and not no_cache:
            return True

        doi = publication.doi
        generation = self._issued.get(doi, 0) + 1
        self._issued[doi] = generation

        async with self._semaphore:
            try:
                record = await self.provider.fetch(doi, no_cache=no_cache)
            except HydrationFailure as e:
                publication.mark_hydration_failed()
                logger.info("hydration_failed", doi=doi, error=str(e))
                return publication.was_fetched

        if generation < self._applied.get(doi, 0):
            logger.debug(
                "stale_hydration_discarded",
                doi=doi,
                generation=generation,
                applied=self._applied[doi],
            )
            self.stale_discarded += 1
            return publication.was_fetched

        publication.hydrate(record)
        self._applied[doi] = generation
        return True

    async def hydrate_many(
        self, publications: Sequence[Publication], no_cache: bool = False
    ) -> HydrationReport:
        """Hydrate publications concurrently.

        Per-publication failures leave stubs and never abort the batch.
        Provider unavailability is collected and reported once.

        Args:
            publications: Publications to hydrate
            no_cache: Force refetching

        Returns:
            HydrationReport summarising the batch
        """
        pending = [p for p in publications if no_cache or not p.was_fetched]
        report = HydrationReport(requested=len(pending))
        if not pending:
            return report
        stale_before = self.stale_discarded

        results = await asyncio.gather(
            *(self.hydrate(p, no_cache=no_cache) for p in pending),
            return_exceptions=True,
        )

        failed: List[str] = []
        for publication, result in zip(pending, results):
            if isinstance(result, ProviderUnavailableError):
                publication.mark_hydration_failed()
                failed.append(publication.doi)
                if not report.provider_unavailable:
                    report.provider_unavailable = True
                    report.unavailable_error = str(result)
            elif isinstance(result, BaseException):
                publication.mark_hydration_failed()
                failed.append(publication.doi)
                logger.error(
                    "hydration_error",
                    doi=publication.doi,
                    error=str(result),
                    error_type=type(result).__name__,
                )
            elif result:
                report.hydrated += 1
            else:
                failed.append(publication.doi)

        report.failed = failed
        report.stale_discarded = self.stale_discarded - stale_before
        logger.info(
            "hydration_batch_complete",
            requested=report.requested,
            hydrated=report.hydrated,
            failed=len(failed),
            provider_unavailable=report.provider_unavailable,
        )
        return report
