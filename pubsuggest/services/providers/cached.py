from typing import Dict

import structlog

from pubsuggest.services.cache_service import CacheService
from pubsuggest.services.providers.base import PublicationProvider

logger = structlog.get_logger()


class CachedPublicationProvider(PublicationProvider):
    """Serve records from the disk cache, falling back to a wrapped provider"""

    def __init__(self, provider: PublicationProvider, cache_service: CacheService):
        self.provider = provider
        self.cache_service = cache_service

    @property
    def name(self) -> str:
        return f"cached_{self.provider.name}"

    async def fetch(self, doi: str, no_cache: bool = False) -> Dict:
        if not no_cache:
            record = self.cache_service.get_record(doi)
            if record is not None:
                return record

        record = await self.provider.fetch(doi, no_cache=no_cache)
        self.cache_service.set_record(doi, record)
        return record
