"""
Publication search.

Free-text input is first scanned for DOIs (pasted reference lists, BibTeX
fields, doi.org links). Only when none are found is the text sent as a
bibliographic query to Crossref.
"""

import asyncio
import re
from typing import List, Optional, Tuple

import aiohttp
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pubsuggest.models.config import ProviderConfig
from pubsuggest.models.publication import Publication
from pubsuggest.services.cache_service import CacheService
from pubsuggest.utils.exceptions import APIError, RateLimitError, RetryableError

logger = structlog.get_logger()

# A DOI wrapped by a line break, e.g. "10.1145/ 3313831.3376" or "10.1/abc def"
_BROKEN_DOI = re.compile(r"(10\.\d+/)\s?([^\s,;\"{}]{0,12})\s([^\[])")
# Characters that have to be encoded in DOIs, plus typical DOI prefixes
_DOI_SEPARATORS = re.compile(r' |"|%|#|\?|\{|\}|doi:|doi\.org/')
_EDGE_PUNCTUATION = re.compile(r"^[.,;]+|[.,;]+$")
_NON_WORD = re.compile(r"\W+")

SEARCH_FILTER = "has-references:true"


def extract_dois(text: str) -> List[str]:
    """
    Find DOIs in free text.

    Args:
        text: Any text, e.g. a pasted bibliography

    Returns:
        Unique DOIs in order of appearance, as written
    """
    text = _BROKEN_DOI.sub(r"\1\2\3", text)
    dois: List[str] = []
    for token in _DOI_SEPARATORS.split(text):
        doi = _EDGE_PUNCTUATION.sub("", token.strip()).replace("\\_", "_")
        if doi.startswith("10.") and doi not in dois:
            dois.append(doi)
    return dois


def simplify_query(query: str) -> str:
    """Reduce a query to lower-case words joined by '+'."""
    return _NON_WORD.sub("+", query).strip("+").lower()


class PublicationSearch:
    """
    Resolve user input to publications.

    Returns unhydrated publications; hydration is left to the caller.
    """

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        cache_service: Optional[CacheService] = None,
        rows: int = 20,
    ):
        self.config = config or ProviderConfig()
        self.cache_service = cache_service
        self.rows = rows

    async def search(self, query: str) -> Tuple[List[Publication], str]:
        """
        Search for publications.

        Args:
            query: DOIs embedded in text, or a bibliographic query

        Returns:
            Tuple of (publications, "doi" or "search")
        """
        dois = extract_dois(query)
        if dois:
            logger.info("search_dois_identified", count=len(dois))
            return [Publication.create(doi) for doi in dois], "doi"

        simplified = simplify_query(query)
        if not simplified:
            return [], "search"

        cached = self.cache_service.get_search(simplified) if self.cache_service else None
        if cached is not None:
            logger.debug("search_cache_hit", query=simplified)
            return [Publication.create(doi) for doi in cached], "search"

        logger.info("search_started", query=query)
        found = await self._query_crossref(simplified)
        if self.cache_service:
            self.cache_service.set_search(simplified, found)
        logger.info("search_completed", query=query, results=len(found))
        return [Publication.create(doi) for doi in found], "search"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception_type((aiohttp.ClientError, RetryableError)),
        reraise=True,
    )
    async def _query_crossref(self, simplified: str) -> List[str]:
        params = {
            "query": simplified,
            "filter": SEARCH_FILTER,
            "rows": str(self.rows),
        }
        if self.config.crossref_mailto:
            params["mailto"] = self.config.crossref_mailto

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    self.config.crossref_url,
                    params=params,
                    timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds),
                ) as response:
                    if response.status == 429:
                        raise RateLimitError("Crossref rate limit exceeded")
                    if response.status >= 500:
                        raise RetryableError(f"Server error: {response.status}")
                    if response.status != 200:
                        raise APIError(f"Crossref search failed: {response.status}")
                    data = await response.json(content_type=None)
        except asyncio.TimeoutError:
            logger.warning("search_timeout", query=simplified)
            raise RetryableError("Search timed out")

        items = (data or {}).get("message", {}).get("items", [])
        dois: List[str] = []
        for item in items:
            doi = item.get("DOI")
            # Untitled items are mostly components like figures or tables
            if not item.get("title") or not doi:
                continue
            doi = doi.lower()
            if doi not in dois:
                dois.append(doi)
        return dois
