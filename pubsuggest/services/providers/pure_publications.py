import aiohttp
import asyncio
from typing import Dict, Optional
import structlog
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from pubsuggest.models.config import ProviderConfig
from pubsuggest.services.providers.base import (
    PublicationProvider,
    APIError,
    HydrationFailure,
    RateLimitError,
)
from pubsuggest.utils.circuit_breaker import CircuitBreaker
from pubsuggest.utils.exceptions import RetryableError
from pubsuggest.utils.rate_limiter import RateLimiter

logger = structlog.get_logger()


class PurePublicationsProvider(PublicationProvider):
    """Fetch publication records with citation/reference DOI lists

    The publication service merges Crossref and OpenCitations data and
    answers with one JSON record per DOI.
    """

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        rate_limiter: Optional[RateLimiter] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.config = config or ProviderConfig()
        self.rate_limiter = rate_limiter or RateLimiter(
            requests_per_minute=self.config.requests_per_minute
        )
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            self.name, self.config.circuit_breaker
        )

    @property
    def name(self) -> str:
        """Provider name"""
        return "pure_publications"

    async def fetch(self, doi: str, no_cache: bool = False) -> Dict:
        """Fetch the record for a DOI

        Transport failures count against the circuit breaker; once it opens,
        every call fails fast with ProviderUnavailableError.
        """
        self.circuit_breaker.check_or_raise()

        try:
            data = await self._request(doi, no_cache)
        except HydrationFailure:
            # The service answered, only this DOI is unusable
            self.circuit_breaker.record_success()
            raise
        except (aiohttp.ClientError, APIError) as e:
            self.circuit_breaker.record_failure()
            logger.warning(
                "publication_fetch_failed",
                doi=doi,
                error=str(e),
                circuit_state=self.circuit_breaker.state.value,
            )
            raise HydrationFailure(f"Fetching {doi} failed: {e}", doi=doi) from e

        self.circuit_breaker.record_success()
        return data

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception_type((aiohttp.ClientError, RetryableError)),
        reraise=True,
    )
    async def _request(self, doi: str, no_cache: bool) -> Dict:
        params = {"doi": doi}
        if no_cache:
            params["noCache"] = "true"

        await self.rate_limiter.acquire()

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    self.config.publications_url,
                    params=params,
                    timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds),
                ) as response:

                    if response.status == 429:
                        raise RateLimitError("Publication service rate limit exceeded")

                    if response.status >= 500:
                        raise RetryableError(f"Server error: {response.status}")

                    if response.status == 404:
                        raise HydrationFailure(f"Unknown DOI: {doi}", doi=doi)

                    if response.status != 200:
                        text = await response.text()
                        logger.error("api_error", status=response.status, body=text[:200])
                        raise APIError(f"API request failed: {response.status}")

                    data = await response.json(content_type=None)

        except asyncio.TimeoutError:
            logger.warning("api_timeout", doi=doi)
            raise RetryableError("Request timed out")

        if not isinstance(data, dict):
            raise HydrationFailure(f"Unexpected response for {doi}", doi=doi)

        logger.debug(
            "publication_fetched",
            doi=doi,
            provider=self.name,
        )
        return data
