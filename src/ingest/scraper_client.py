"""Client for the external scraper's on-demand scrape endpoint."""

import logging

import httpx

from src.config import Settings

logger = logging.getLogger(__name__)


class ScraperUnavailableError(RuntimeError):
    """Raised when a scrape request could not be handed to the scraper."""


class ScrapeRequestClient:
    """Forwards out-of-band scrape requests for newly tracked URLs."""

    def __init__(self, base_url: str = "", timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScrapeRequestClient":
        return cls(settings.scraper_api_url, settings.scraper_timeout_seconds)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def request_scrape(self, url: str) -> bool:
        """
        Ask the scraper to fetch ``url`` now.

        Returns:
            True if forwarded, False if no scraper is configured

        Raises:
            ScraperUnavailableError: The scraper could not be reached or refused
        """
        if not self.base_url:
            logger.info(f"No scraper configured; {url} will be picked up on the next run")
            return False

        client = await self._get_client()
        try:
            response = await client.post(f"{self.base_url}/scrape", json={"url": url})
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Scrape request for {url} failed: {e}")
            raise ScraperUnavailableError(str(e)) from e

        logger.info(f"Scrape requested for {url}")
        return True
