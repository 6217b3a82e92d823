"""On-demand scrape requests for newly tracked URLs."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.api.deps import get_scrape_client
from src.ingest.scraper_client import ScrapeRequestClient, ScraperUnavailableError

router = APIRouter(prefix="/scrape-requests", tags=["scraper"])


class ScrapeRequest(BaseModel):
    url: str = Field(..., min_length=1)


@router.post("", status_code=202)
async def request_scrape(
    data: ScrapeRequest,
    client: ScrapeRequestClient = Depends(get_scrape_client),
):
    """Ask the scraper to fetch a URL before its next scheduled run."""
    try:
        forwarded = await client.request_scrape(data.url)
    except ScraperUnavailableError as e:
        return JSONResponse(status_code=502, content={"error": str(e)})
    return {"message": "Scrape requested", "forwarded": forwarded}
