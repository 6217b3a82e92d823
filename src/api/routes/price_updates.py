"""Price update endpoint for the scraper."""

import logging
import math

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_database, get_evaluation_runner
from src.ingest.price_ingestor import (
    PriceStorageError,
    PriceUpdateIngestor,
    ProductNotFoundError,
    ProductUpdateError,
)
from src.worker.tasks import AlertEvaluationRunner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/price-updates", tags=["prices"])


class PriceUpdate(BaseModel):
    product_id: int
    name: str | None = None
    image_url: str | None = None
    price: float

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: float) -> float:
        """Reject NaN, infinities and negative prices."""
        if not math.isfinite(v):
            raise ValueError("price must be a finite number")
        if v < 0:
            raise ValueError("price must not be negative")
        return v


@router.post("")
async def report_price(
    update: PriceUpdate,
    db: AsyncSession = Depends(get_database),
    runner: AlertEvaluationRunner = Depends(get_evaluation_runner),
):
    """
    Store a freshly scraped price.

    Responds as soon as the price is stored. Alert evaluation and
    notifications run afterwards in the background.
    """
    ingestor = PriceUpdateIngestor(db, runner)
    try:
        await ingestor.report_price(
            update.product_id,
            update.price,
            name=update.name,
            image_url=update.image_url,
        )
    except ProductNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (PriceStorageError, ProductUpdateError) as e:
        return JSONResponse(status_code=500, content={"error": str(e)})

    return {"message": "Price updated"}
