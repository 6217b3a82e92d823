"""Product routes used by the scraper."""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_database
from src.db.models import PriceHistory, Product

router = APIRouter(prefix="/products", tags=["products"])


class ProductSummary(BaseModel):
    id: int
    url: str

    class Config:
        from_attributes = True


class PriceHistoryResponse(BaseModel):
    id: int
    price: float
    scraped_at: datetime

    class Config:
        from_attributes = True


@router.get("", response_model=List[ProductSummary])
async def list_products(db: AsyncSession = Depends(get_database)):
    """List every tracked product for the scraper."""
    try:
        result = await db.execute(select(Product.id, Product.url).order_by(Product.id))
    except SQLAlchemyError as e:
        return JSONResponse(status_code=500, content={"error": str(e)})
    return [ProductSummary(id=pid, url=url) for pid, url in result.all()]


@router.get("/{product_id}/history", response_model=List[PriceHistoryResponse])
async def get_price_history(
    product_id: int, limit: int = 100, db: AsyncSession = Depends(get_database)
):
    """Get recent price history for a product, latest first."""
    product = await db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    result = await db.execute(
        select(PriceHistory)
        .where(PriceHistory.product_id == product_id)
        .order_by(PriceHistory.scraped_at.desc(), PriceHistory.id.desc())
        .limit(limit)
    )
    return result.scalars().all()
