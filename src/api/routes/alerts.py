"""User alert routes: start tracking, list, reactivate."""

import logging
import math
from datetime import datetime
from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_alert_state_store, get_database
from src.db.alert_state import AlertNotFoundError, AlertStateError, AlertStateStore
from src.db.models import Alert, PriceHistory, Product

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts", tags=["alerts"])


class AlertCreate(BaseModel):
    user_id: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    target_price: float

    @field_validator("target_price")
    @classmethod
    def validate_target(cls, v: float) -> float:
        if not math.isfinite(v) or v < 0:
            raise ValueError("target_price must be a finite, non-negative number")
        return v


class AlertResponse(BaseModel):
    id: int
    user_id: str
    product_id: int
    target_price: float
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class TrackedItemResponse(BaseModel):
    id: int
    target_price: float
    is_active: bool
    product_id: int
    url: str
    name: str | None
    image_url: str | None
    latest_price: float | None


async def _get_or_create_product(db: AsyncSession, url: str) -> Product:
    """Upsert a product by URL."""
    product = await db.scalar(select(Product).where(Product.url == url))
    if product:
        return product

    product = Product(url=url)
    db.add(product)
    try:
        await db.commit()
    except IntegrityError:
        # Tracked concurrently by someone else
        await db.rollback()
        product = await db.scalar(select(Product).where(Product.url == url))
        if product is None:
            raise
        return product
    await db.refresh(product)
    return product


@router.post("", response_model=AlertResponse, status_code=201)
async def create_alert(data: AlertCreate, db: AsyncSession = Depends(get_database)):
    """Start tracking a product URL at a target price."""
    try:
        product = await _get_or_create_product(db, data.url)
        alert = Alert(
            user_id=data.user_id,
            product_id=product.id,
            target_price=Decimal(str(data.target_price)),
            is_active=True,
        )
        db.add(alert)
        await db.commit()
        await db.refresh(alert)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to create alert for {data.url}: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)})

    logger.info(f"User {data.user_id} tracking product {product.id} at {data.target_price}")
    return alert


@router.get("", response_model=List[TrackedItemResponse])
async def list_alerts(
    user_id: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_database),
):
    """List a user's alerts with product details and the latest price."""
    latest_price = (
        select(PriceHistory.price)
        .where(PriceHistory.product_id == Product.id)
        .order_by(PriceHistory.scraped_at.desc(), PriceHistory.id.desc())
        .limit(1)
        .correlate(Product)
        .scalar_subquery()
    )
    result = await db.execute(
        select(Alert, Product, latest_price.label("latest_price"))
        .join(Product, Alert.product_id == Product.id)
        .where(Alert.user_id == user_id)
        .order_by(Alert.created_at.desc(), Alert.id.desc())
    )

    return [
        TrackedItemResponse(
            id=alert.id,
            target_price=float(alert.target_price),
            is_active=alert.is_active,
            product_id=product.id,
            url=product.url,
            name=product.name,
            image_url=product.image_url,
            latest_price=float(price) if price is not None else None,
        )
        for alert, product, price in result.all()
    ]


@router.post("/{alert_id}/reactivate")
async def reactivate_alert(
    alert_id: int,
    store: AlertStateStore = Depends(get_alert_state_store),
):
    """Re-enable an alert after it fired. Re-enabling an active alert is a no-op."""
    try:
        changed = await store.reactivate(alert_id)
    except AlertNotFoundError:
        raise HTTPException(status_code=404, detail="Alert not found")
    except AlertStateError as e:
        logger.error(str(e))
        return JSONResponse(status_code=500, content={"error": str(e)})

    return {"message": "Alert reactivated", "changed": changed}
