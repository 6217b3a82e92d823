"""Ingestion of scraped prices."""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.models import PriceHistory, Product
from src.worker.tasks import AlertEvaluationRunner
from src import metrics

logger = logging.getLogger(__name__)


class ProductNotFoundError(LookupError):
    """Raised when a price is reported for an unknown product."""


class PriceStorageError(RuntimeError):
    """Raised when the price observation could not be stored."""


class ProductUpdateError(RuntimeError):
    """Raised when product details could not be stored but the price was."""


def validate_price(price) -> Decimal:
    """Coerce to Decimal and require a finite, non-negative value."""
    try:
        value = Decimal(str(price))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid price: {price!r}") from e
    if not value.is_finite():
        raise ValueError("Price must be finite")
    if value < 0:
        raise ValueError("Price must not be negative")
    return value


class PriceUpdateIngestor:
    """
    Stores a scraped price and hands alert evaluation to the background runner.

    The product update and the price insert are separate commits. A failed
    product update still lets the price through; a failed price insert stops
    everything, including evaluation.
    """

    def __init__(self, db: AsyncSession, runner: AlertEvaluationRunner):
        self.db = db
        self.runner = runner

    async def report_price(
        self,
        product_id: int,
        price,
        name: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> PriceHistory:
        """
        Record a price observation for a product.

        Args:
            product_id: Existing product id
            price: Scraped price
            name: Product name, if the scraper resolved it (blank means not)
            image_url: Product image, if the scraper resolved it (blank means not)

        Returns:
            The stored PriceHistory row

        Raises:
            ValueError: Price is not a finite non-negative number
            ProductNotFoundError: No such product
            PriceStorageError: Lookup or insert failed; nothing was scheduled
            ProductUpdateError: Details were not saved, the price was
        """
        price = validate_price(price)

        try:
            exists = await self.db.scalar(select(Product.id).where(Product.id == product_id))
        except SQLAlchemyError as e:
            metrics.record_price_update(False)
            raise PriceStorageError(f"Failed to look up product {product_id}: {e}") from e
        if exists is None:
            raise ProductNotFoundError(f"Product {product_id} not found")

        product_error = await self._update_details(product_id, name, image_url)

        observation = PriceHistory(
            product_id=product_id,
            price=price,
            scraped_at=datetime.utcnow(),
        )
        try:
            self.db.add(observation)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error inserting price for product {product_id}: {e}")
            metrics.record_price_update(False)
            raise PriceStorageError(f"Failed to store price: {e}") from e

        metrics.record_price_update(True)
        logger.info(f"Stored price {price} for product {product_id}")

        self.runner.schedule(product_id, price)

        if product_error is not None:
            raise ProductUpdateError(
                f"Price stored but product details were not: {product_error}"
            ) from product_error

        return observation

    async def _update_details(
        self, product_id: int, name: Optional[str], image_url: Optional[str]
    ) -> Optional[SQLAlchemyError]:
        # Scrapers send "" when a selector misses; keep what is stored
        values = {}
        if name and name.strip():
            values["name"] = name.strip()
        if image_url and image_url.strip():
            values["image_url"] = image_url.strip()
        if not values:
            return None

        try:
            await self.db.execute(
                update(Product).where(Product.id == product_id).values(**values)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error updating product {product_id}: {e}")
            return e
        return None
