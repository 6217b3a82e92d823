"""Selection of user alerts triggered by a new price."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.models import Alert, Product, User

logger = logging.getLogger(__name__)


class TriggerComparison(str, Enum):
    """How the current price is compared against an alert's target."""

    AT_OR_BELOW = "at_or_below"  # current <= target
    BELOW = "below"  # current < target
    AT_OR_ABOVE = "at_or_above"  # current >= target

    def qualifies(self, current_price: Decimal, target_price: Decimal) -> bool:
        """Check a single price against a target."""
        if self is TriggerComparison.AT_OR_BELOW:
            return current_price <= target_price
        if self is TriggerComparison.BELOW:
            return current_price < target_price
        return current_price >= target_price

    def clause(self, target_column, current_price: Decimal):
        """The same comparison as a SQL expression on the target column."""
        if self is TriggerComparison.AT_OR_BELOW:
            return target_column >= current_price
        if self is TriggerComparison.BELOW:
            return target_column > current_price
        return target_column <= current_price


@dataclass(frozen=True)
class AlertView:
    """An active alert joined with its user's email and product details."""

    alert_id: int
    user_id: str
    email: str
    target_price: Decimal
    product_id: int
    product_url: str
    product_name: Optional[str] = None


class AlertMatcher:
    """Finds the active alerts on a product that a price satisfies."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        comparison: TriggerComparison = TriggerComparison.AT_OR_BELOW,
    ):
        self.session_factory = session_factory
        self.comparison = comparison

    async def find_triggered(
        self, product_id: int, current_price: Decimal
    ) -> list[AlertView]:
        """
        Return every active alert on ``product_id`` whose target is met.

        Database errors propagate; the caller decides whether to abort.
        """
        query = (
            select(
                Alert.id,
                Alert.user_id,
                User.email,
                Alert.target_price,
                Product.id,
                Product.url,
                Product.name,
            )
            .join(User, Alert.user_id == User.id)
            .join(Product, Alert.product_id == Product.id)
            .where(
                Alert.product_id == product_id,
                Alert.is_active.is_(True),
                self.comparison.clause(Alert.target_price, current_price),
            )
            .order_by(Alert.id)
        )

        async with self.session_factory() as db:
            result = await db.execute(query)
            rows = result.all()

        triggered = [
            AlertView(
                alert_id=alert_id,
                user_id=user_id,
                email=email,
                target_price=Decimal(target_price),
                product_id=pid,
                product_url=url,
                product_name=name,
            )
            for alert_id, user_id, email, target_price, pid, url, name in rows
        ]

        logger.debug(
            f"Product {product_id} at {current_price}: "
            f"{len(triggered)} alert(s) triggered ({self.comparison.value})"
        )
        return triggered
