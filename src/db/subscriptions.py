"""Push subscription storage, one subscription per user."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.models import PushSubscription

logger = logging.getLogger(__name__)


class PushSubscriptionStore:
    """Reads and replaces users' Web Push subscriptions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, user_id: str) -> Optional[dict]:
        """Return the user's subscription payload, or None if there is none."""
        async with self.session_factory() as db:
            sub = await db.get(PushSubscription, user_id)
            return sub.subscription if sub else None

    async def save(self, user_id: str, subscription: dict) -> None:
        """Store a subscription, replacing any previous one for the user."""
        async with self.session_factory() as db:
            existing = await db.get(PushSubscription, user_id)
            if existing:
                existing.subscription = subscription
                existing.updated_at = datetime.utcnow()
            else:
                db.add(PushSubscription(user_id=user_id, subscription=subscription))
            await db.commit()

        logger.info(f"Saved push subscription for user {user_id}")
