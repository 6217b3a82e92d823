"""Alert active/inactive state transitions."""

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.models import Alert
from src import metrics

logger = logging.getLogger(__name__)


class AlertNotFoundError(LookupError):
    """Raised when an alert id does not exist."""


class AlertStateError(RuntimeError):
    """Raised when an alert state change could not be stored."""


class AlertStateStore:
    """
    Flips ``Alert.is_active``.

    Both transitions are conditional single-row UPDATEs ("only if currently
    the opposite state"), so the returned bool says whether this call made
    the change. Every call opens its own session so concurrent evaluations
    never share one.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def deactivate(self, alert_id: int) -> bool:
        """
        Mark an alert inactive.

        Returns:
            True if the alert went from active to inactive, False if it was
            already inactive (another evaluation got there first)

        Raises:
            AlertNotFoundError: The alert does not exist
            AlertStateError: The update could not be committed
        """
        return await self._transition(alert_id, active=False, action="deactivate")

    async def reactivate(self, alert_id: int) -> bool:
        """
        Mark an alert active again. Reactivating an active alert is a no-op.

        Returns:
            True if the alert was inactive, False if it was already active
        """
        return await self._transition(alert_id, active=True, action="reactivate")

    async def _transition(self, alert_id: int, active: bool, action: str) -> bool:
        stmt = (
            update(Alert)
            .where(Alert.id == alert_id, Alert.is_active.is_(not active))
            .values(is_active=active)
        )

        try:
            async with self.session_factory() as db:
                result = await db.execute(stmt)
                changed = result.rowcount > 0
                if not changed:
                    exists = await db.scalar(select(Alert.id).where(Alert.id == alert_id))
                    if exists is None:
                        raise AlertNotFoundError(f"Alert {alert_id} not found")
                await db.commit()
        except AlertNotFoundError:
            metrics.record_state_transition(action, False)
            raise
        except SQLAlchemyError as e:
            metrics.record_state_transition(action, False)
            raise AlertStateError(f"Failed to {action} alert {alert_id}: {e}") from e

        metrics.record_state_transition(action, True)
        logger.debug(f"{action} alert {alert_id}: changed={changed}")
        return changed
