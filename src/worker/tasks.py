"""Background alert evaluation for reported prices."""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from src.db.alert_state import AlertStateStore
from src.detect.alert_matcher import AlertMatcher, AlertView
from src.logging_config import get_logger
from src.notify.dispatcher import DispatchOutcome, NotificationDispatcher
from src import metrics

logger = logging.getLogger(__name__)


@dataclass
class AlertResult:
    """What happened to one triggered alert."""

    alert: AlertView
    dispatch: Optional[DispatchOutcome] = None
    deactivated: bool = False  # Alert is inactive after this evaluation
    skipped_reason: Optional[str] = None


class AlertEvaluationRunner:
    """
    Runs match -> dispatch -> deactivate off the request path.

    ``schedule`` returns immediately; the work runs as an asyncio task owned
    by the runner. Nothing raised inside an evaluation reaches the original
    caller: failures are logged and counted.

    Concurrent evaluations of the same product are not serialized. Two of
    them can both see an alert as active and both notify before either
    deactivation commits. With ``claim_before_dispatch`` the runner first
    deactivates conditionally and only dispatches alerts it claimed.
    """

    def __init__(
        self,
        matcher: AlertMatcher,
        dispatcher: NotificationDispatcher,
        state_store: AlertStateStore,
        claim_before_dispatch: bool = False,
    ):
        self.matcher = matcher
        self.dispatcher = dispatcher
        self.state_store = state_store
        self.claim_before_dispatch = claim_before_dispatch
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, product_id: int, current_price: Decimal) -> asyncio.Task:
        """Start evaluating a price update in the background."""
        task = asyncio.create_task(
            self.evaluate(product_id, current_price),
            name=f"evaluate-alerts-{product_id}",
        )
        # Keep a strong reference until the task finishes
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def evaluate(self, product_id: int, current_price: Decimal) -> list[AlertResult]:
        """
        Evaluate one price update. Never raises.

        Returns:
            One AlertResult per triggered alert (empty if the lookup failed)
        """
        try:
            triggered = await self.matcher.find_triggered(product_id, current_price)
        except Exception:
            logger.exception(
                f"Alert lookup failed for product {product_id} at {current_price}; "
                "skipping notifications for this update"
            )
            metrics.record_evaluation_failure("match")
            return []

        if not triggered:
            return []

        metrics.record_alerts_triggered(len(triggered))
        logger.info(
            f"{len(triggered)} alert(s) triggered for product {product_id} at {current_price}"
        )

        results = await asyncio.gather(
            *(self._process_alert(alert, current_price) for alert in triggered),
            return_exceptions=True,
        )

        processed = []
        for alert, result in zip(triggered, results):
            if isinstance(result, BaseException):
                logger.error(f"Unexpected error processing alert {alert.alert_id}: {result}")
                metrics.record_evaluation_failure("process")
                processed.append(AlertResult(alert=alert, skipped_reason=str(result)))
            else:
                processed.append(result)
        return processed

    async def _process_alert(self, alert: AlertView, current_price: Decimal) -> AlertResult:
        log = get_logger(__name__, alert_id=alert.alert_id, product_id=alert.product_id)
        result = AlertResult(alert=alert)

        if self.claim_before_dispatch:
            claimed = await self._deactivate(alert, log)
            if claimed is None:
                result.skipped_reason = "claim failed"
                return result
            if not claimed:
                log.info(f"Alert {alert.alert_id} already handled by another evaluation")
                result.skipped_reason = "already claimed"
                return result
            result.deactivated = True

        log.info(f"Alert triggered for {alert.email} on {alert.product_name or alert.product_url}")
        result.dispatch = await self.dispatcher.notify(alert, current_price)

        if not self.claim_before_dispatch:
            # Deactivate whatever the channels did, so a failed email cannot
            # re-trigger on every later price report.
            result.deactivated = await self._deactivate(alert, log) is not None

        return result

    async def _deactivate(self, alert: AlertView, log) -> Optional[bool]:
        try:
            return await self.state_store.deactivate(alert.alert_id)
        except Exception as e:
            # Not retried: the alert stays active and may notify again.
            log.error(f"Failed to deactivate alert {alert.alert_id}: {e}")
            return None

    async def close(self):
        """Wait for in-flight evaluations. Nothing is cancelled."""
        if self._tasks:
            logger.info(f"Waiting for {len(self._tasks)} alert evaluation(s) to finish")
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
