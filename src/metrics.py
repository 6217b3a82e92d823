"""Prometheus metrics for the price alert service."""

from prometheus_client import Counter, Info

# Application info
app_info = Info("price_alert_service", "Price alert service application info")
app_info.info({"version": "0.1.0", "name": "price-alert-service"})

# Ingest metrics
price_updates_total = Counter(
    "price_updates_total",
    "Total number of price updates reported by the scraper",
    ["status"],
)

# Evaluation metrics
alerts_triggered_total = Counter(
    "alerts_triggered_total",
    "Total number of alerts whose target was met by a price update",
)

alert_evaluation_failures_total = Counter(
    "alert_evaluation_failures_total",
    "Total number of evaluations aborted before dispatch",
    ["stage"],
)

# Notification metrics
notifications_total = Counter(
    "notifications_total",
    "Notification attempts per channel",
    ["channel", "status"],
)

# Alert state metrics
alert_state_transitions_total = Counter(
    "alert_state_transitions_total",
    "Alert activate/deactivate operations",
    ["action", "status"],
)


def record_price_update(success: bool):
    """Record a price update outcome."""
    status = "success" if success else "error"
    price_updates_total.labels(status=status).inc()


def record_alerts_triggered(count: int):
    """Record the size of a triggered batch."""
    if count:
        alerts_triggered_total.inc(count)


def record_evaluation_failure(stage: str):
    """Record an evaluation aborted at the given stage (e.g. "match")."""
    alert_evaluation_failures_total.labels(stage=stage).inc()


def record_notification(channel: str, status: str):
    """Record a notification outcome (sent, failed or skipped)."""
    notifications_total.labels(channel=channel, status=status).inc()


def record_state_transition(action: str, success: bool):
    """Record an alert state change attempt."""
    status = "success" if success else "error"
    alert_state_transitions_total.labels(action=action, status=status).inc()
