"""Shared fixtures: per-test SQLite database, seed data and notifier doubles."""

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.db.alert_state import AlertStateStore
from src.db.models import Alert, Base, Product, User
from src.db.subscriptions import PushSubscriptionStore
from src.detect.alert_matcher import AlertMatcher
from src.notify.dispatcher import NotificationDispatcher
from src.worker.tasks import AlertEvaluationRunner

SUBSCRIPTION = {
    "endpoint": "https://push.example.com/send/abc123",
    "keys": {"p256dh": "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0VJXg7A8u-Ts1XbjhazAkj7I99e8QcYP7DkM", "auth": "tBHItJI5svbpez7KI4CCXg"},
}


class FakeEmailNotifier:
    """Records sends; optionally fails every send."""

    def __init__(self, fail: Exception | None = None, fail_for: set[int] | None = None):
        self.fail = fail
        self.fail_for = fail_for or set()
        self.sent = []
        self.attempts = []

    async def send_price_alert(self, alert, current_price):
        self.attempts.append((alert.alert_id, current_price))
        if self.fail and (not self.fail_for or alert.alert_id in self.fail_for):
            raise self.fail
        self.sent.append((alert.alert_id, current_price))


class FakePushNotifier:
    """Records pushes; optionally fails every push."""

    def __init__(self, fail: Exception | None = None, configured: bool = True):
        self.fail = fail
        self.configured = configured
        self.sent = []
        self.attempts = []

    async def send_price_alert(self, subscription, alert, current_price):
        self.attempts.append((alert.alert_id, current_price))
        if self.fail:
            raise self.fail
        self.sent.append((alert.alert_id, subscription["endpoint"], current_price))


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def product(db):
    """Product P with two users' worth of context."""
    db.add_all([
        User(id="user-a", email="alice@example.com"),
        User(id="user-b", email="bob@example.com"),
    ])
    product = Product(url="https://shop.example.com/p/1", name="Noise Cancelling Headphones")
    db.add(product)
    await db.commit()
    await db.refresh(product)
    return product


async def add_alert(db, product, target, user_id="user-a", is_active=True) -> Alert:
    alert = Alert(
        user_id=user_id,
        product_id=product.id,
        target_price=Decimal(str(target)),
        is_active=is_active,
    )
    db.add(alert)
    await db.commit()
    await db.refresh(alert)
    return alert


async def is_active(session_factory, alert_id: int) -> bool:
    async with session_factory() as session:
        alert = await session.get(Alert, alert_id)
        return alert.is_active


@pytest.fixture
def email_notifier():
    return FakeEmailNotifier()


@pytest.fixture
def push_notifier():
    return FakePushNotifier()


@pytest.fixture
def subscriptions(session_factory):
    return PushSubscriptionStore(session_factory)


@pytest.fixture
def state_store(session_factory):
    return AlertStateStore(session_factory)


@pytest.fixture
def dispatcher(email_notifier, push_notifier, subscriptions):
    return NotificationDispatcher(email_notifier, push_notifier, subscriptions)


@pytest.fixture
def runner(session_factory, dispatcher, state_store):
    return AlertEvaluationRunner(
        matcher=AlertMatcher(session_factory),
        dispatcher=dispatcher,
        state_store=state_store,
    )
