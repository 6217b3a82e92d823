"""Tests for alert state transitions."""

import pytest

from conftest import add_alert, is_active
from src.db.alert_state import AlertNotFoundError, AlertStateError, AlertStateStore
from src.db.models import Alert


@pytest.mark.asyncio
async def test_deactivate_active_alert(db, session_factory, state_store, product):
    alert = await add_alert(db, product, 500)

    changed = await state_store.deactivate(alert.id)

    assert changed is True
    assert await is_active(session_factory, alert.id) is False


@pytest.mark.asyncio
async def test_deactivate_twice_reports_no_change(db, session_factory, state_store, product):
    alert = await add_alert(db, product, 500)

    assert await state_store.deactivate(alert.id) is True
    assert await state_store.deactivate(alert.id) is False
    assert await is_active(session_factory, alert.id) is False


@pytest.mark.asyncio
async def test_reactivate_inactive_alert(db, session_factory, state_store, product):
    alert = await add_alert(db, product, 500, is_active=False)

    assert await state_store.reactivate(alert.id) is True
    assert await is_active(session_factory, alert.id) is True


@pytest.mark.asyncio
async def test_reactivate_active_alert_is_a_noop(db, session_factory, state_store, product):
    alert = await add_alert(db, product, 500)

    assert await state_store.reactivate(alert.id) is False
    assert await is_active(session_factory, alert.id) is True


@pytest.mark.asyncio
async def test_unknown_alert(state_store):
    with pytest.raises(AlertNotFoundError):
        await state_store.deactivate(9999)
    with pytest.raises(AlertNotFoundError):
        await state_store.reactivate(9999)


@pytest.mark.asyncio
async def test_storage_failure_raises_state_error(engine, session_factory, db, product):
    alert = await add_alert(db, product, 500)
    async with engine.begin() as conn:
        await conn.run_sync(Alert.__table__.drop)

    store = AlertStateStore(session_factory)
    with pytest.raises(AlertStateError):
        await store.deactivate(alert.id)
