"""Tests for price ingestion."""

from decimal import Decimal

import pytest
from sqlalchemy import select, text

from src.db.models import PriceHistory, Product
from src.ingest.price_ingestor import (
    PriceStorageError,
    PriceUpdateIngestor,
    ProductNotFoundError,
    ProductUpdateError,
    validate_price,
)


class RecordingRunner:
    def __init__(self):
        self.scheduled = []

    def schedule(self, product_id, current_price):
        self.scheduled.append((product_id, current_price))


async def _prices(session_factory, product_id):
    async with session_factory() as session:
        result = await session.execute(
            select(PriceHistory.price)
            .where(PriceHistory.product_id == product_id)
            .order_by(PriceHistory.id)
        )
        return list(result.scalars().all())


async def _product(session_factory, product_id):
    async with session_factory() as session:
        return await session.get(Product, product_id)


@pytest.mark.parametrize("value", ["0", "0.01", "450", 19.99, 3])
def test_validate_price_accepts(value):
    assert validate_price(value) == Decimal(str(value))


@pytest.mark.parametrize("value", ["-1", "nan", "inf", "-inf", "abc", None])
def test_validate_price_rejects(value):
    with pytest.raises(ValueError):
        validate_price(value)


@pytest.mark.asyncio
async def test_stores_price_and_schedules_evaluation(db, session_factory, product):
    runner = RecordingRunner()

    observation = await PriceUpdateIngestor(db, runner).report_price(product.id, "450")

    assert observation.id is not None
    assert observation.scraped_at is not None
    assert await _prices(session_factory, product.id) == [Decimal("450.00")]
    assert runner.scheduled == [(product.id, Decimal("450"))]


@pytest.mark.asyncio
async def test_updates_only_provided_details(db, session_factory, product):
    ingestor = PriceUpdateIngestor(db, RecordingRunner())

    await ingestor.report_price(product.id, "450", image_url="https://img.example.com/1.jpg")

    stored = await _product(session_factory, product.id)
    assert stored.name == "Noise Cancelling Headphones"
    assert stored.image_url == "https://img.example.com/1.jpg"

    await ingestor.report_price(product.id, "440", name="Headphones v2")

    stored = await _product(session_factory, product.id)
    assert stored.name == "Headphones v2"
    assert stored.image_url == "https://img.example.com/1.jpg"


@pytest.mark.asyncio
async def test_blank_details_keep_stored_values(db, session_factory, product):
    ingestor = PriceUpdateIngestor(db, RecordingRunner())
    await ingestor.report_price(product.id, "450", image_url="https://img.example.com/1.jpg")

    await ingestor.report_price(product.id, "440", name="", image_url="  ")

    stored = await _product(session_factory, product.id)
    assert stored.name == "Noise Cancelling Headphones"
    assert stored.image_url == "https://img.example.com/1.jpg"
    assert await _prices(session_factory, product.id) == [Decimal("450.00"), Decimal("440.00")]


@pytest.mark.asyncio
async def test_repeated_identical_price_appends_history(db, session_factory, product):
    runner = RecordingRunner()
    ingestor = PriceUpdateIngestor(db, runner)

    await ingestor.report_price(product.id, "350")
    await ingestor.report_price(product.id, "350")

    assert await _prices(session_factory, product.id) == [Decimal("350.00")] * 2
    assert len(runner.scheduled) == 2


@pytest.mark.asyncio
async def test_unknown_product(db, session_factory):
    runner = RecordingRunner()

    with pytest.raises(ProductNotFoundError):
        await PriceUpdateIngestor(db, runner).report_price(404, "10")

    assert runner.scheduled == []
    assert await _prices(session_factory, 404) == []


@pytest.mark.asyncio
async def test_invalid_price_has_no_side_effects(db, session_factory, product):
    runner = RecordingRunner()

    with pytest.raises(ValueError):
        await PriceUpdateIngestor(db, runner).report_price(product.id, "-5", name="Changed")

    assert runner.scheduled == []
    assert (await _product(session_factory, product.id)).name == "Noise Cancelling Headphones"


@pytest.mark.asyncio
async def test_price_insert_failure_skips_evaluation(engine, db, product):
    async with engine.begin() as conn:
        await conn.run_sync(PriceHistory.__table__.drop)
    runner = RecordingRunner()

    with pytest.raises(PriceStorageError):
        await PriceUpdateIngestor(db, runner).report_price(product.id, "450")

    assert runner.scheduled == []


@pytest.mark.asyncio
async def test_product_update_failure_still_stores_price(engine, db, session_factory, product):
    product_id = product.id
    async with engine.begin() as conn:
        await conn.execute(text(
            "CREATE TRIGGER reject_product_update BEFORE UPDATE ON products "
            "BEGIN SELECT RAISE(ABORT, 'product writes disabled'); END"
        ))
    runner = RecordingRunner()

    with pytest.raises(ProductUpdateError):
        await PriceUpdateIngestor(db, runner).report_price(product_id, "450", name="New name")

    assert await _prices(session_factory, product_id) == [Decimal("450.00")]
    assert runner.scheduled == [(product_id, Decimal("450"))]
