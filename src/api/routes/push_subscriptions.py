"""Push subscription registration."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from src.api.deps import get_subscription_store
from src.db.subscriptions import PushSubscriptionStore

router = APIRouter(prefix="/push-subscriptions", tags=["notifications"])


class SubscriptionKeys(BaseModel):
    p256dh: str
    auth: str


class BrowserSubscription(BaseModel):
    """PushSubscription.toJSON() as sent by the browser."""

    endpoint: str = Field(..., min_length=1)
    expirationTime: float | None = None
    keys: SubscriptionKeys


class SubscriptionCreate(BaseModel):
    user_id: str = Field(..., min_length=1)
    subscription: BrowserSubscription


@router.post("", status_code=201)
async def save_subscription(
    data: SubscriptionCreate,
    store: PushSubscriptionStore = Depends(get_subscription_store),
):
    """Register (or replace) a user's push endpoint."""
    try:
        await store.save(data.user_id, data.subscription.model_dump(exclude_none=True))
    except SQLAlchemyError as e:
        return JSONResponse(status_code=500, content={"error": str(e)})
    return {"message": "Subscription saved"}
