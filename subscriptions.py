import logging

from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

import pipelines
from database import get_db
from helpers import api_response, find_or_404, objid, toggle_document
from schemas import Subscription
from security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/subscriptions", tags=["Subscriptions"])


@router.post("/c/{channel_id}")
def toggle_subscription(channel_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    _id = objid(channel_id, "channel id")
    if _id == user["_id"]:
        raise HTTPException(status_code=400, detail="Cannot subscribe to yourself")
    find_or_404(db["user"], _id, "Channel not found")

    key = Subscription(subscriber=user["_id"], channel=_id).model_dump()
    subscribed = toggle_document(db["subscription"], key)
    logger.info(f"User {user['username']} {'subscribed to' if subscribed else 'unsubscribed from'} {channel_id}")
    return api_response(
        {"subscribed": subscribed},
        "Subscribed successfully" if subscribed else "Unsubscribed successfully",
    )


@router.get("/c/{channel_id}")
def get_channel_subscribers(channel_id: str, db: Database = Depends(get_db)):
    _id = objid(channel_id, "channel id")
    subscribers = list(db["subscription"].aggregate(pipelines.channel_subscribers(_id)))
    return api_response(subscribers, "Subscribers fetched successfully")


@router.get("/u/{subscriber_id}")
def get_subscribed_channels(subscriber_id: str, db: Database = Depends(get_db)):
    _id = objid(subscriber_id, "subscriber id")
    channels = list(db["subscription"].aggregate(pipelines.subscribed_channels(_id)))
    return api_response(channels, "Subscribed channels fetched successfully")
