import logging

from bson import ObjectId
from fastapi import APIRouter, Depends
from pymongo.database import Database

import pipelines
from database import get_db
from helpers import api_response, find_or_404, objid, toggle_document
from schemas import Like
from security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/likes", tags=["Likes"])


def toggle_like(db: Database, kind: str, target: ObjectId, user: dict) -> bool:
    key = Like(kind=kind, target=target, liked_by=user["_id"]).model_dump()
    liked = toggle_document(db["like"], key)
    logger.info(f"User {user['username']} {'liked' if liked else 'unliked'} {kind} {target}")
    return liked


@router.post("/toggle/v/{video_id}")
def toggle_video_like(video_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    _id = objid(video_id, "video id")
    find_or_404(db["video"], _id, "Video not found")
    liked = toggle_like(db, "video", _id, user)
    return api_response({"is_liked": liked}, "Video liked successfully" if liked else "Video unliked successfully")


@router.post("/toggle/c/{comment_id}")
def toggle_comment_like(comment_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    _id = objid(comment_id, "comment id")
    find_or_404(db["comment"], _id, "Comment not found")
    liked = toggle_like(db, "comment", _id, user)
    return api_response({"is_liked": liked}, "Comment liked successfully" if liked else "Comment unliked successfully")


@router.post("/toggle/t/{tweet_id}")
def toggle_tweet_like(tweet_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    # tweets are stored by another service, so only the id format can be checked here
    _id = objid(tweet_id, "tweet id")
    liked = toggle_like(db, "tweet", _id, user)
    return api_response({"is_liked": liked}, "Tweet liked successfully" if liked else "Tweet unliked successfully")


@router.get("/videos")
def get_liked_videos(user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    liked = list(db["like"].aggregate(pipelines.liked_videos(user["_id"])))
    return api_response(liked, "Liked videos fetched successfully")
