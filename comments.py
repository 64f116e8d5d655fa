import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.database import Database

import pipelines
from database import create_document, get_db
from helpers import api_response, ensure_owner, find_or_404, objid, page_result
from schemas import Comment
from security import get_current_user, get_optional_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/comments", tags=["Comments"])


# Content is checked in the handlers so existence and ownership errors take precedence.
class CommentRequest(BaseModel):
    content: Optional[str] = None


def require_content(payload: CommentRequest) -> str:
    if not payload.content or not payload.content.strip():
        raise HTTPException(status_code=400, detail="Content is required")
    return payload.content.strip()


@router.get("/{video_id}")
def get_video_comments(
    video_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    viewer: Optional[dict] = Depends(get_optional_user),
    db: Database = Depends(get_db),
):
    _id = objid(video_id, "video id")
    find_or_404(db["video"], _id, "Video not found")

    viewer_id = viewer["_id"] if viewer else None
    result = list(db["comment"].aggregate(pipelines.video_comments(_id, viewer_id, page, limit)))
    return api_response(page_result(result[0] if result else None, page, limit), "Comments fetched successfully")


@router.post("/{video_id}")
def add_comment(
    video_id: str,
    payload: CommentRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    _id = objid(video_id, "video id")
    find_or_404(db["video"], _id, "Video not found")
    content = require_content(payload)

    comment = create_document(db, "comment", Comment(content=content, video=_id, owner=user["_id"]))
    return api_response(comment, "Comment added successfully")


@router.patch("/c/{comment_id}")
def update_comment(
    comment_id: str,
    payload: CommentRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    _id = objid(comment_id, "comment id")
    comment = find_or_404(db["comment"], _id, "Comment not found")
    ensure_owner(comment, user, "You are not the owner of this comment")
    content = require_content(payload)

    updated = db["comment"].find_one_and_update(
        {"_id": _id},
        {"$set": {"content": content, "updated_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise HTTPException(status_code=500, detail="Failed to update comment please try again")
    return api_response(updated, "Comment updated successfully")


@router.delete("/c/{comment_id}")
def delete_comment(comment_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    _id = objid(comment_id, "comment id")
    comment = find_or_404(db["comment"], _id, "Comment not found")
    ensure_owner(comment, user, "Only comment owner can delete their comment")

    db["comment"].delete_one({"_id": _id})
    # Only the requester's likes go with the comment; likes by others are left in place.
    db["like"].delete_many({"kind": "comment", "target": _id, "liked_by": user["_id"]})

    logger.info(f"User {user['username']} deleted comment {comment_id}")
    return api_response({"comment_id": comment_id}, "Comment deleted successfully")
