import logging
import re
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pymongo import ReturnDocument
from pymongo.database import Database

import pipelines
from database import create_document, get_db
from helpers import api_response, ensure_owner, find_or_404, is_owner, objid, page_result
from schemas import Video
from security import get_current_user, get_optional_user
from storage import delete_file, upload_file

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/videos", tags=["Videos"])

SORTABLE_FIELDS = {"created_at", "views", "duration", "title"}


# -------------------- Feed --------------------
@router.get("")
def list_videos(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    query: Optional[str] = None,
    sort_by: str = "created_at",
    sort_type: str = "desc",
    user_id: Optional[str] = None,
    viewer: Optional[dict] = Depends(get_optional_user),
    db: Database = Depends(get_db),
):
    if sort_by not in SORTABLE_FIELDS:
        raise HTTPException(status_code=400, detail=f"Cannot sort by {sort_by}")
    if sort_type not in ("asc", "desc"):
        raise HTTPException(status_code=400, detail="sort_type must be asc or desc")

    match = {"is_published": True}
    if user_id:
        owner_id = objid(user_id, "user id")
        match["owner"] = owner_id
        # owners also see their unpublished uploads
        if viewer and viewer["_id"] == owner_id:
            match.pop("is_published")
    if query:
        pattern = {"$regex": re.escape(query), "$options": "i"}
        match["$or"] = [{"title": pattern}, {"description": pattern}]

    sort_dir = 1 if sort_type == "asc" else -1
    result = list(db["video"].aggregate(pipelines.video_listing(match, sort_by, sort_dir, page, limit)))
    return api_response(page_result(result[0] if result else None, page, limit), "Videos fetched successfully")


# -------------------- Upload --------------------
@router.post("", status_code=201)
async def publish_video(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    duration: float = Form(0.0),
    video_file: Optional[UploadFile] = File(None),
    thumbnail: Optional[UploadFile] = File(None),
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if not title or not title.strip() or not description or not description.strip():
        raise HTTPException(status_code=400, detail="Title and description are required")
    if video_file is None or not video_file.filename:
        raise HTTPException(status_code=400, detail="Video file is required")
    if thumbnail is None or not thumbnail.filename:
        raise HTTPException(status_code=400, detail="Thumbnail is required")

    video_url = await upload_file(video_file, "videos", ".mp4")
    thumb_url = await upload_file(thumbnail, "thumbnails", ".jpg")

    video = Video(
        video_file=video_url,
        thumbnail=thumb_url,
        title=title.strip(),
        description=description.strip(),
        duration=duration,
        owner=user["_id"],
    )
    doc = create_document(db, "video", video)
    logger.info(f"User {user['username']} published video {doc['_id']}")
    return api_response(doc, "Video uploaded successfully", 201)


# -------------------- Single video --------------------
@router.get("/{video_id}")
def get_video_by_id(
    video_id: str,
    viewer: Optional[dict] = Depends(get_optional_user),
    db: Database = Depends(get_db),
):
    _id = objid(video_id, "video id")
    video = find_or_404(db["video"], _id, "Video not found")
    if not video.get("is_published", True) and not is_owner(video, viewer):
        raise HTTPException(status_code=404, detail="Video not found")

    db["video"].update_one({"_id": _id}, {"$inc": {"views": 1}})
    viewer_id = viewer["_id"] if viewer else None
    if viewer_id:
        # most recent view goes last
        db["user"].update_one({"_id": viewer_id}, {"$pull": {"watch_history": _id}})
        db["user"].update_one({"_id": viewer_id}, {"$push": {"watch_history": _id}})

    result = list(db["video"].aggregate(pipelines.video_detail(_id, viewer_id)))
    if not result:
        raise HTTPException(status_code=404, detail="Video not found")
    return api_response(result[0], "Video fetched successfully")


@router.patch("/{video_id}")
async def update_video(
    video_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    _id = objid(video_id, "video id")
    video = find_or_404(db["video"], _id, "Video not found")
    ensure_owner(video, user, "Only the owner can edit this video")

    updates = {}
    if title and title.strip():
        updates["title"] = title.strip()
    if description and description.strip():
        updates["description"] = description.strip()
    if thumbnail is not None and thumbnail.filename:
        updates["thumbnail"] = await upload_file(thumbnail, "thumbnails", ".jpg")
    if not updates:
        raise HTTPException(status_code=400, detail="Provide a title, description or thumbnail to update")
    updates["updated_at"] = datetime.utcnow()

    updated = db["video"].find_one_and_update(
        {"_id": _id}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise HTTPException(status_code=500, detail="Failed to update video please try again")
    if "thumbnail" in updates:
        delete_file(video.get("thumbnail"))
    return api_response(updated, "Video updated successfully")


@router.delete("/{video_id}")
def delete_video(video_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    _id = objid(video_id, "video id")
    video = find_or_404(db["video"], _id, "Video not found")
    ensure_owner(video, user, "Only the owner can delete this video")

    if not db["video"].delete_one({"_id": _id}).deleted_count:
        raise HTTPException(status_code=500, detail="Failed to delete video please try again")
    db["like"].delete_many({"kind": "video", "target": _id})
    db["playlist"].update_many({"videos": _id}, {"$pull": {"videos": _id}})
    delete_file(video.get("video_file"))
    delete_file(video.get("thumbnail"))

    logger.info(f"User {user['username']} deleted video {video_id}")
    return api_response({"video_id": video_id}, "Video deleted successfully")


@router.patch("/toggle/publish/{video_id}")
def toggle_publish_status(video_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    _id = objid(video_id, "video id")
    video = find_or_404(db["video"], _id, "Video not found")
    ensure_owner(video, user, "Only the owner can publish or unpublish this video")

    updated = db["video"].find_one_and_update(
        {"_id": _id},
        {"$set": {"is_published": not video.get("is_published", True), "updated_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise HTTPException(status_code=500, detail="Failed to toggle publish status")
    return api_response({"is_published": updated["is_published"]}, "Publish status toggled successfully")
