import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.database import Database

import pipelines
from database import create_document, get_db
from helpers import api_response, ensure_owner, find_or_404, objid
from schemas import Playlist
from security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/playlists", tags=["Playlists"])


class PlaylistRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


def require_name_and_description(payload: PlaylistRequest):
    if not payload.name or not payload.name.strip() or not payload.description or not payload.description.strip():
        raise HTTPException(status_code=400, detail="Name and description both are required")
    return payload.name.strip(), payload.description.strip()


def update_videos(db: Database, playlist_id, video_id, user: dict, operator: str) -> dict:
    """Apply $addToSet or $pull of one video on a playlist owned by ``user``.

    Only additions require the video to exist, so ids of deleted videos can still be pulled.
    """
    playlist_oid = objid(playlist_id, "playlist id")
    video_oid = objid(video_id, "video id")
    if operator == "$addToSet":
        find_or_404(db["video"], video_oid, "Video not found")
    playlist = find_or_404(db["playlist"], playlist_oid, "Playlist not found")
    ensure_owner(playlist, user, "Only the owner can change the videos of this playlist")

    updated = db["playlist"].find_one_and_update(
        {"_id": playlist_oid},
        {operator: {"videos": video_oid}, "$set": {"updated_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise HTTPException(status_code=500, detail="Failed to update playlist videos please try again")
    return updated


@router.post("")
def create_playlist(payload: PlaylistRequest, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    name, description = require_name_and_description(payload)
    playlist = create_document(db, "playlist", Playlist(name=name, description=description, owner=user["_id"]))
    logger.info(f"User {user['username']} created playlist {playlist['_id']}")
    return api_response(playlist, "Playlist created successfully")


@router.get("/user/{user_id}")
def get_user_playlists(user_id: str, db: Database = Depends(get_db)):
    _id = objid(user_id, "user id")
    playlists = list(db["playlist"].aggregate(pipelines.user_playlists(_id)))
    return api_response(playlists, "User playlists fetched successfully")


@router.get("/{playlist_id}")
def get_playlist_by_id(playlist_id: str, db: Database = Depends(get_db)):
    _id = objid(playlist_id, "playlist id")
    find_or_404(db["playlist"], _id, "Playlist not found")
    result = list(db["playlist"].aggregate(pipelines.playlist_detail(_id)))
    if not result:
        raise HTTPException(status_code=404, detail="Playlist not found")
    return api_response(result[0], "Playlist fetched successfully")


@router.patch("/add/{video_id}/{playlist_id}")
def add_video_to_playlist(
    video_id: str, playlist_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)
):
    updated = update_videos(db, playlist_id, video_id, user, "$addToSet")
    return api_response(updated, "Video added to playlist successfully")


@router.patch("/remove/{video_id}/{playlist_id}")
def remove_video_from_playlist(
    video_id: str, playlist_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)
):
    updated = update_videos(db, playlist_id, video_id, user, "$pull")
    return api_response(updated, "Video removed from playlist successfully")


@router.patch("/{playlist_id}")
def update_playlist(
    playlist_id: str,
    payload: PlaylistRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    _id = objid(playlist_id, "playlist id")
    playlist = find_or_404(db["playlist"], _id, "Playlist not found")
    ensure_owner(playlist, user, "Only the owner can edit the playlist")
    name, description = require_name_and_description(payload)

    updated = db["playlist"].find_one_and_update(
        {"_id": _id},
        {"$set": {"name": name, "description": description, "updated_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise HTTPException(status_code=500, detail="Failed to update playlist")
    return api_response(updated, "Playlist updated successfully")


@router.delete("/{playlist_id}")
def delete_playlist(playlist_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    _id = objid(playlist_id, "playlist id")
    playlist = find_or_404(db["playlist"], _id, "Playlist not found")
    ensure_owner(playlist, user, "Only the owner can delete the playlist")

    if not db["playlist"].delete_one({"_id": _id}).deleted_count:
        raise HTTPException(status_code=500, detail="Failed to delete playlist")
    logger.info(f"User {user['username']} deleted playlist {playlist_id}")
    return api_response(playlist, "Playlist deleted successfully")
