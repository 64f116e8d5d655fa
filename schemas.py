"""
Database Schemas for VideoTube

Each Pydantic model maps to a MongoDB collection. The collection name is the lowercase of the class name.
References between collections are stored as ObjectIds so aggregation pipelines can join on them.

Collections:
- User -> user
- Video -> video
- Comment -> comment
- Like -> like
- Subscription -> subscription
- Playlist -> playlist
"""

from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Document(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)


class User(Document):
    username: str = Field(..., min_length=1, description="Lowercase, unique")
    email: EmailStr
    full_name: str = Field(..., min_length=1)
    avatar: str = Field(..., description="Public URL of the avatar image")
    cover_image: Optional[str] = None
    watch_history: List[ObjectId] = Field(default_factory=list)
    password_hash: str
    refresh_token: Optional[str] = None


class Video(Document):
    video_file: str = Field(..., description="Public URL of the video file")
    thumbnail: str
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    duration: float = Field(0, ge=0, description="Seconds")
    views: int = 0
    is_published: bool = True
    owner: ObjectId


class Comment(Document):
    content: str = Field(..., min_length=1)
    video: ObjectId
    owner: ObjectId


class Like(Document):
    kind: Literal["video", "comment", "tweet"]
    target: ObjectId
    liked_by: ObjectId


class Subscription(Document):
    subscriber: ObjectId = Field(..., description="The user who subscribes")
    channel: ObjectId = Field(..., description="The user being subscribed to")


class Playlist(Document):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    owner: ObjectId
    videos: List[ObjectId] = Field(default_factory=list)
