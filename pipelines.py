"""
Aggregation pipelines for the denormalized read endpoints.

Every builder returns a plain list of stages, so the handlers stay a single
``aggregate`` call and the stage composition can be checked without a server.
Nested lookups use the ``let``/``pipeline`` form (MongoDB 3.6+). Embedded documents
are projected through dotted paths.
"""

from typing import Optional

from bson import ObjectId

# Public profile of a user when embedded in another document.
OWNER_FIELDS = {"_id": 1, "username": 1, "full_name": 1, "avatar": 1}

VIDEO_FIELDS = {
    "_id": 1,
    "video_file": 1,
    "thumbnail": 1,
    "title": 1,
    "description": 1,
    "duration": 1,
    "views": 1,
    "is_published": 1,
    "created_at": 1,
}


def first(field: str) -> dict:
    """Collapse a one-element lookup array into the element itself (null when empty)."""
    return {"$ifNull": [{"$arrayElemAt": [field, 0]}, None]}


def embedded(prefix: str, fields: dict) -> dict:
    """Dotted inclusion paths for the fields of an embedded document or array of documents."""
    return {f"{prefix}.{name}": 1 for name in fields}


def paginate(page: int, limit: int, stages: Optional[list] = None) -> dict:
    """A $facet stage yielding the total count and one page of docs.

    ``stages`` run only on the documents of the page, so joins happen after skip/limit.
    """
    return {
        "$facet": {
            "metadata": [{"$count": "total_docs"}],
            "docs": [{"$skip": (page - 1) * limit}, {"$limit": limit}] + (stages or []),
        }
    }


def lookup_owner(local_field: str = "owner", as_field: str = "owner") -> list:
    return [
        {"$lookup": {"from": "user", "localField": local_field, "foreignField": "_id", "as": as_field}},
        {"$addFields": {as_field: first("$" + as_field)}},
    ]


def lookup_likes(kind: str, as_field: str = "likes") -> dict:
    return {
        "$lookup": {
            "from": "like",
            "let": {"target_id": "$_id"},
            "pipeline": [
                {"$match": {"kind": kind, "$expr": {"$eq": ["$target", "$$target_id"]}}},
                {"$project": {"liked_by": 1}},
            ],
            "as": as_field,
        }
    }


def like_fields(viewer_id: Optional[ObjectId]) -> dict:
    return {
        "likes_count": {"$size": "$likes"},
        "is_liked": {"$in": [viewer_id, "$likes.liked_by"]},
    }


# -------------------- Comments --------------------

def video_comments(video_id: ObjectId, viewer_id: Optional[ObjectId], page: int, limit: int) -> list:
    return [
        {"$match": {"video": video_id}},
        {"$sort": {"created_at": -1}},
        paginate(page, limit, [
            *lookup_owner(),
            lookup_likes("comment"),
            {"$addFields": like_fields(viewer_id)},
            {"$project": {
                "content": 1,
                "created_at": 1,
                "updated_at": 1,
                "likes_count": 1,
                "is_liked": 1,
                **embedded("owner", OWNER_FIELDS),
            }},
        ]),
    ]


# -------------------- Likes --------------------

def liked_videos(user_id: ObjectId) -> list:
    return [
        {"$match": {"liked_by": user_id, "kind": "video"}},
        {"$lookup": {
            "from": "video",
            "let": {"video_id": "$target"},
            "pipeline": [
                {"$match": {"$expr": {"$eq": ["$_id", "$$video_id"]}}},
                {"$lookup": {"from": "user", "localField": "owner", "foreignField": "_id", "as": "owner_details"}},
                {"$unwind": "$owner_details"},
                {"$project": {**VIDEO_FIELDS, "owner": 1, **embedded("owner_details", OWNER_FIELDS)}},
            ],
            "as": "liked_video",
        }},
        {"$unwind": "$liked_video"},
        {"$sort": {"created_at": -1}},
        {"$project": {"_id": 1, "created_at": 1, "liked_video": 1}},
    ]


# -------------------- Subscriptions --------------------

def channel_subscribers(channel_id: ObjectId) -> list:
    """Subscribers of a channel, each flagged with whether the channel subscribes back."""
    return [
        {"$match": {"channel": channel_id}},
        {"$lookup": {
            "from": "user",
            "let": {"subscriber_id": "$subscriber"},
            "pipeline": [
                {"$match": {"$expr": {"$eq": ["$_id", "$$subscriber_id"]}}},
                {"$lookup": {"from": "subscription", "localField": "_id", "foreignField": "channel", "as": "subscribers"}},
                {"$addFields": {
                    "subscribed_to_subscriber": {"$in": [channel_id, "$subscribers.subscriber"]},
                    "subscriber_count": {"$size": "$subscribers"},
                }},
                {"$project": {**OWNER_FIELDS, "subscribed_to_subscriber": 1, "subscriber_count": 1}},
            ],
            "as": "subscriber",
        }},
        {"$unwind": "$subscriber"},
        {"$sort": {"created_at": -1}},
        {"$project": {"_id": 0, "subscribed_at": "$created_at", "subscriber": 1}},
    ]


def subscribed_channels(subscriber_id: ObjectId) -> list:
    """Channels a user follows, each with its most recently uploaded video."""
    return [
        {"$match": {"subscriber": subscriber_id}},
        {"$lookup": {
            "from": "user",
            "let": {"channel_id": "$channel"},
            "pipeline": [
                {"$match": {"$expr": {"$eq": ["$_id", "$$channel_id"]}}},
                {"$lookup": {
                    "from": "video",
                    "let": {"owner_id": "$_id"},
                    "pipeline": [
                        {"$match": {"is_published": True, "$expr": {"$eq": ["$owner", "$$owner_id"]}}},
                        {"$sort": {"created_at": -1}},
                        {"$limit": 1},
                        {"$project": {**VIDEO_FIELDS, "owner": 1}},
                    ],
                    "as": "latest_video",
                }},
                {"$addFields": {"latest_video": first("$latest_video")}},
                {"$project": {**OWNER_FIELDS, "latest_video": 1}},
            ],
            "as": "subscribed_channel",
        }},
        {"$unwind": "$subscribed_channel"},
        {"$sort": {"created_at": -1}},
        {"$project": {"_id": 0, "subscribed_at": "$created_at", "subscribed_channel": 1}},
    ]


# -------------------- Playlists --------------------

def playlist_detail(playlist_id: ObjectId) -> list:
    """One playlist with its published videos, totals over those videos and the owner profile."""
    return [
        {"$match": {"_id": playlist_id}},
        {"$lookup": {"from": "video", "localField": "videos", "foreignField": "_id", "as": "videos"}},
        {"$addFields": {"videos": {"$filter": {
            "input": "$videos",
            "as": "video",
            "cond": {"$eq": ["$$video.is_published", True]},
        }}}},
        *lookup_owner(),
        {"$addFields": {
            "total_videos": {"$size": "$videos"},
            "total_views": {"$sum": "$videos.views"},
        }},
        {"$project": {
            "name": 1,
            "description": 1,
            "created_at": 1,
            "updated_at": 1,
            "total_videos": 1,
            "total_views": 1,
            **embedded("videos", VIDEO_FIELDS),
            **embedded("owner", OWNER_FIELDS),
        }},
    ]


def user_playlists(user_id: ObjectId) -> list:
    return [
        {"$match": {"owner": user_id}},
        {"$lookup": {"from": "video", "localField": "videos", "foreignField": "_id", "as": "videos"}},
        {"$addFields": {
            "total_videos": {"$size": "$videos"},
            "total_views": {"$sum": "$videos.views"},
        }},
        {"$sort": {"updated_at": -1}},
        {"$project": {
            "_id": 1,
            "name": 1,
            "description": 1,
            "total_videos": 1,
            "total_views": 1,
            "created_at": 1,
            "updated_at": 1,
        }},
    ]


# -------------------- Videos --------------------

def video_listing(match: dict, sort_by: str, sort_dir: int, page: int, limit: int) -> list:
    return [
        {"$match": match},
        {"$sort": {sort_by: sort_dir, "_id": sort_dir}},
        paginate(page, limit, [
            *lookup_owner(),
            {"$project": {**VIDEO_FIELDS, **embedded("owner", OWNER_FIELDS)}},
        ]),
    ]


def video_detail(video_id: ObjectId, viewer_id: Optional[ObjectId]) -> list:
    return [
        {"$match": {"_id": video_id}},
        lookup_likes("video"),
        *lookup_owner(),
        {"$addFields": like_fields(viewer_id)},
        {"$project": {**VIDEO_FIELDS, "likes_count": 1, "is_liked": 1, **embedded("owner", OWNER_FIELDS)}},
    ]


def watch_history(user_id: ObjectId) -> list:
    """A user's watched videos with owners, most recently watched first."""
    return [
        {"$match": {"_id": user_id}},
        {"$unwind": {"path": "$watch_history", "includeArrayIndex": "position"}},
        {"$lookup": {
            "from": "video",
            "let": {"video_id": "$watch_history"},
            "pipeline": [
                {"$match": {"$expr": {"$eq": ["$_id", "$$video_id"]}}},
                *lookup_owner(),
                {"$project": {**VIDEO_FIELDS, **embedded("owner", OWNER_FIELDS)}},
            ],
            "as": "video",
        }},
        {"$unwind": "$video"},
        {"$sort": {"position": -1}},
        {"$replaceRoot": {"newRoot": "$video"}},
    ]
