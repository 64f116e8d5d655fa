from datetime import datetime
from math import ceil
from typing import Optional

from bson import ObjectId
from fastapi import HTTPException
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError


def to_str_id(doc):
    """Make a Mongo document JSON friendly: _id -> id, ObjectId -> str, datetime -> isoformat."""
    if isinstance(doc, list):
        return [to_str_id(d) for d in doc]
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, datetime):
        return doc.isoformat()
    if not isinstance(doc, dict):
        return doc
    d = {}
    for k, v in doc.items():
        if k == "_id":
            k = "id"
        d[k] = to_str_id(v)
    return d


def objid(id_str: str, label: str = "id") -> ObjectId:
    if not ObjectId.is_valid(id_str):
        raise HTTPException(status_code=400, detail=f"Invalid {label}")
    return ObjectId(id_str)


def api_response(data, message: str, status_code: int = 200) -> dict:
    return {
        "statusCode": status_code,
        "data": to_str_id(data),
        "message": message,
        "success": status_code < 400,
    }


def public_user(user: dict) -> dict:
    u = {**user}
    u.pop("password_hash", None)
    u.pop("refresh_token", None)
    return u


# -------------------- Lookups & ownership --------------------

def find_or_404(collection: Collection, _id: ObjectId, detail: str) -> dict:
    doc = collection.find_one({"_id": _id})
    if not doc:
        raise HTTPException(status_code=404, detail=detail)
    return doc


def is_owner(doc: dict, user: Optional[dict]) -> bool:
    if not user or doc.get("owner") is None:
        return False
    return doc["owner"] == user["_id"]


def ensure_owner(doc: dict, user: dict, detail: str):
    if not is_owner(doc, user):
        raise HTTPException(status_code=403, detail=detail)


# -------------------- Toggles --------------------

def toggle_document(collection: Collection, key: dict) -> bool:
    """Delete the document matching ``key`` if present, otherwise create it.

    Returns the new state: True when the document now exists.
    """
    if collection.find_one_and_delete(key):
        return False
    now = datetime.utcnow()
    try:
        collection.insert_one({**key, "created_at": now, "updated_at": now})
    except DuplicateKeyError:
        # a concurrent request created it first; the record exists either way
        pass
    return True


# -------------------- Pagination --------------------

def page_result(facet: Optional[dict], page: int, limit: int) -> dict:
    """Shape the output of a ``paginate`` facet stage into a page object."""
    facet = facet or {}
    docs = facet.get("docs", [])
    metadata = facet.get("metadata") or [{}]
    total = metadata[0].get("total_docs", 0)
    total_pages = ceil(total / limit) if limit else 0
    has_prev = page > 1
    has_next = page < total_pages
    return {
        "docs": docs,
        "total_docs": total,
        "limit": limit,
        "page": page,
        "total_pages": total_pages,
        "has_prev_page": has_prev,
        "has_next_page": has_next,
        "prev_page": page - 1 if has_prev else None,
        "next_page": page + 1 if has_next else None,
    }
