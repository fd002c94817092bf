"""Discussion thread API routes: comments, replies, likes, reports."""
from typing import NoReturn, Optional

from log import get_logger

logger = get_logger("nungdict.discussion_routes")

from fastapi import APIRouter, Depends, HTTPException

from models import SORT_ORDERS, CreateDiscussionRequest, UpdateDiscussionRequest, ReportRequest
from auth import optional_user, require_user
from discussion import (
    subject_key, create_node, list_thread, toggle_like, get_node, update_node, delete_node,
)
from errors import InvalidInputError, NungDictError, StorageError
from moderation import report_node

router = APIRouter()


def raise_http(e: NungDictError) -> NoReturn:
    """Translate a domain error into the matching HTTP error."""
    if isinstance(e, InvalidInputError):
        raise HTTPException(400, str(e)) from e
    if isinstance(e, LookupError):
        raise HTTPException(404, str(e)) from e
    if isinstance(e, StorageError):
        logger.error("Storage error", extra={"component": "storage", "detail": str(e)})
        raise HTTPException(503, "Storage unavailable") from e
    raise e


def _require_author(node_id: int, user_id: str):
    try:
        node = get_node(node_id)
    except NungDictError as e:
        raise_http(e)
    if node.author_id != user_id:
        raise HTTPException(403, "Only the author can change this comment")


@router.get("/api/discussions", tags=["Discussion"], summary="List a page of comments with their replies")
async def get_discussions(
    original_text: Optional[str] = None,
    target_language: Optional[str] = None,
    key: Optional[str] = None,
    page: int = 1,
    page_size: int = 10,
    sort: str = "newest",
    viewer_id: Optional[str] = Depends(optional_user),
):
    if key is None:
        if not original_text or not target_language:
            raise HTTPException(400, "Provide key or original_text and target_language")
        key = subject_key(original_text, target_language)
    if sort not in SORT_ORDERS:
        raise HTTPException(400, f"sort must be one of {', '.join(SORT_ORDERS)}")
    try:
        nodes, total = list_thread(key, page=page, page_size=page_size, sort=sort, viewer_id=viewer_id)
    except NungDictError as e:
        raise_http(e)
    return {
        "key": key,
        "discussions": [node.model_dump() for node in nodes],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@router.post("/api/discussions", tags=["Discussion"], summary="Post a comment or reply")
async def post_discussion(req: CreateDiscussionRequest, user_id: str = Depends(require_user)):
    key = subject_key(req.original_text, req.target_language)
    try:
        node = create_node(key, user_id, req.content, parent_id=req.parent_id)
    except NungDictError as e:
        raise_http(e)
    return node.model_dump()


@router.patch("/api/discussions/{node_id}", tags=["Discussion"], summary="Edit your comment")
async def edit_discussion(node_id: int, req: UpdateDiscussionRequest, user_id: str = Depends(require_user)):
    _require_author(node_id, user_id)
    try:
        node = update_node(node_id, req.content)
    except NungDictError as e:
        raise_http(e)
    return node.model_dump()


@router.delete("/api/discussions/{node_id}", tags=["Discussion"], summary="Delete your comment and its replies")
async def remove_discussion(node_id: int, user_id: str = Depends(require_user)):
    _require_author(node_id, user_id)
    try:
        deleted = delete_node(node_id)
    except NungDictError as e:
        raise_http(e)
    return {"ok": True, "deleted": deleted}


@router.post("/api/discussions/{node_id}/like", tags=["Discussion"], summary="Toggle your like on a comment")
async def like_discussion(node_id: int, user_id: str = Depends(require_user)):
    try:
        liked, count = toggle_like(node_id, user_id)
    except NungDictError as e:
        raise_http(e)
    return {"liked": liked, "like_count": count}


@router.post("/api/discussions/{node_id}/report", tags=["Discussion"], summary="Report a comment to moderators")
async def report_discussion(node_id: int, req: ReportRequest, user_id: str = Depends(require_user)):
    try:
        report_node(node_id, user_id, req.reason)
    except NungDictError as e:
        raise_http(e)
    return {"ok": True}
