"""Threaded discussion engine.

Comments hang off a subject key derived from (original text, target language).
Threads are at most MAX_DEPTH levels deep: replying to a node that already
sits at depth MAX_DEPTH - 1 or deeper attaches the reply to that node's
parent instead, so a reply-to-a-reply-of-a-reply collapses to a sibling of
its target rather than nesting further.
"""
import hashlib
import sqlite3
import time
from typing import Dict, List, Optional, Tuple

from errors import EmptyContentError, InvalidInputError, NodeNotFoundError, ParentNotFoundError
from log import get_logger
from models import SORT_ORDERS, DiscussionNode
from storage import batched, placeholders, transaction

logger = get_logger("nungdict.discussion")

MAX_DEPTH = 4
FLATTEN_FROM_DEPTH = MAX_DEPTH - 1
MAX_CONTENT_LEN = 2000
MAX_PAGE_SIZE = 100

_ORDER_BY = {
    "newest": "created_at DESC, id DESC",
    "oldest": "created_at ASC, id ASC",
    "most_liked": "like_count DESC, created_at DESC, id DESC",
}


def subject_key(original_text: str, target_lang: str) -> str:
    raw = f"{original_text.strip().lower()}|{target_lang.strip().lower()}"
    return "tr_" + hashlib.sha256(raw.encode()).hexdigest()[:16]


def _clean_content(content: Optional[str]) -> str:
    text = (content or "").strip()
    if not text:
        raise EmptyContentError("Comment cannot be empty")
    if len(text) > MAX_CONTENT_LEN:
        raise InvalidInputError(f"Comment too long (max {MAX_CONTENT_LEN} characters)")
    return text


def _row_to_node(row: sqlite3.Row, depth: Optional[int] = None) -> DiscussionNode:
    return DiscussionNode(
        id=row["id"],
        subject_key=row["subject_key"],
        author_id=row["author_id"],
        content=row["content"],
        like_count=row["like_count"],
        parent_id=row["parent_id"],
        depth=depth if depth is not None else row["depth"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _fetch_node(conn: sqlite3.Connection, node_id: int) -> Optional[sqlite3.Row]:
    return conn.execute("SELECT * FROM discussion_nodes WHERE id = ?", (node_id,)).fetchone()


def get_node(node_id: int) -> DiscussionNode:
    with transaction() as conn:
        row = _fetch_node(conn, node_id)
    if row is None:
        raise NodeNotFoundError(f"Comment {node_id} not found")
    return _row_to_node(row)


def create_node(subject: str, author_id: Optional[str], content: str,
                parent_id: Optional[int] = None) -> DiscussionNode:
    text = _clean_content(content)
    if not subject or not subject.strip():
        raise InvalidInputError("Subject key is required")

    now = time.time()
    with transaction(immediate=True) as conn:
        depth = 1
        effective_parent = None
        if parent_id is not None:
            target = _fetch_node(conn, parent_id)
            if target is None:
                raise ParentNotFoundError(f"Parent comment {parent_id} not found")
            if target["subject_key"] != subject:
                raise InvalidInputError("Parent comment belongs to a different subject")
            if target["depth"] >= FLATTEN_FROM_DEPTH and target["parent_id"] is not None:
                effective_parent = target["parent_id"]
                depth = target["depth"]
            else:
                effective_parent = target["id"]
                depth = target["depth"] + 1

        cursor = conn.execute(
            "INSERT INTO discussion_nodes (subject_key, author_id, content, like_count, parent_id, depth, created_at, updated_at) "
            "VALUES (?, ?, ?, 0, ?, ?, ?, ?)",
            (subject, author_id, text, effective_parent, depth, now, now),
        )
        row = _fetch_node(conn, cursor.lastrowid)

    logger.info("Comment created", extra={"component": "discussion", "node_id": row["id"], "subject_key": subject})
    return _row_to_node(row)


def list_thread(subject: str, page: int = 1, page_size: int = 10, sort: str = "newest",
                viewer_id: Optional[str] = None) -> Tuple[List[DiscussionNode], int]:
    """Return one page of top-level comments with their full reply trees.

    Replies are fetched one level at a time with a batched IN query, always
    oldest first. `total` counts top-level comments only.
    """
    if sort not in SORT_ORDERS:
        raise InvalidInputError(f"Unknown sort order: {sort!r}")
    if page < 1 or page_size < 1 or page_size > MAX_PAGE_SIZE:
        raise InvalidInputError("Invalid pagination parameters")

    with transaction() as conn:
        total = conn.execute(
            "SELECT COUNT(*) FROM discussion_nodes WHERE subject_key = ? AND parent_id IS NULL",
            (subject,),
        ).fetchone()[0]
        rows = conn.execute(
            f"SELECT * FROM discussion_nodes WHERE subject_key = ? AND parent_id IS NULL "
            f"ORDER BY {_ORDER_BY[sort]} LIMIT ? OFFSET ?",
            (subject, page_size, (page - 1) * page_size),
        ).fetchall()

        top = [_row_to_node(row, depth=1) for row in rows]
        by_id: Dict[int, DiscussionNode] = {node.id: node for node in top}
        level_ids = list(by_id)
        depth = 1
        while level_ids and depth < MAX_DEPTH:
            next_ids = []
            for chunk in batched(level_ids):
                replies = conn.execute(
                    f"SELECT * FROM discussion_nodes WHERE parent_id IN ({placeholders(len(chunk))}) "
                    "ORDER BY created_at ASC, id ASC",
                    chunk,
                ).fetchall()
                for row in replies:
                    node = _row_to_node(row, depth=depth + 1)
                    by_id[row["parent_id"]].replies.append(node)
                    by_id[node.id] = node
                    next_ids.append(node.id)
            level_ids = next_ids
            depth += 1

        if viewer_id is not None:
            liked = set()
            for chunk in batched(list(by_id)):
                liked.update(row["node_id"] for row in conn.execute(
                    f"SELECT node_id FROM discussion_likes WHERE user_id = ? AND node_id IN ({placeholders(len(chunk))})",
                    [viewer_id, *chunk],
                ))
            for node in by_id.values():
                node.liked_by_viewer = node.id in liked

    return top, total


def toggle_like(node_id: int, user_id: str) -> Tuple[bool, int]:
    """Flip the (node, user) like and return (liked, new_count).

    The like row decides the direction; the counter moves in the same
    transaction with an in-SQL increment so concurrent toggles cannot lose
    updates.
    """
    if not user_id:
        raise InvalidInputError("User id is required to like a comment")
    with transaction(immediate=True) as conn:
        if _fetch_node(conn, node_id) is None:
            raise NodeNotFoundError(f"Comment {node_id} not found")
        cursor = conn.execute(
            "INSERT INTO discussion_likes (node_id, user_id, created_at) VALUES (?, ?, ?) "
            "ON CONFLICT(node_id, user_id) DO NOTHING",
            (node_id, user_id, time.time()),
        )
        liked = cursor.rowcount == 1
        if liked:
            conn.execute("UPDATE discussion_nodes SET like_count = like_count + 1 WHERE id = ?", (node_id,))
        else:
            conn.execute("DELETE FROM discussion_likes WHERE node_id = ? AND user_id = ?", (node_id, user_id))
            conn.execute("UPDATE discussion_nodes SET like_count = MAX(like_count - 1, 0) WHERE id = ?", (node_id,))
        count = conn.execute("SELECT like_count FROM discussion_nodes WHERE id = ?", (node_id,)).fetchone()[0]
    return liked, count


def update_node(node_id: int, content: str) -> DiscussionNode:
    text = _clean_content(content)
    with transaction() as conn:
        cursor = conn.execute(
            "UPDATE discussion_nodes SET content = ?, updated_at = ? WHERE id = ?",
            (text, time.time(), node_id),
        )
        if cursor.rowcount == 0:
            raise NodeNotFoundError(f"Comment {node_id} not found")
        row = _fetch_node(conn, node_id)
    return _row_to_node(row)


def delete_subtree(conn: sqlite3.Connection, node_id: int) -> List[int]:
    """Hard-delete a node, every descendant and their likes. Returns deleted ids."""
    ids = [row[0] for row in conn.execute(
        """
        WITH RECURSIVE subtree(id) AS (
            SELECT id FROM discussion_nodes WHERE id = ?
            UNION ALL
            SELECT n.id FROM discussion_nodes n JOIN subtree s ON n.parent_id = s.id
        )
        SELECT id FROM subtree
        """,
        (node_id,),
    )]
    for chunk in batched(ids):
        marks = placeholders(len(chunk))
        conn.execute(f"DELETE FROM discussion_likes WHERE node_id IN ({marks})", chunk)
        conn.execute(f"DELETE FROM discussion_nodes WHERE id IN ({marks})", chunk)
    return ids


def delete_node(node_id: int) -> int:
    with transaction(immediate=True) as conn:
        if _fetch_node(conn, node_id) is None:
            raise NodeNotFoundError(f"Comment {node_id} not found")
        deleted = delete_subtree(conn, node_id)
    logger.info("Comment deleted", extra={"component": "discussion", "node_id": node_id, "count": len(deleted)})
    return len(deleted)
