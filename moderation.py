"""Comment reports and moderator review."""
import sqlite3
import time
from typing import List, Optional

from discussion import delete_subtree
from errors import InvalidInputError, NodeNotFoundError, ReportNotFoundError
from log import get_logger
from models import REPORT_OUTCOMES, REPORT_STATUSES, Report
from storage import batched, placeholders, transaction

logger = get_logger("nungdict.moderation")

_REPORT_SELECT = """
    SELECT r.*, n.content AS node_content, n.author_id AS node_author_id, n.id IS NULL AS node_deleted
    FROM discussion_reports r
    LEFT JOIN discussion_nodes n ON n.id = r.node_id
"""


def _row_to_report(row: sqlite3.Row) -> Report:
    return Report(
        id=row["id"],
        node_id=row["node_id"],
        reporter_id=row["reporter_id"],
        reason=row["reason"],
        status=row["status"],
        reviewed_by=row["reviewed_by"],
        reviewed_at=row["reviewed_at"],
        action_taken=row["action_taken"],
        created_at=row["created_at"],
        node_content=row["node_content"],
        node_author_id=row["node_author_id"],
        node_deleted=bool(row["node_deleted"]),
    )


def report_node(node_id: int, reporter_id: str, reason: Optional[str] = None) -> bool:
    """Flag a comment. Reporting the same comment twice is a no-op success."""
    if not reporter_id:
        raise InvalidInputError("Reporter id is required")
    reason = (reason or "").strip() or None
    with transaction(immediate=True) as conn:
        if conn.execute("SELECT 1 FROM discussion_nodes WHERE id = ?", (node_id,)).fetchone() is None:
            raise NodeNotFoundError(f"Comment {node_id} not found")
        cursor = conn.execute(
            "INSERT INTO discussion_reports (node_id, reporter_id, reason, created_at) VALUES (?, ?, ?, ?) "
            "ON CONFLICT(node_id, reporter_id) DO NOTHING",
            (node_id, reporter_id, reason, time.time()),
        )
    if cursor.rowcount == 1:
        logger.info("Comment reported", extra={"component": "moderation", "node_id": node_id})
    return True


def list_reports(status: Optional[str] = None, node_id: Optional[int] = None) -> List[Report]:
    if status is not None and status not in REPORT_STATUSES:
        raise InvalidInputError(f"Unknown report status: {status!r}")
    clauses, params = [], []
    if status is not None:
        clauses.append("r.status = ?")
        params.append(status)
    if node_id is not None:
        clauses.append("r.node_id = ?")
        params.append(node_id)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    with transaction() as conn:
        rows = conn.execute(f"{_REPORT_SELECT} {where} ORDER BY r.created_at DESC, r.id DESC", params).fetchall()
    return [_row_to_report(row) for row in rows]


def moderate(report_id: int, reviewer_id: str, outcome: str, action_note: Optional[str] = None,
             delete_node: bool = False) -> Report:
    """Close a report as resolved or dismissed.

    With `delete_node`, the reported comment and its whole reply subtree are
    removed in the same transaction, and other pending reports against the
    removed comments are resolved along with it.
    """
    if outcome not in REPORT_OUTCOMES:
        raise InvalidInputError(f"Outcome must be one of {', '.join(REPORT_OUTCOMES)}")
    if delete_node and outcome != "resolved":
        raise InvalidInputError("Deleting the comment requires the 'resolved' outcome")
    if not reviewer_id:
        raise InvalidInputError("Reviewer id is required")

    now = time.time()
    action = (action_note or "").strip() or ("deleted" if delete_node else None)
    with transaction(immediate=True) as conn:
        report = conn.execute("SELECT * FROM discussion_reports WHERE id = ?", (report_id,)).fetchone()
        if report is None:
            raise ReportNotFoundError(f"Report {report_id} not found")

        conn.execute(
            "UPDATE discussion_reports SET status = ?, reviewed_by = ?, reviewed_at = ?, action_taken = ? WHERE id = ?",
            (outcome, reviewer_id, now, action, report_id),
        )
        if delete_node:
            deleted = delete_subtree(conn, report["node_id"])
            for chunk in batched(deleted):
                conn.execute(
                    f"UPDATE discussion_reports SET status = 'resolved', reviewed_by = ?, reviewed_at = ?, "
                    f"action_taken = ? WHERE status = 'pending' AND node_id IN ({placeholders(len(chunk))})",
                    [reviewer_id, now, action, *chunk],
                )
            logger.info("Reported comment deleted",
                        extra={"component": "moderation", "report_id": report_id, "count": len(deleted)})

        row = conn.execute(f"{_REPORT_SELECT} WHERE r.id = ?", (report_id,)).fetchone()
    return _row_to_report(row)
