"""Moderator routes: report review and contribution review."""
from typing import Optional

from log import get_logger

logger = get_logger("nungdict.admin_routes")

from fastapi import APIRouter, Depends, Request

from models import ReviewReportRequest, ReviewContributionRequest
from auth import require_admin
from contributions import list_contributions, review_contribution
from discussion_routes import raise_http
from errors import NungDictError
from moderation import list_reports, moderate

router = APIRouter()


@router.get("/api/admin/reports", tags=["Admin"], summary="List comment reports")
async def get_reports(status: Optional[str] = None, node_id: Optional[int] = None,
                      _reviewer: str = Depends(require_admin)):
    try:
        reports = list_reports(status=status, node_id=node_id)
    except NungDictError as e:
        raise_http(e)
    return {"reports": [report.model_dump() for report in reports], "total": len(reports)}


@router.post("/api/admin/reports/{report_id}/review", tags=["Admin"], summary="Resolve or dismiss a report")
async def review_report(report_id: int, req: ReviewReportRequest, reviewer: str = Depends(require_admin)):
    try:
        report = moderate(report_id, reviewer, req.outcome, action_note=req.action_note, delete_node=req.delete_node)
    except NungDictError as e:
        raise_http(e)
    return report.model_dump()


@router.get("/api/admin/contributions", tags=["Admin"], summary="List community contributions")
async def get_contributions(status: Optional[str] = None, target_language: Optional[str] = None,
                            _reviewer: str = Depends(require_admin)):
    try:
        items = list_contributions(status=status, target_lang=target_language)
    except NungDictError as e:
        raise_http(e)
    return {"contributions": [item.model_dump() for item in items], "total": len(items)}


@router.post("/api/admin/contributions/{contribution_id}/review", tags=["Admin"],
             summary="Approve or reject a contribution")
async def review_contribution_route(contribution_id: int, req: ReviewContributionRequest, request: Request,
                                    reviewer: str = Depends(require_admin)):
    try:
        contribution = review_contribution(contribution_id, reviewer, req.decision)
    except NungDictError as e:
        raise_http(e)

    if contribution.status == "approved":
        from backend import refresh_resolver
        refresh_resolver(request.app)
    return contribution.model_dump()
