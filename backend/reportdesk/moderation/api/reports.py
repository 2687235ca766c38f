"""Reports API surface: members file reports, reviewers read them."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional, Union

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from reportdesk.infra.auth import AuthenticatedUser, get_optional_user
from reportdesk.moderation.domain.container import get_report_service
from reportdesk.moderation.domain.exceptions import ReportNotFound
from reportdesk.moderation.domain.reports import Filing, ReportOrder
from reportdesk.moderation.domain.reports_service import ReportService, ReportView
from reportdesk.moderation.domain.resources import (
    CommentResource,
    MemberResource,
    PostResource,
    ReportableResource,
)

router = APIRouter(prefix="/api/mod/v1/reports", tags=["moderation-reports"])


class FileReportIn(BaseModel):
    resource_id: str = Field(..., min_length=1, max_length=128)
    reason_category: str = Field(..., min_length=1)
    reason_description: str = Field(..., min_length=1)


class MemberOut(BaseModel):
    type: Literal["Member"] = "Member"
    id: str
    name: str


class PostOut(BaseModel):
    type: Literal["Post"] = "Post"
    id: str
    title: str


class CommentOut(BaseModel):
    type: Literal["Comment"] = "Comment"
    id: str
    content: str


ResourceOut = Union[MemberOut, PostOut, CommentOut]


def _resource_out(resource: Optional[ReportableResource]) -> Optional[ResourceOut]:
    if resource is None:
        return None
    if isinstance(resource, MemberResource):
        return MemberOut(id=resource.id, name=resource.name)
    if isinstance(resource, PostResource):
        return PostOut(id=resource.id, title=resource.title)
    if isinstance(resource, CommentResource):
        return CommentOut(id=resource.id, content=resource.content)
    raise TypeError(f"unsupported resource projection: {type(resource).__name__}")


class SubmitterOut(BaseModel):
    id: str


class FilingOut(BaseModel):
    filing_id: str
    submitter: SubmitterOut
    reason_category: str
    reason_description: str
    created_at: datetime

    @classmethod
    def from_model(cls, filing: Filing) -> "FilingOut":
        return cls(
            filing_id=filing.filing_id,
            submitter=SubmitterOut(id=filing.submitter_id),
            reason_category=filing.reason_category,
            reason_description=filing.reason_description,
            created_at=filing.created_at,
        )


class ReportOut(BaseModel):
    report_id: str
    closed: bool
    rule: str
    created_at: datetime
    updated_at: datetime
    resource: Optional[ResourceOut]
    filings: list[FilingOut]

    @classmethod
    def from_view(cls, view: ReportView) -> "ReportOut":
        report = view.report
        return cls(
            report_id=report.report_id,
            closed=report.closed,
            rule=report.rule,
            created_at=report.created_at,
            updated_at=report.updated_at,
            resource=_resource_out(view.resource),
            filings=[FilingOut.from_model(filing) for filing in report.filings],
        )


def get_report_service_dep() -> ReportService:
    return get_report_service()


@router.post("", response_model=Optional[ReportOut])
async def file_report(
    payload: FileReportIn,
    service: ReportService = Depends(get_report_service_dep),
    caller: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> Optional[ReportOut]:
    view = await service.file_report(
        caller,
        resource_id=payload.resource_id,
        reason_category=payload.reason_category,
        reason_description=payload.reason_description,
    )
    return ReportOut.from_view(view) if view else None


@router.get("", response_model=list[ReportOut])
async def list_reports(
    order_by: ReportOrder = Query(ReportOrder.CREATED_AT_DESC),
    closed: Optional[bool] = Query(None),
    first: Optional[int] = Query(None, ge=0),
    offset: int = Query(0, ge=0),
    service: ReportService = Depends(get_report_service_dep),
    caller: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> list[ReportOut]:
    views = await service.list_reports(caller, order_by=order_by, closed=closed, first=first, offset=offset)
    return [ReportOut.from_view(view) for view in views]


@router.get("/{report_id}", response_model=ReportOut)
async def get_report(
    report_id: str,
    service: ReportService = Depends(get_report_service_dep),
    caller: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> ReportOut:
    view = await service.get_report(caller, report_id)
    if view is None:
        raise ReportNotFound()
    return ReportOut.from_view(view)
