"""Report filing and review-queue orchestration."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import uuid4

from reportdesk.infra.auth import AuthenticatedUser
from reportdesk.infra.redis import RedisProxy
from reportdesk.moderation.domain.decisions import DecisionEngine
from reportdesk.moderation.domain.rbac import AccessGate
from reportdesk.moderation.domain.reasons import ReasonCatalog
from reportdesk.moderation.domain.reports import Filing, Report, ReportOrder, ReportRepository
from reportdesk.moderation.domain.resources import ReportableResource, ResourceLocator, UnsupportedResource
from reportdesk.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReportView:
    """A report together with the resource projection resolved for this response."""

    report: Report
    resource: Optional[ReportableResource]


@dataclass
class ReportService:
    repository: ReportRepository
    locator: ResourceLocator
    decisions: DecisionEngine
    reasons: ReasonCatalog
    gate: AccessGate
    redis: RedisProxy | None = None
    report_stream: str = "mod:reports"
    report_stream_maxlen: int = 10000
    max_page_size: int = 100
    clock: Callable[[], datetime] = _utcnow

    async def file_report(
        self,
        caller: Optional[AuthenticatedUser],
        *,
        resource_id: str,
        reason_category: str,
        reason_description: str,
    ) -> ReportView | None:
        submitter = self.gate.authorize_filing(caller)
        category = self.reasons.validate_category(reason_category)
        description = self.reasons.clean_description(reason_description)

        resource = await self.locator.locate(resource_id)
        if isinstance(resource, UnsupportedResource):
            logger.info("report target unsupported", extra={"submitter_id": submitter.id})
            obs_metrics.report_filed(resource.kind.value, "unsupported")
            return None

        start = time.perf_counter()
        filing = Filing(
            filing_id=str(uuid4()),
            submitter_id=submitter.id,
            reason_category=category,
            reason_description=description,
            created_at=self.clock(),
        )
        report = await self.repository.file(resource.ref, filing, self.decisions.decide)
        obs_metrics.MOD_REPORT_FILE_SECONDS.observe(time.perf_counter() - start)
        outcome = "created" if len(report.filings) == 1 else "appended"
        obs_metrics.report_filed(resource.kind.value, outcome)
        logger.info(
            "report filed",
            extra={
                "report_id": report.report_id,
                "resource_type": resource.kind.value,
                "submitter_id": submitter.id,
                "filings": len(report.filings),
                "outcome": outcome,
            },
        )
        await self._publish(report, filing)
        return ReportView(report=report, resource=resource)

    async def list_reports(
        self,
        caller: Optional[AuthenticatedUser],
        *,
        order_by: ReportOrder = ReportOrder.CREATED_AT_DESC,
        closed: Optional[bool] = None,
        first: Optional[int] = None,
        offset: int = 0,
    ) -> list[ReportView]:
        self.gate.authorize_listing(caller)
        start = time.perf_counter()
        limit = self.max_page_size if first is None else max(0, min(first, self.max_page_size))
        reports = await self.repository.list_reports(
            order=order_by,
            closed=closed,
            limit=limit,
            offset=max(0, offset),
        )
        views = await self._with_resources(reports)
        obs_metrics.MOD_REPORT_LIST_LATENCY_MS.observe((time.perf_counter() - start) * 1000)
        return views

    async def get_report(self, caller: Optional[AuthenticatedUser], report_id: str) -> ReportView | None:
        self.gate.authorize_listing(caller)
        report = await self.repository.get_report(report_id)
        if report is None:
            return None
        resource = await self.locator.resolve(report.resource_ref)
        return ReportView(report=report, resource=resource)

    async def _with_resources(self, reports: list[Report]) -> list[ReportView]:
        resources = await asyncio.gather(*(self.locator.resolve(report.resource_ref) for report in reports))
        return [ReportView(report=report, resource=resource) for report, resource in zip(reports, resources)]

    async def _publish(self, report: Report, filing: Filing) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.xadd(
                self.report_stream,
                {
                    "event": "report.filed",
                    "report_id": report.report_id,
                    "resource_type": report.resource_ref.kind.value,
                    "resource_id": report.resource_ref.resource_id,
                    "filing_id": filing.filing_id,
                    "submitter_id": filing.submitter_id,
                    "reason_category": filing.reason_category,
                    "closed": int(report.closed),
                    "rule": report.rule,
                },
                maxlen=self.report_stream_maxlen,
                approximate=True,
            )
        except Exception:  # noqa: BLE001 - the filing is already committed
            obs_metrics.MOD_REPORT_STREAM_FAILURES_TOTAL.inc()
            logger.exception("failed to publish report event", extra={"report_id": report.report_id})
