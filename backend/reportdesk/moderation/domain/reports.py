"""Report aggregate, its filings, and the storage contract behind them."""

from __future__ import annotations

import asyncio
import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Protocol
from uuid import uuid4

from reportdesk.moderation.domain.decisions import Decision
from reportdesk.moderation.domain.resources import ResourceRef


class ReportOrder(str, Enum):
    CREATED_AT_DESC = "createdAt_desc"
    CREATED_AT_ASC = "createdAt_asc"
    UPDATED_AT_DESC = "updatedAt_desc"
    UPDATED_AT_ASC = "updatedAt_asc"

    @property
    def column(self) -> str:
        return "created_at" if self in (ReportOrder.CREATED_AT_DESC, ReportOrder.CREATED_AT_ASC) else "updated_at"

    @property
    def descending(self) -> bool:
        return self in (ReportOrder.CREATED_AT_DESC, ReportOrder.UPDATED_AT_DESC)


@dataclass(frozen=True)
class Filing:
    """One member's act of reporting a resource."""

    filing_id: str
    submitter_id: str
    reason_category: str
    reason_description: str
    created_at: datetime


@dataclass(frozen=True)
class Review:
    """A reviewer's disposition of a report, written by the review subsystem."""

    reviewer_id: str
    closed: bool
    created_at: datetime
    updated_at: datetime


@dataclass
class Report:
    """Aggregate of every filing against a single resource."""

    report_id: str
    resource_ref: ResourceRef
    created_at: datetime
    updated_at: datetime
    closed: bool
    rule: str
    filings: list[Filing] = field(default_factory=list)
    reviews: list[Review] = field(default_factory=list)

    def apply(self, decision: Decision) -> None:
        self.closed = decision.closed
        self.rule = decision.rule

    def snapshot(self) -> "Report":
        return dataclasses.replace(self, filings=list(self.filings), reviews=list(self.reviews))


Decide = Callable[[Report], Decision]


class ReportRepository(Protocol):
    """Storage contract used by the report service."""

    async def file(self, ref: ResourceRef, filing: Filing, decide: Decide) -> Report:
        """Atomically create the report for ``ref`` or append ``filing`` to it.

        The decision is recomputed inside the same critical section so the
        returned report is never observed with a stale status.
        """
        ...

    async def get_report(self, report_id: str) -> Report | None:
        ...

    async def list_reports(
        self,
        *,
        order: ReportOrder,
        closed: Optional[bool],
        limit: Optional[int],
        offset: int,
    ) -> list[Report]:
        ...


class InMemoryReportRepository(ReportRepository):
    """Lightweight in-memory repository for local development and tests."""

    def __init__(self) -> None:
        self.reports: dict[str, Report] = {}
        self._by_ref: dict[str, str] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, ref: ResourceRef) -> asyncio.Lock:
        lock = self._locks.get(ref.key)
        if lock is None:
            lock = self._locks[ref.key] = asyncio.Lock()
        return lock

    async def file(self, ref: ResourceRef, filing: Filing, decide: Decide) -> Report:
        async with self._lock_for(ref):
            report_id = self._by_ref.get(ref.key)
            if report_id is None:
                candidate = Report(
                    report_id=str(uuid4()),
                    resource_ref=ref,
                    created_at=filing.created_at,
                    updated_at=filing.created_at,
                    closed=False,
                    rule="",
                    filings=[filing],
                )
            else:
                candidate = self.reports[report_id].snapshot()
                candidate.filings.append(filing)
                candidate.updated_at = max(candidate.updated_at, filing.created_at)
            candidate.apply(decide(candidate))
            # Commit only once the decision succeeded.
            self.reports[candidate.report_id] = candidate
            self._by_ref[ref.key] = candidate.report_id
            return candidate.snapshot()

    async def get_report(self, report_id: str) -> Report | None:
        report = self.reports.get(report_id)
        return report.snapshot() if report else None

    async def list_reports(
        self,
        *,
        order: ReportOrder = ReportOrder.CREATED_AT_DESC,
        closed: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Report]:
        items = [report for report in self.reports.values() if closed is None or report.closed is closed]
        items.sort(key=lambda report: (getattr(report, order.column), report.report_id), reverse=order.descending)
        end = None if limit is None else offset + limit
        return [report.snapshot() for report in items[offset:end]]
