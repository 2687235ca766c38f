from __future__ import annotations

import asyncio
import dataclasses
from datetime import datetime, timedelta, timezone

import pytest

from reportdesk.infra.auth import AuthenticatedUser
from reportdesk.infra.redis import redis_client
from reportdesk.moderation.domain.decisions import BASELINE_RULE, DecisionEngine, filing_threshold_rule
from reportdesk.moderation.domain.exceptions import Unauthorized, ValidationFailure
from reportdesk.moderation.domain.rbac import AccessGate
from reportdesk.moderation.domain.reasons import ReasonCatalog
from reportdesk.moderation.domain.reports import Filing, InMemoryReportRepository, ReportOrder
from reportdesk.moderation.domain.reports_service import ReportService
from reportdesk.moderation.domain.resources import (
    InMemoryResourceDirectory,
    MemberResource,
    PostResource,
    ResourceKind,
    ResourceLocator,
)
from reportdesk.settings import DEFAULT_REASON_CATEGORIES

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

MEMBER_A = AuthenticatedUser(id="u1", roles=("member",))
MEMBER_C = AuthenticatedUser(id="u3", roles=("member",))
REVIEWER = AuthenticatedUser(id="mod", roles=("reviewer",))


class StepClock:
    def __init__(self, start: datetime = T0, step: timedelta = timedelta(minutes=5)) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = value + self.step
        return value


class YieldingDirectory(InMemoryResourceDirectory):
    """Hands control back to the loop on every lookup so filings interleave."""

    async def fetch_member(self, member_id):
        await asyncio.sleep(0)
        return await super().fetch_member(member_id)

    async def fetch_post(self, post_id):
        await asyncio.sleep(0)
        return await super().fetch_post(post_id)

    async def fetch_comment(self, comment_id):
        await asyncio.sleep(0)
        return await super().fetch_comment(comment_id)


@pytest.fixture
def directory() -> YieldingDirectory:
    directory = YieldingDirectory()
    directory.add_member("abusive-user-id", "abusive-user")
    directory.add_post("p23", "Matt and Robert having a pair-programming")
    directory.add_comment("c34", "Robert getting tired.")
    return directory


@pytest.fixture
def repository() -> InMemoryReportRepository:
    return InMemoryReportRepository()


@pytest.fixture
def service(directory: YieldingDirectory, repository: InMemoryReportRepository) -> ReportService:
    return ReportService(
        repository=repository,
        locator=ResourceLocator(directory),
        decisions=DecisionEngine(),
        reasons=ReasonCatalog.from_names(DEFAULT_REASON_CATEGORIES),
        gate=AccessGate(),
        redis=redis_client,
        clock=StepClock(),
    )


@pytest.mark.asyncio
async def test_first_filing_creates_open_report(service: ReportService) -> None:
    view = await service.file_report(
        MEMBER_A,
        resource_id="abusive-user-id",
        reason_category="doxing",
        reason_description="harassing",
    )

    assert view is not None
    assert view.resource == MemberResource(id="abusive-user-id", name="abusive-user")
    report = view.report
    assert report.resource_ref.kind is ResourceKind.MEMBER
    assert report.closed is False
    assert report.rule == BASELINE_RULE
    assert report.created_at == report.updated_at == T0
    assert [filing.submitter_id for filing in report.filings] == ["u1"]
    assert report.filings[0].reason_category == "doxing"
    assert report.filings[0].reason_description == "harassing"


@pytest.mark.asyncio
async def test_second_filing_appends_to_same_report(
    service: ReportService, repository: InMemoryReportRepository
) -> None:
    first = await service.file_report(
        MEMBER_A, resource_id="abusive-user-id", reason_category="doxing", reason_description="harassing"
    )
    second = await service.file_report(
        MEMBER_C, resource_id="abusive-user-id", reason_category="other", reason_description="still harassing"
    )

    assert first is not None and second is not None
    assert second.report.report_id == first.report.report_id
    assert len(repository.reports) == 1
    filings = second.report.filings
    assert [(f.submitter_id, f.reason_category, f.reason_description) for f in filings] == [
        ("u1", "doxing", "harassing"),
        ("u3", "other", "still harassing"),
    ]
    assert second.report.created_at == T0
    assert second.report.updated_at == filings[1].created_at == T0 + timedelta(minutes=5)


@pytest.mark.asyncio
async def test_same_submitter_may_file_again(service: ReportService) -> None:
    for description in ("first", "second"):
        view = await service.file_report(
            MEMBER_A, resource_id="p23", reason_category="other", reason_description=description
        )
    assert view is not None
    assert [f.reason_description for f in view.report.filings] == ["first", "second"]


@pytest.mark.asyncio
async def test_concurrent_filings_converge_on_one_report(
    service: ReportService, repository: InMemoryReportRepository
) -> None:
    submitters = [AuthenticatedUser(id=f"member-{idx}") for idx in range(25)]
    views = await asyncio.gather(
        *(
            service.file_report(
                submitter, resource_id="c34", reason_category="other", reason_description=f"flag {idx}"
            )
            for idx, submitter in enumerate(submitters)
        )
    )

    assert len({view.report.report_id for view in views if view is not None}) == 1
    assert len(repository.reports) == 1
    stored = next(iter(repository.reports.values()))
    assert len(stored.filings) == 25
    assert {filing.submitter_id for filing in stored.filings} == {s.id for s in submitters}


@pytest.mark.asyncio
@pytest.mark.parametrize("resource_id", ["t23", "cat9", "no-such-id"])
async def test_unsupported_resource_returns_none_without_side_effects(
    service: ReportService, repository: InMemoryReportRepository, fake_redis, resource_id: str
) -> None:
    result = await service.file_report(
        MEMBER_A, resource_id=resource_id, reason_category="other", reason_description="whatever"
    )
    assert result is None
    assert repository.reports == {}
    assert await fake_redis.xlen("mod:reports") == 0


@pytest.mark.asyncio
async def test_anonymous_filing_is_rejected_before_lookup(
    service: ReportService, repository: InMemoryReportRepository
) -> None:
    with pytest.raises(Unauthorized):
        await service.file_report(
            None, resource_id="abusive-user-id", reason_category="other", reason_description="x"
        )
    assert repository.reports == {}


@pytest.mark.asyncio
async def test_invalid_category_is_rejected(service: ReportService) -> None:
    with pytest.raises(ValidationFailure):
        await service.file_report(
            MEMBER_A, resource_id="abusive-user-id", reason_category="my-category", reason_description="x"
        )


@pytest.mark.asyncio
async def test_description_is_sanitized_before_storage(service: ReportService) -> None:
    view = await service.file_report(
        MEMBER_A,
        resource_id="p23",
        reason_category="other",
        reason_description="My reason <sanitize></sanitize>!",
    )
    assert view is not None
    assert view.report.filings[0].reason_description == "My reason !"


@pytest.mark.asyncio
async def test_filing_publishes_event(service: ReportService, fake_redis) -> None:
    view = await service.file_report(
        MEMBER_A, resource_id="p23", reason_category="doxing", reason_description="x"
    )
    assert view is not None
    entries = await fake_redis.xrange("mod:reports")
    assert len(entries) == 1
    _, fields = entries[0]
    assert fields["event"] == "report.filed"
    assert fields["report_id"] == view.report.report_id
    assert fields["resource_type"] == "Post"
    assert fields["submitter_id"] == "u1"
    assert fields["rule"] == BASELINE_RULE


@pytest.mark.asyncio
async def test_publish_failure_does_not_undo_filing(
    service: ReportService, repository: InMemoryReportRepository
) -> None:
    class BrokenRedis:
        async def xadd(self, *args, **kwargs):
            raise ConnectionError("redis down")

    service.redis = BrokenRedis()  # type: ignore[assignment]
    view = await service.file_report(
        MEMBER_A, resource_id="p23", reason_category="doxing", reason_description="x"
    )
    assert view is not None
    assert len(repository.reports) == 1


@pytest.mark.asyncio
async def test_listing_requires_reviewer(service: ReportService) -> None:
    await service.file_report(MEMBER_A, resource_id="p23", reason_category="other", reason_description="x")
    with pytest.raises(Unauthorized):
        await service.list_reports(MEMBER_A)
    with pytest.raises(Unauthorized):
        await service.list_reports(None)
    with pytest.raises(Unauthorized):
        await service.get_report(MEMBER_A, "anything")


@pytest.mark.asyncio
async def test_listing_orders_and_projects_live_resources(
    service: ReportService, directory: YieldingDirectory
) -> None:
    await service.file_report(MEMBER_A, resource_id="abusive-user-id", reason_category="doxing", reason_description="a")
    await service.file_report(MEMBER_A, resource_id="p23", reason_category="other", reason_description="b")
    await service.file_report(MEMBER_C, resource_id="c34", reason_category="other", reason_description="c")
    await service.file_report(MEMBER_C, resource_id="abusive-user-id", reason_category="other", reason_description="d")

    directory.add_member("abusive-user-id", "renamed-user")
    directory.add_post("p23", "Edited title")

    newest_first = await service.list_reports(REVIEWER)
    assert [view.report.resource_ref.resource_id for view in newest_first] == ["c34", "p23", "abusive-user-id"]
    by_id = {view.report.resource_ref.resource_id: view for view in newest_first}
    assert by_id["abusive-user-id"].resource == MemberResource(id="abusive-user-id", name="renamed-user")
    assert by_id["p23"].resource == PostResource(id="p23", title="Edited title")
    assert len(by_id["abusive-user-id"].report.filings) == 2

    oldest_first = await service.list_reports(REVIEWER, order_by=ReportOrder.CREATED_AT_ASC)
    assert [view.report.resource_ref.resource_id for view in oldest_first] == ["abusive-user-id", "p23", "c34"]

    recently_updated = await service.list_reports(REVIEWER, order_by=ReportOrder.UPDATED_AT_DESC)
    assert recently_updated[0].report.resource_ref.resource_id == "abusive-user-id"


@pytest.mark.asyncio
async def test_listing_pages_and_filters(service: ReportService) -> None:
    for resource_id in ("abusive-user-id", "p23", "c34"):
        await service.file_report(MEMBER_A, resource_id=resource_id, reason_category="other", reason_description="x")

    page = await service.list_reports(REVIEWER, first=1, offset=1)
    assert [view.report.resource_ref.resource_id for view in page] == ["p23"]
    assert await service.list_reports(REVIEWER, closed=True) == []
    assert len(await service.list_reports(REVIEWER, closed=False)) == 3

    service.max_page_size = 2
    assert len(await service.list_reports(REVIEWER, first=50)) == 2


@pytest.mark.asyncio
async def test_removed_resource_has_no_projection(service: ReportService, directory: YieldingDirectory) -> None:
    await service.file_report(MEMBER_A, resource_id="p23", reason_category="other", reason_description="x")
    directory.remove("p23")
    [view] = await service.list_reports(REVIEWER)
    assert view.resource is None
    assert view.report.resource_ref.kind is ResourceKind.POST


@pytest.mark.asyncio
async def test_get_report_for_reviewer(service: ReportService) -> None:
    filed = await service.file_report(MEMBER_A, resource_id="c34", reason_category="other", reason_description="x")
    assert filed is not None
    view = await service.get_report(REVIEWER, filed.report.report_id)
    assert view is not None
    assert view.report.report_id == filed.report.report_id
    assert await service.get_report(REVIEWER, "missing") is None


@pytest.mark.asyncio
async def test_configured_rule_closes_report(service: ReportService) -> None:
    service.decisions = DecisionEngine([filing_threshold_rule(2)])
    first = await service.file_report(MEMBER_A, resource_id="p23", reason_category="other", reason_description="x")
    second = await service.file_report(MEMBER_C, resource_id="p23", reason_category="other", reason_description="y")
    assert first is not None and second is not None
    assert first.report.closed is False
    assert second.report.closed is True
    assert second.report.rule == "filingThresholdRule"


@pytest.mark.asyncio
async def test_failed_decision_leaves_no_partial_report(repository: InMemoryReportRepository) -> None:
    ref = PostResource(id="p23", title="Matt and Robert having a pair-programming").ref
    filing = Filing(
        filing_id="f1",
        submitter_id="u1",
        reason_category="other",
        reason_description="x",
        created_at=T0,
    )

    def broken(report):
        raise RuntimeError("rule failed")

    with pytest.raises(RuntimeError):
        await repository.file(ref, filing, broken)
    assert repository.reports == {}

    stored = await repository.file(ref, filing, DecisionEngine().decide)
    with pytest.raises(RuntimeError):
        await repository.file(ref, dataclasses.replace(filing, filing_id="f2"), broken)
    [report] = repository.reports.values()
    assert report.report_id == stored.report_id
    assert [f.filing_id for f in report.filings] == ["f1"]


@pytest.mark.asyncio
async def test_gate_runs_before_reason_checks(service: ReportService) -> None:
    with pytest.raises(Unauthorized):
        await service.file_report(
            None, resource_id="abusive-user-id", reason_category="reason-category-dummy", reason_description="<b></b>"
        )
