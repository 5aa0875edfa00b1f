"""
Daily and detailed operational reports.

Counts are always derived from the item rows, so a detailed report's
items and its counts cannot disagree.
"""

import logging
from datetime import date, datetime, time, timezone
from typing import Dict, Iterable, List, Optional, Tuple, Union

from residence.database import get_session
from residence.db_models import ServiceRequestRecord
from residence.exceptions import ReportConsistencyError
from residence.lifecycle import report_bucket
from residence.models import (
    CategoryCounts,
    CategoryDetail,
    DailyReport,
    DetailedReport,
    ReportItem,
    ReportStatus,
    RequestCategory,
)
from residence.repositories import ServiceRequestRepository
from residence.services.request_store import SessionFactory

logger = logging.getLogger(__name__)

# Report block name -> request category, in display order
REPORT_CATEGORIES: Tuple[Tuple[str, RequestCategory], ...] = (
    ("sleepovers", RequestCategory.SLEEPOVER),
    ("maintenance", RequestCategory.MAINTENANCE),
    ("complaints", RequestCategory.COMPLAINT),
)


def utc_today() -> date:
    """Current calendar day in UTC, the zone request timestamps are stored in"""
    return datetime.now(timezone.utc).date()


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """First and last instant of a calendar day"""
    return datetime.combine(day, time.min), datetime.combine(day, time.max)


def to_report_item(record: ServiceRequestRecord) -> ReportItem:
    return ReportItem(
        id=record.id,
        student_name=record.user_name,
        date=record.created_at,
        status=report_bucket(record.status),
        details=record.details or record.title,
    )


def summarize(items: Iterable[ReportItem]) -> CategoryDetail:
    """Build a category block from its items"""
    block = CategoryDetail(items=list(items))
    for item in block.items:
        setattr(block, item.status.value, block.count_for(item.status) + 1)
    block.total = len(block.items)
    return block


def strip_items(block: CategoryDetail) -> CategoryCounts:
    return CategoryCounts(
        total=block.total,
        resolved=block.resolved,
        denied=block.denied,
        pending=block.pending,
    )


def verify_report(report: Union[DailyReport, DetailedReport]) -> None:
    """
    Check report invariants.

    ReportService runs this on every report before handing it out.

    Every block must satisfy total == resolved + denied + pending. Blocks
    that carry items must also match their items bucket by bucket.

    Raises:
        ReportConsistencyError: On the first violated invariant
    """
    for name, block in report.categories():
        parts = block.resolved + block.denied + block.pending
        if block.total != parts:
            raise ReportConsistencyError(
                f"{name}: total {block.total} != resolved + denied + pending ({parts})"
            )

        items = getattr(block, "items", None)
        if items is None:
            continue

        if len(items) != block.total:
            raise ReportConsistencyError(
                f"{name}: {len(items)} items but total is {block.total}"
            )
        for status in ReportStatus:
            counted = sum(1 for item in items if item.status == status)
            if counted != block.count_for(status):
                raise ReportConsistencyError(
                    f"{name}: {counted} {status.value} items but count is {block.count_for(status)}"
                )


class ReportService:
    """Builds reports from the service request table"""

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self.session_factory = session_factory or get_session

    def _collect(self, day: date) -> Dict[str, CategoryDetail]:
        start, end = day_bounds(day)
        blocks: Dict[str, CategoryDetail] = {}

        with self.session_factory() as session:
            repo = ServiceRequestRepository(session)
            for name, category in REPORT_CATEGORIES:
                records = repo.list_created_between(category.value, start, end)
                blocks[name] = summarize(to_report_item(r) for r in records)

        return blocks

    def generate_detailed_report(self, day: date) -> DetailedReport:
        """Counts plus the rows behind them, for requests created on day"""
        blocks = self._collect(day)
        report = DetailedReport(date=day, **blocks)
        verify_report(report)
        logger.info(
            f"Detailed report for {day}: "
            + ", ".join(f"{name}={block.total}" for name, block in report.categories())
        )
        return report

    def generate_daily_report(self, day: date) -> DailyReport:
        """Counts only, for requests created on day"""
        blocks = self._collect(day)
        report = DailyReport(
            date=day, **{name: strip_items(block) for name, block in blocks.items()}
        )
        verify_report(report)
        return report


def report_to_dict(report: Union[DailyReport, DetailedReport]) -> Dict:
    """JSON-ready representation"""
    result: Dict = {"date": report.date.isoformat()}
    for name, block in report.categories():
        entry: Dict = {
            "total": block.total,
            "resolved": block.resolved,
            "denied": block.denied,
            "pending": block.pending,
        }
        items: Optional[List[ReportItem]] = getattr(block, "items", None)
        if items is not None:
            entry["items"] = [
                {
                    "id": item.id,
                    "student_name": item.student_name,
                    "date": item.date.isoformat(),
                    "status": item.status.value,
                    "details": item.details,
                }
                for item in items
            ]
        result[name] = entry
    return result
