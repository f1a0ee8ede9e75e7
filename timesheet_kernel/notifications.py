"""
Needs-attention notifications.

Responsibility:
    Builds a notice for every timesheet that transitioned to Needs Attention
    and fans the notices out to a ``NotificationDispatcher`` after the
    transaction has committed.

Architecture position:
    Kernel > Notifications.  Called by the WorkflowCoordinator outside the
    transaction boundary.  Delivery (email, chat, ...) is the dispatcher's
    concern.

Failure modes:
    Dispatch is collect-all: every notice is attempted, each failure is
    logged as ``notification_dispatch_failed``, and nothing is raised.  A
    notification failure never rolls back or fails the caller's operation.
"""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol
from uuid import UUID

from timesheet_kernel.domain.dtos import TimesheetInfo
from timesheet_kernel.logging_config import LogContext, get_logger

logger = get_logger("notifications")


@dataclass(frozen=True)
class NeedsAttentionNotice:
    timesheet_id: UUID
    employee_id: UUID
    week_start: datetime
    link: str
    subject: str
    body: str
    sender: str | None = None


class NotificationDispatcher(Protocol):
    """Delivers one notice.  May raise; the caller logs and continues."""

    def send(self, notice: NeedsAttentionNotice) -> None:
        ...


class LoggingNotificationDispatcher:
    """Default dispatcher: records the notice in the structured log."""

    def send(self, notice: NeedsAttentionNotice) -> None:
        logger.info(
            "notification_sent",
            extra={
                "timesheet_id": str(notice.timesheet_id),
                "employee_id": str(notice.employee_id),
                "link": notice.link,
                "subject": notice.subject,
            },
        )


def timesheet_link(root_domain: str, timesheet_id: UUID) -> str:
    return f"{root_domain.rstrip('/')}/page/timesheets/{timesheet_id}"


def build_needs_attention_notice(
    timesheet: TimesheetInfo,
    root_domain: str,
    sender: str | None = None,
) -> NeedsAttentionNotice:
    week = timesheet.week_start.date().isoformat()
    link = timesheet_link(root_domain, timesheet.id)
    return NeedsAttentionNotice(
        timesheet_id=timesheet.id,
        employee_id=timesheet.employee_id,
        week_start=timesheet.week_start,
        link=link,
        subject=f"Timesheet for the week of {week} needs attention",
        body=(
            f"One or more entries on your timesheet for the week of {week} "
            f"were rejected. Review them at {link}"
        ),
        sender=sender,
    )


@dataclass
class DispatchReport:
    sent: list[UUID] = field(default_factory=list)
    failed: list[UUID] = field(default_factory=list)


def dispatch_all(
    dispatcher: NotificationDispatcher,
    notices: Sequence[NeedsAttentionNotice],
    max_parallel: int = 4,
) -> DispatchReport:
    """Send every notice with at most ``max_parallel`` in flight; join all."""
    report = DispatchReport()
    if not notices:
        return report

    workers = max(1, min(max_parallel, len(notices)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="notify") as pool:
        futures = [(notice, pool.submit(dispatcher.send, notice)) for notice in notices]
        for notice, future in futures:
            try:
                future.result()
            except Exception:
                report.failed.append(notice.timesheet_id)
                with LogContext.bind(timesheet_id=notice.timesheet_id):
                    logger.warning("notification_dispatch_failed", exc_info=True)
            else:
                report.sent.append(notice.timesheet_id)

    logger.info(
        "notifications_dispatched",
        extra={"sent_count": len(report.sent), "failed_count": len(report.failed)},
    )
    return report
