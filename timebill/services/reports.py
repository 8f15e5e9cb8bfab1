"""
Store-backed reports over tracked time.

Loads entries, rates and names through the repositories and hands them
to the pure functions in services.aggregation. Every method is read-only.
"""

import logging
from datetime import date, datetime
from typing import Optional, List, Dict, Any

from ..database.models import StatsPeriodEnum
from ..database.exceptions import ValidationError
from ..database.repositories import (
    ProjectRepository,
    TimeEntryRepository,
    TagRepository,
    TaskRepository,
    ClientRepository,
    get_project_repository,
    get_time_entry_repository,
    get_tag_repository,
    get_task_repository,
    get_client_repository,
)
from ..utils.datetime_utils import get_local_now, start_of_day, end_of_day
from ..utils.formatting import format_duration, format_currency
from .aggregation import (
    aggregate,
    bucket_entries,
    calendar_grid,
    group_by_day,
    group_by_tag,
    group_by_task,
    group_entries_by_day,
    round_currency,
    round_half_up,
    totals_by_project,
)

logger = logging.getLogger(__name__)

PORTAL_ENTRY_LIMIT = 100
TOP_TASKS = 10
UNKNOWN_PROJECT = "—"


def _groups_as_rows(groups) -> List[Dict[str, Any]]:
    return [
        {"name": g.name, "minutes": g.rounded_minutes, "formatted": format_duration(g.minutes)}
        for g in groups
    ]


class ReportService:
    """
    Statistics, project reports, calendar and client portal views.

    Repositories default to the module singletons and can be injected
    (tests pass repositories bound to an in-memory database).
    """

    def __init__(
        self,
        projects: Optional[ProjectRepository] = None,
        entries: Optional[TimeEntryRepository] = None,
        tags: Optional[TagRepository] = None,
        tasks: Optional[TaskRepository] = None,
        clients: Optional[ClientRepository] = None,
    ):
        self.projects = projects or get_project_repository()
        self.entries = entries or get_time_entry_repository()
        self.tags = tags or get_tag_repository()
        self.tasks = tasks or get_task_repository()
        self.clients = clients or get_client_repository()
        self.clock = get_local_now

    async def get_statistics(
        self,
        user_id: str,
        period,
        client_id: Optional[int] = None,
        project_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Earnings and minutes per day/week/month/year bucket.

        Totals cover every completed entry of the selected projects, even
        those older than the first bucket. Each project is billed at its
        client's hourly rate.
        """
        try:
            period = StatsPeriodEnum(getattr(period, "value", period))
        except ValueError:
            raise ValidationError(f"Invalid statistics period: {period}")

        now = now or self.clock()
        rates = await self.projects.get_rates(user_id, client_id)
        project_ids = list(rates)
        if project_id is not None:
            project_ids = [pid for pid in project_ids if pid == project_id]

        entries = await self.entries.list_entries(user_id=user_id, project_ids=project_ids)
        series = bucket_entries(entries, period, now, rates)

        logger.debug(
            f"Statistics for {user_id} ({period.value}): {len(entries)} entries "
            f"over {len(project_ids)} projects"
        )

        return {
            "period": period.value,
            "total_minutes": int(round_half_up(series.total_minutes, "1")),
            "total_earnings": round_currency(series.total_amount),
            "total_formatted": format_duration(series.total_minutes),
            "earnings_formatted": format_currency(round_currency(series.total_amount)),
            "by_period": series.as_rows(),
        }

    async def get_project_report(
        self,
        user_id: str,
        project_id: int,
        range_start: date,
        range_end: date,
    ) -> Dict[str, Any]:
        """Totals, bill and breakdowns (by day, top tasks, by tag) for one project."""
        project = await self.projects.get_by_id(user_id, project_id)
        rate = project.client.hourly_rate_usd if project.client else 0.0

        entries = await self.entries.list_entries(
            user_id=user_id,
            project_ids=[project.id],
            range_start=start_of_day(range_start),
            range_end=end_of_day(range_end),
        )
        totals = aggregate(entries, {project.id: rate})

        task_ids = {e.task_id for e in entries if e.task_id is not None}
        task_names = await self.tasks.get_names(task_ids)

        tags_by_entry = await self.entries.get_entry_tag_ids(e.id for e in entries)
        tag_ids = {tag_id for ids in tags_by_entry.values() for tag_id in ids}
        tag_names = await self.tags.get_names(tag_ids)

        by_day = group_by_day(entries, range_start, range_end)

        return {
            "project_id": project.id,
            "project_name": project.name,
            "client_name": project.client.name if project.client else None,
            "hourly_rate": rate,
            "range_start": range_start,
            "range_end": range_end,
            "entry_count": totals.entry_count,
            "total_minutes": totals.rounded_minutes,
            "total_formatted": format_duration(totals.minutes),
            "amount": totals.rounded_amount,
            "amount_formatted": format_currency(totals.rounded_amount),
            "by_day": [
                {"date": day, "minutes": int(round_half_up(mins, "1"))}
                for day, mins in by_day.items()
            ],
            "by_task": _groups_as_rows(group_by_task(entries, task_names, limit=TOP_TASKS)),
            "by_tag": _groups_as_rows(group_by_tag(entries, tags_by_entry, tag_names)),
        }

    async def get_projects_with_time(self, user_id: str, client_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Projects that have tracked time, most minutes first."""
        projects = await self.projects.get_all(user_id, client_id)
        if not projects:
            return []

        rates = {p.id: (p.client.hourly_rate_usd if p.client else 0.0) for p in projects}
        entries = await self.entries.list_entries(user_id=user_id, project_ids=list(rates))
        per_project = totals_by_project(entries, rates)

        with_time = [p for p in projects if p.id in per_project and per_project[p.id].minutes > 0]
        with_time.sort(key=lambda p: per_project[p.id].minutes, reverse=True)

        return [
            {
                "project_id": p.id,
                "project_name": p.name,
                "client_id": p.client_id,
                "client_name": p.client.name if p.client else None,
                "minutes": per_project[p.id].rounded_minutes,
                "formatted": format_duration(per_project[p.id].minutes),
                "amount": per_project[p.id].rounded_amount,
                "amount_formatted": format_currency(per_project[p.id].rounded_amount),
            }
            for p in with_time
        ]

    async def get_calendar_month(self, user_id: str, year: int, month: int) -> Dict[str, Any]:
        """Whole Monday-start weeks covering a month, each day with its entries."""
        if not 1 <= month <= 12:
            raise ValidationError(f"Invalid month: {month}")

        days = calendar_grid(year, month)
        entries = await self.entries.list_entries(
            user_id=user_id,
            range_start=start_of_day(days[0]),
            range_end=end_of_day(days[-1]),
        )
        by_day = group_entries_by_day(entries)

        grid = [
            {
                "date": day,
                "in_month": day.month == month,
                "entries": by_day.get(day, []),
                "minutes": int(round_half_up(sum(e.duration_minutes for e in by_day.get(day, [])), "1")),
            }
            for day in days
        ]

        return {
            "year": year,
            "month": month,
            "weeks": [grid[i:i + 7] for i in range(0, len(grid), 7)],
        }

    async def get_portal_summary(self, invited_user_id: str) -> Optional[Dict[str, Any]]:
        """
        Read-only view for an invited client user.

        Returns None when the user is not linked to any client.
        """
        client = await self.clients.get_for_invited_user(invited_user_id)
        if client is None:
            return None

        projects = [p for p in await self.projects.list_for_portal(invited_user_id) if p.client_id == client.id]
        names = {p.id: p.name for p in projects}

        entries = await self.entries.list_entries(project_ids=list(names))
        per_project = totals_by_project(entries)
        recent = sorted(entries, key=lambda e: e.start_time, reverse=True)[:PORTAL_ENTRY_LIMIT]

        return {
            "client_id": client.id,
            "client_name": client.name,
            "projects": [
                {
                    "project_id": p.id,
                    "project_name": p.name,
                    "minutes": per_project[p.id].rounded_minutes if p.id in per_project else 0,
                }
                for p in projects
            ],
            "recent_entries": [
                {
                    "id": e.id,
                    "project_id": e.project_id,
                    "project_name": names.get(e.project_id, UNKNOWN_PROJECT),
                    "task_name": e.task_name,
                    "start_time": e.start_time,
                    "end_time": e.end_time,
                    "minutes": int(round_half_up(e.duration_minutes, "1")),
                }
                for e in recent
            ],
        }


# Singleton
_report_service: Optional[ReportService] = None


def get_report_service() -> ReportService:
    """Get the report service singleton."""
    global _report_service
    if _report_service is None:
        _report_service = ReportService()
    return _report_service
