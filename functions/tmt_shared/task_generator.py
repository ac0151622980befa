"""
Working-Day Task Generator
==========================

Expands one delegation request into its dated occurrences.

Algorithm
---------
1. Starting at the start date, step by the frequency unit (day, week,
   2 weeks, month, quarter, year) while the stop is on or before
   ``start + horizon_years``. One-time requests produce a single stop.
2. At each stop, walk forward day by day (at most 100 attempts) to the first
   date that is in the working-day calendar and not already used in this run.
3. Emit that date as DD/MM/YYYY and mark it used. A stop that finds nothing
   within 100 attempts emits nothing.

With an empty calendar the raw stop is emitted unvalidated.

Each step advances the previous stop. Month steps clamp the day to the
target month, and the clamped day carries forward: 31/01 -> 29/02 -> 29/03.

Example
-------
>>> generate_due_dates("01/06/2024", Frequency.DAILY,
...                    {"01/06/2024", "03/06/2024", "05/06/2024"})[:3]
['01/06/2024', '03/06/2024', '05/06/2024']
"""

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set

from .helpers import parse_sheet_date, format_sheet_date, is_blank
from .id_generator import format_task_id
from .models import AssignTaskRequest, Frequency, TaskOccurrence
from .sheet_config import TASK_HORIZON_YEARS, MAX_WORKING_DAY_ATTEMPTS

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("date", "doer", "title", "frequency")

# Frequency -> (days, months) per step; None for one-time
_STEPS: Dict[Frequency, Optional[tuple]] = {
    Frequency.ONE_TIME: None,
    Frequency.DAILY: (1, 0),
    Frequency.WEEKLY: (7, 0),
    Frequency.FORTNIGHTLY: (14, 0),
    Frequency.MONTHLY: (0, 1),
    Frequency.QUARTERLY: (0, 3),
    Frequency.YEARLY: (0, 12),
    Frequency.END_OF_1ST_WEEK: (0, 1),
    Frequency.END_OF_2ND_WEEK: (0, 1),
    Frequency.END_OF_3RD_WEEK: (0, 1),
    Frequency.END_OF_4TH_WEEK: (0, 1),
    Frequency.END_OF_LAST_WEEK: (0, 1),
}


@dataclass
class TaskGenerationResult:
    """Outcome of a generation run; ``valid`` is False instead of raising."""

    valid: bool
    tasks: List[TaskOccurrence] = field(default_factory=list)
    missing_fields: List[str] = field(default_factory=list)
    error_message: Optional[str] = None

    @property
    def due_dates(self) -> List[str]:
        return [t.due_date for t in self.tasks]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "count": len(self.tasks),
            "tasks": [t.model_dump(mode="json") for t in self.tasks],
            "missing_fields": self.missing_fields,
            "error_message": self.error_message,
        }


def add_months(d: date, months: int) -> date:
    """Calendar month arithmetic, clamping the day to the target month."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def normalize_calendar(working_days: Optional[Iterable[Any]]) -> Set[str]:
    """Working days as a set of DD/MM/YYYY strings; unparseable entries are dropped."""
    normalized = set()
    for value in working_days or ():
        parsed = parse_sheet_date(value)
        if parsed:
            normalized.add(format_sheet_date(parsed))
    return normalized


def stepped_dates(start: date, frequency: Frequency, horizon_years: int = TASK_HORIZON_YEARS) -> Iterator[date]:
    """Raw stops from ``start`` through ``start + horizon_years`` inclusive."""
    step = _STEPS[frequency]
    if step is None:
        yield start
        return

    end = add_months(start, 12 * horizon_years)
    days, months = step
    cursor = start
    while cursor <= end:
        yield cursor
        cursor = add_months(cursor, months) if months else cursor + timedelta(days=days)


def find_next_working_day(
    candidate: date,
    working_days: Set[str],
    used: Set[str],
    max_attempts: int = MAX_WORKING_DAY_ATTEMPTS,
) -> Optional[str]:
    """
    First date on or after ``candidate`` that is a working day and unused.

    An empty calendar accepts the candidate itself (if unused).
    """
    if not working_days:
        key = format_sheet_date(candidate)
        return None if key in used else key

    for offset in range(max_attempts):
        key = format_sheet_date(candidate + timedelta(days=offset))
        if key in working_days and key not in used:
            return key
    return None


def generate_due_dates(
    start_date: Any,
    frequency: Frequency,
    working_days: Optional[Iterable[Any]],
    horizon_years: int = TASK_HORIZON_YEARS,
) -> List[str]:
    """
    Ordered, duplicate-free due dates for one request.

    Args:
        start_date: date or DD/MM/YYYY / YYYY-MM-DD string
        frequency: Recurrence
        working_days: Calendar of valid dates (any parseable form)
        horizon_years: How far ahead to generate

    Raises:
        ValueError: If ``start_date`` cannot be parsed
    """
    start = parse_sheet_date(start_date)
    if start is None:
        raise ValueError(f"Invalid start date: {start_date}")

    frequency = Frequency(frequency)
    calendar_days = normalize_calendar(working_days)
    if not calendar_days:
        logger.warning("Working-day calendar is empty; using raw stepped dates")

    used: Set[str] = set()
    due_dates: List[str] = []
    for stop in stepped_dates(start, frequency, horizon_years):
        key = find_next_working_day(stop, calendar_days, used)
        if key is None:
            logger.debug(f"No working day within {MAX_WORKING_DAY_ATTEMPTS} days of {format_sheet_date(stop)}")
            continue
        used.add(key)
        due_dates.append(key)
    return due_dates


def generate_tasks(
    request: AssignTaskRequest,
    working_days: Optional[Iterable[Any]],
    last_task_id: int = 0,
    horizon_years: int = TASK_HORIZON_YEARS,
    required_fields: Iterable[str] = REQUIRED_FIELDS,
) -> TaskGenerationResult:
    """
    Expand a delegation request into TaskOccurrences.

    Missing required fields produce ``valid=False`` with their names; nothing
    is raised. Task ids continue from ``last_task_id``.
    """
    missing = [name for name in required_fields if is_blank(getattr(request, name, None))]
    if missing:
        return TaskGenerationResult(
            valid=False,
            missing_fields=missing,
            error_message="Please fill in all required fields."
        )

    try:
        due_dates = generate_due_dates(request.date, request.frequency, working_days, horizon_years)
    except ValueError as e:
        return TaskGenerationResult(valid=False, missing_fields=["date"], error_message=str(e))

    tasks = [
        TaskOccurrence(
            task_id=format_task_id(last_task_id + 1 + offset),
            department=request.department or "",
            given_by=request.given_by or "",
            doer=request.doer,
            title=request.title,
            description=request.description or "",
            due_date=due_date,
            frequency=request.frequency,
            enable_reminders=request.enable_reminders,
            require_attachment=request.require_attachment,
        )
        for offset, due_date in enumerate(due_dates)
    ]
    logger.info(f"Generated {len(tasks)} {request.frequency.value} tasks for '{request.doer}'")
    return TaskGenerationResult(valid=True, tasks=tasks)
