"""Phase timestamps from Jira status-change history."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from services.config import FieldMap
from services.dates import parse_datetime
from services.lifecycle import diff_hours
from services.results import BatchResult, Ok, Skipped

logger = logging.getLogger(__name__)

TODO_STATUS_NAMES = ["To Do", "Open", "Backlog", "Selected for Development"]
IN_PROGRESS_STATUS_NAMES = ["In Progress", "In Development", "In-Progress", "Doing", "Selected for Development"]
REVIEW_STATUS_NAMES = ["Reviewed", "Review", "In Review"]
COMPLETE_STATUS_NAMES = ["Approved", "Done"]

STATUS_GROUPS = {
    "todo": TODO_STATUS_NAMES,
    "inProgress": IN_PROGRESS_STATUS_NAMES,
    "review": REVIEW_STATUS_NAMES,
    "complete": COMPLETE_STATUS_NAMES,
}

GROUP_ORDER = ("todo", "inProgress", "review", "complete")


@dataclass
class PhaseTimes:
    todo: Optional[datetime] = None
    in_progress: Optional[datetime] = None
    review: Optional[datetime] = None
    complete: Optional[datetime] = None
    touched: bool = False

    def as_dict(self) -> dict:
        return {
            "todo": self.todo,
            "inProgress": self.in_progress,
            "review": self.review,
            "complete": self.complete,
        }


_ATTRS = {"todo": "todo", "inProgress": "in_progress", "review": "review", "complete": "complete"}


def _author_matches(history: dict, actor: str) -> bool:
    author = history.get("author") or {}
    return actor in (author.get("accountId"), author.get("emailAddress"), author.get("displayName"))


def extract_phase_times(histories: list, created: Optional[datetime], groups: dict,
                        window: Optional[tuple] = None, actor: Optional[str] = None) -> PhaseTimes:
    """First entry into each status group, from histories ordered oldest first.

    ``todo`` falls back to the creation time when the issue never moved into
    a todo status explicitly. When both ``window`` (an inclusive
    ``(start, end)`` pair) and ``actor`` are given, ``touched`` reports
    whether the actor authored any history entry inside the window.
    """
    lookup = {
        name: {s.lower() for s in groups.get(name, [])}
        for name in GROUP_ORDER
    }
    times = PhaseTimes()

    for history in histories:
        at = parse_datetime(history.get("created"))
        if at is None:
            continue

        if window and actor and not times.touched and _author_matches(history, actor):
            if window[0] <= at <= window[1]:
                times.touched = True

        for item in history.get("items", []) or []:
            if (item.get("field") or "").lower() != "status":
                continue
            target = (item.get("toString") or "").lower()
            for name in GROUP_ORDER:
                attr = _ATTRS[name]
                if target in lookup[name] and getattr(times, attr) is None:
                    setattr(times, attr, at)

    if times.todo is None:
        times.todo = created

    return times


def get_issue_phase_times(jira, keys: list, groups: dict = None,
                          window: Optional[tuple] = None, actor: Optional[str] = None) -> BatchResult:
    """Phase times for each issue key, fetched one issue at a time.

    An issue whose changelog cannot be fetched is recorded as skipped and
    left out of ``values``.
    """
    groups = groups or STATUS_GROUPS
    result = BatchResult()

    for key in keys:
        try:
            created, histories = jira.get_issue_changelog(key)
        except Exception as e:
            logger.debug("Changelog fetch for %s failed: %s", key, e)
            result.add(Skipped(key, str(e) or e.__class__.__name__))
            continue
        result.add(Ok(key, extract_phase_times(histories, created, groups, window, actor)))

    return result


def first_field_set_time(histories: list, purpose: str = "qa_assignee",
                         fields: Optional[FieldMap] = None) -> Optional[datetime]:
    """When the field mapped to ``purpose`` first received a non-empty value."""
    fields = fields or FieldMap()
    for history in histories:
        for item in history.get("items", []) or []:
            if not fields.matches_item(item, purpose):
                continue
            if item.get("to") or item.get("toString"):
                return parse_datetime(history.get("created"))
    return None


def get_field_first_set_times(jira, keys: list, purpose: str = "qa_assignee",
                              fields: Optional[FieldMap] = None) -> BatchResult:
    """First time the ``purpose`` field was set, per issue, fetched one issue at a time."""
    result = BatchResult()
    for key in keys:
        try:
            _, histories = jira.get_issue_changelog(key)
        except Exception as e:
            logger.debug("Changelog fetch for %s failed: %s", key, e)
            result.add(Skipped(key, str(e) or e.__class__.__name__))
            continue
        result.add(Ok(key, first_field_set_time(histories, purpose, fields)))
    return result


def apply_phase_times(issues: list, phases: BatchResult, review_falls_back_to_complete: bool = False) -> None:
    """Copy phase timestamps and derived durations onto issues, in place.

    With ``review_falls_back_to_complete`` an issue that never passed
    through a review status takes its completion time as its review time.
    """
    for issue in issues:
        times = phases.get(issue.key) or PhaseTimes()
        issue.todo_at = times.todo
        issue.in_progress_at = times.in_progress
        issue.review_at = times.review
        issue.complete_at = times.complete
        issue.touched_in_window = times.touched
        if review_falls_back_to_complete and issue.review_at is None:
            issue.review_at = issue.complete_at
        issue.in_progress_to_review_hours = diff_hours(issue.in_progress_at, issue.review_at)
        issue.review_to_complete_hours = diff_hours(issue.review_at, issue.complete_at)
