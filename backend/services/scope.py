"""Committed vs. added scope for sprint issues, from Sprint field history."""

import logging
from datetime import datetime
from typing import Optional

from services.config import FieldMap
from services.dates import parse_datetime
from services.results import BatchResult, Ok, Skipped

logger = logging.getLogger(__name__)

COMMITTED = "committed"
ADDED = "added"


def sprint_ids(raw) -> set:
    """Sprint ids in a changelog ``from``/``to`` value such as ``"12, 34"``."""
    return {s.strip() for s in str(raw or "").split(",") if s.strip()}


def classify_scope(histories: list, sprint_id, sprint_start: Optional[datetime],
                   fields: Optional[FieldMap] = None) -> str:
    """Classify an issue as ``committed`` or ``added`` for a sprint.

    An entry into the sprint after it started means ``added``; an entry at or
    before the start, or leaving it on or before the start, means
    ``committed``. Only the latest such signal in history order counts.
    """
    fields = fields or FieldMap()
    target = str(sprint_id)
    status = None

    for history in histories:
        at = parse_datetime(history.get("created"))
        for item in history.get("items", []) or []:
            if not fields.matches_item(item, "sprint"):
                continue
            to_ids = sprint_ids(item.get("to"))
            from_ids = sprint_ids(item.get("from"))

            if target in to_ids and target not in from_ids:
                if at is not None and sprint_start is not None and at > sprint_start:
                    status = ADDED
                else:
                    status = COMMITTED
            elif target in from_ids and target not in to_ids:
                if at is None or sprint_start is None or at <= sprint_start:
                    status = COMMITTED

    return status or COMMITTED


def get_sprint_scope_changes(jira, sprint_id, keys: list, sprint_start,
                             fields: Optional[FieldMap] = None) -> BatchResult:
    """Scope classification per issue key, fetched one issue at a time.

    Issues whose changelog cannot be fetched are skipped; callers treat any
    key missing from ``values`` as committed.
    """
    start = parse_datetime(sprint_start)
    result = BatchResult()

    for key in keys:
        try:
            _, histories = jira.get_issue_changelog(key)
        except Exception as e:
            logger.debug("Sprint history fetch for %s failed: %s", key, e)
            result.add(Skipped(key, str(e) or e.__class__.__name__))
            continue
        result.add(Ok(key, classify_scope(histories, sprint_id, start, fields)))

    return result
