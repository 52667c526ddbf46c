"""Pull request lifecycle durations and population medians."""

from typing import Optional

from services.dates import isoformat, parse_datetime


def diff_hours(start, end) -> Optional[float]:
    """Hours from start to end, never negative.

    Accepts datetimes or timestamp strings; None if either is missing or
    cannot be parsed.
    """
    t1 = parse_datetime(start)
    t2 = parse_datetime(end)
    if t1 is None or t2 is None:
        return None
    return max(0.0, (t2 - t1).total_seconds() / 3600)


def median(values) -> Optional[float]:
    nums = sorted(values)
    if not nums:
        return None
    mid = len(nums) // 2
    if len(nums) % 2:
        return nums[mid]
    return (nums[mid - 1] + nums[mid]) / 2


def _present(items: list, field: str) -> list:
    return [item[field] for item in items if item.get(field) is not None]


def lifecycle_item(pr, work_started=None, linked_issue: dict = None) -> dict:
    """One lifecycle row for a pull request."""
    if pr.ready_for_review_at is not None:
        ready_at = pr.ready_for_review_at
    else:
        ready_at = None if pr.is_draft else pr.created_at
    first_review = pr.first_review_at
    end_at = pr.merged_at or pr.closed_at

    if pr.merged_at is not None:
        review_start = first_review or ready_at or pr.created_at
        review_to_merge = diff_hours(review_start, pr.merged_at)
    else:
        review_to_merge = None

    return {
        "id": pr.id,
        "number": pr.number,
        "title": pr.title,
        "url": pr.url,
        "createdAt": isoformat(pr.created_at),
        "readyForReviewAt": isoformat(ready_at),
        "firstReviewAt": isoformat(first_review),
        "mergedAt": isoformat(pr.merged_at),
        "closedAt": isoformat(pr.closed_at),
        "state": pr.state,
        "isDraft": pr.is_draft,
        "additions": pr.additions,
        "deletions": pr.deletions,
        "workStartedAt": isoformat(parse_datetime(work_started)),
        "linkedIssue": linked_issue,
        "timeToReadyHours": diff_hours(pr.created_at, ready_at),
        "timeToFirstReviewHours": diff_hours(pr.created_at, first_review),
        "reviewToMergeHours": review_to_merge,
        "cycleTimeHours": diff_hours(pr.created_at, end_at) if end_at else None,
        "inProgressToCreatedHours": diff_hours(work_started, pr.created_at),
    }


def compute_lifecycle(prs: list, work_started: dict = None, linked_issues: dict = None) -> dict:
    """Per-PR lifecycle rows plus medians over the PRs that have each duration.

    ``work_started`` maps PR URL to the time work began (the linked issue's
    in-progress time); ``linked_issues`` maps PR URL to issue display data.
    """
    work_started = work_started or {}
    linked_issues = linked_issues or {}

    items = [
        lifecycle_item(pr, work_started.get(pr.url), linked_issues.get(pr.url))
        for pr in prs
    ]

    stats = {
        "sampleSize": len(items),
        "medianTimeToReadyHours": median(_present(items, "timeToReadyHours")),
        "medianTimeToFirstReviewHours": median(_present(items, "timeToFirstReviewHours")),
        "medianReviewToMergeHours": median(_present(items, "reviewToMergeHours")),
        "medianCycleTimeHours": median(_present(items, "cycleTimeHours")),
        "medianInProgressToCreatedHours": median(_present(items, "inProgressToCreatedHours")),
    }

    return {"items": items, "stats": stats}
