"""Per-day buckets of pull request and ticket activity."""

from services.dates import day_key, each_day, parse_day


def aggregate_daily(date_from: str, date_to: str, prs: list, issues: list) -> list:
    """Bucket PRs by creation day and issues by resolution day.

    Every day of the inclusive ``[date_from, date_to]`` range gets a bucket,
    zeroed if nothing happened. Items dated outside the range are ignored.
    Raises ValueError for malformed dates or an inverted range.
    """
    start = parse_day(date_from)
    end = parse_day(date_to)
    if start > end:
        raise ValueError(f"'from' ({date_from}) is after 'to' ({date_to})")

    buckets = {
        day_key(d): {
            "date": day_key(d),
            "prCount": 0,
            "additions": 0,
            "deletions": 0,
            "tickets": 0,
            "storyPoints": 0,
        }
        for d in each_day(start, end)
    }

    for pr in prs:
        if pr.created_at is None:
            continue
        row = buckets.get(day_key(pr.created_at))
        if row is None:
            continue
        row["prCount"] += 1
        row["additions"] += pr.additions or 0
        row["deletions"] += pr.deletions or 0

    for issue in issues:
        if issue.resolution_date is None:
            continue
        row = buckets.get(day_key(issue.resolution_date))
        if row is None:
            continue
        row["tickets"] += 1
        row["storyPoints"] += issue.points

    return sorted(buckets.values(), key=lambda row: row["date"])
