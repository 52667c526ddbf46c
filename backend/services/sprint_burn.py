"""Sprint burn-down series, velocity forecast and KPI summary."""

import math
from datetime import date, datetime, timedelta
from typing import Optional

from services.dates import day_key, each_day, local_date, parse_datetime, parse_day
from services.phase_times import REVIEW_STATUS_NAMES
from services.scope import ADDED

VELOCITY_WINDOW = 5

REVIEW_SET = {s.lower() for s in REVIEW_STATUS_NAMES}


def _reached_by_day(at: Optional[datetime], day: date) -> bool:
    return at is not None and at.date() <= day


def build_burn_series(issues: list, start: date, end: date, scope: float) -> list:
    """One point per calendar day from start to end, both inclusive.

    ``devCompleted`` sums points of issues that reached review by that day,
    ``completeCompleted`` those that reached done/approved.
    """
    burn = []
    for day in each_day(start, end):
        dev_done = sum(i.points for i in issues if _reached_by_day(i.review_at, day))
        complete_done = sum(i.points for i in issues if _reached_by_day(i.complete_at, day))
        burn.append({
            "date": day_key(day),
            "committed": scope,
            "completed": complete_done,
            "remaining": max(0, scope - complete_done),
            "devCompleted": dev_done,
            "devRemaining": max(0, scope - dev_done),
            "completeCompleted": complete_done,
            "completeRemaining": max(0, scope - complete_done),
        })
    return burn


def average_velocity(series: list, window: int = VELOCITY_WINDOW) -> float:
    """Mean of the positive day-over-day increments in the trailing window.

    Days where the total dropped or stayed flat are left out entirely.
    """
    if len(series) < 2:
        return 0.0
    start = max(1, len(series) - window)
    increments = [
        series[i] - series[i - 1]
        for i in range(start, len(series))
        if series[i] - series[i - 1] > 0
    ]
    return sum(increments) / len(increments) if increments else 0.0


def _today_index(burn: list, today: date) -> int:
    today_key = day_key(today)
    for i, point in enumerate(burn):
        if point["date"] == today_key:
            return i
    for i, point in enumerate(burn):
        if parse_day(point["date"]) > today:
            return i - 1 if i > 0 else len(burn) - 1
    return len(burn) - 1


def apply_forecast(burn: list, scope: float, today: date) -> dict:
    """Project both tracks past today and estimate completion dates.

    Future points gain ``devForecast*``/``completeForecast*`` values. Returns
    ``{"dev": date_str_or_None, "complete": date_str_or_None}``; a track with
    zero velocity gets neither a projection nor a date.
    """
    dates = {"dev": None, "complete": None}
    if not burn:
        return dates

    idx = _today_index(burn, today)
    if idx >= len(burn) - 1:
        return dates

    for track, field in (("dev", "devCompleted"), ("complete", "completeCompleted")):
        history = [point[field] for point in burn[:idx + 1]]
        velocity = average_velocity(history)
        if velocity <= 0:
            continue

        current = history[-1]
        for point in burn[idx + 1:]:
            current = min(scope, current + velocity)
            point[f"{track}ForecastCompleted"] = round(current, 2)
            point[f"{track}ForecastRemaining"] = round(max(0, scope - current), 2)

        remaining = max(0, scope - history[-1])
        days_needed = math.ceil(remaining / velocity)
        done_on = parse_day(burn[idx]["date"]) + timedelta(days=days_needed)
        dates[track] = day_key(done_on)

    return dates


def completion_pct(completed: float, scope: float) -> float:
    if scope <= 0:
        return 0
    return round(completed / scope * 100, 1)


def completed_by_assignee(issues: list, cutoff: datetime) -> list:
    """Points per assignee on both tracks, highest complete points first."""
    dev = {}
    complete = {}
    for issue in issues:
        who = issue.assignee.strip() if issue.assignee and issue.assignee.strip() else "Unassigned"
        if issue.review_at is not None and issue.review_at <= cutoff:
            dev[who] = dev.get(who, 0) + issue.points
        if issue.complete_at is not None and issue.complete_at <= cutoff:
            complete[who] = complete.get(who, 0) + issue.points

    rows = [
        {"assignee": name, "devPoints": dev.get(name, 0), "completePoints": complete.get(name, 0)}
        for name in set(dev) | set(complete)
    ]
    rows.sort(key=lambda r: (-r["completePoints"], -r["devPoints"], r["assignee"]))
    return rows


def count_in_review(issues: list) -> int:
    return sum(1 for issue in issues if (issue.status or "").lower() in REVIEW_SET)


def compute_sprint_stats(meta: dict, issues: list, scope_by_key: dict,
                         now: datetime, warnings: list = None) -> dict:
    """Assemble the sprint payload from annotated issues.

    ``scope_by_key`` maps issue key to ``committed``/``added``; keys missing
    from it count as committed.
    """
    # calendar days as Jira wrote them; the end instant bounds the KPIs
    start_day = local_date(meta.get("startDate"))
    end_day = local_date(meta.get("endDate"))
    end = parse_datetime(meta.get("endDate"))

    committed_sp = 0.0
    added_sp = 0.0
    removed_sp = 0.0
    for issue in issues:
        if scope_by_key.get(issue.key) == ADDED:
            added_sp += issue.points
        else:
            committed_sp += issue.points
    total_scope = max(0.0, committed_sp + added_sp - removed_sp)

    cutoff = end if end is not None and end < now else now

    dev_completed = sum(i.points for i in issues if i.review_at is not None and i.review_at <= cutoff)
    complete_completed = sum(i.points for i in issues if i.complete_at is not None and i.complete_at <= cutoff)
    dev_remaining = max(0.0, total_scope - dev_completed)
    complete_remaining = max(0.0, total_scope - complete_completed)

    burn = []
    forecast_dates = {"dev": None, "complete": None}
    if start_day is not None:
        series_end = end_day or now.date()
        burn = build_burn_series(issues, start_day, series_end, total_scope)
        forecast_dates = apply_forecast(burn, total_scope, now.date())

    kpis = {
        "committedSP": committed_sp,
        "scopeAddedSP": added_sp,
        "scopeRemovedSP": removed_sp,
        "completedSP": complete_completed,
        "remainingSP": complete_remaining,
        "completionPct": completion_pct(complete_completed, total_scope),
        "devCompletedSP": dev_completed,
        "devRemainingSP": dev_remaining,
        "devCompletionPct": completion_pct(dev_completed, total_scope),
        "completeCompletedSP": complete_completed,
        "completeRemainingSP": complete_remaining,
        "completeCompletionPct": completion_pct(complete_completed, total_scope),
        "prAdditions": sum(i.pr_additions for i in issues),
        "prDeletions": sum(i.pr_deletions for i in issues),
    }

    payload = {
        "sprintId": meta.get("id"),
        "sprintName": meta.get("name", ""),
        "startDate": start_day.isoformat() if start_day else None,
        "endDate": end_day.isoformat() if end_day else None,
        "kpis": kpis,
        "burn": burn,
        "issues": [issue.to_dict() for issue in issues],
        "completedByAssignee": completed_by_assignee(issues, cutoff),
        "ticketsInQA": count_in_review(issues),
        "warnings": list(warnings or []),
    }
    if forecast_dates["dev"] or forecast_dates["complete"]:
        payload["forecast"] = {
            "devCompletionDate": forecast_dates["dev"],
            "completeCompletionDate": forecast_dates["complete"],
        }
    return payload
