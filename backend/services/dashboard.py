"""Request-level assembly of the individual and sprint dashboards."""

import logging
from datetime import datetime, time, timezone
from typing import Optional

from services.config import DashboardConfig
from services.dates import parse_day
from services.github_client import GitHubClient
from services.jira_client import JiraClient
from services.lifecycle import compute_lifecycle
from services.linking import link_dev_status_prs, link_prs_by_title
from services.phase_times import (
    STATUS_GROUPS, apply_phase_times, get_field_first_set_times, get_issue_phase_times,
)
from services.scope import get_sprint_scope_changes
from services.sprint_burn import compute_sprint_stats
from services.timeseries import aggregate_daily

logger = logging.getLogger(__name__)


class SprintNotFound(Exception):
    """Raised when Jira has no sprint with the requested id."""


class DashboardService:
    """Fetches from GitHub and Jira and runs the aggregation passes."""

    def __init__(self, config: DashboardConfig, jira: JiraClient = None, github: GitHubClient = None):
        self.config = config
        self.jira = jira or JiraClient(config)
        self.github = github or GitHubClient(config)

    def get_individual_stats(self, login: str, date_from: str, date_to: str,
                             jira_account_id: Optional[str] = None,
                             project_key: Optional[str] = None) -> dict:
        """Activity of one person over a date range.

        Raises ValueError for malformed dates; Jira problems become warnings.
        """
        start_day = parse_day(date_from)
        end_day = parse_day(date_to)
        if start_day > end_day:
            raise ValueError(f"'from' ({date_from}) is after 'to' ({date_to})")

        warnings = []
        prs = self.github.search_prs(login, date_from, date_to)

        try:
            issues = self.jira.get_issues_updated(
                login, date_from, date_to, jira_account_id=jira_account_id, project_key=project_key
            )
        except Exception as e:
            logger.warning("Jira fetch failed: %s", e)
            warnings.append(f"JIRA fetch skipped: {e}")
            issues = []

        link_prs_by_title(prs, issues)

        window = (
            datetime.combine(start_day, time.min, tzinfo=timezone.utc),
            datetime.combine(end_day, time.max, tzinfo=timezone.utc),
        )
        phases = get_issue_phase_times(
            self.jira, [i.key for i in issues], STATUS_GROUPS, window=window, actor=jira_account_id
        )
        if phases.skipped:
            logger.info("Phase times skipped for %s", ", ".join(phases.skipped_keys))
        apply_phase_times(issues, phases)

        by_key = {issue.key: issue for issue in issues}
        work_started = {}
        linked_issues = {}
        for pr in prs:
            linked = [by_key[k] for k in pr.jira_keys if k in by_key]
            if not linked:
                continue
            started = [i.in_progress_at for i in linked if i.in_progress_at is not None]
            if started:
                work_started[pr.url] = min(started)
            first = linked[0]
            linked_issues[pr.url] = {
                "key": first.key,
                "summary": first.summary,
                "url": first.url,
                "status": first.status,
            }

        linked_keys = {key for pr in prs for key in pr.jira_keys}
        touched_without_pr = [
            issue.to_dict() for issue in issues
            if issue.touched_in_window and issue.key not in linked_keys
        ]

        kpis = {
            "totalPRs": len(prs),
            "totalTicketsDone": len(issues),
            "totalStoryPoints": sum(i.points for i in issues),
            "totalAdditions": sum(pr.additions for pr in prs),
            "totalDeletions": sum(pr.deletions for pr in prs),
        }

        return {
            "from": date_from,
            "to": date_to,
            "login": login,
            "kpis": kpis,
            "timeseries": aggregate_daily(date_from, date_to, prs, issues),
            "prs": [pr.to_dict() for pr in prs],
            "tickets": [issue.to_dict() for issue in issues],
            "touchedWithoutPR": touched_without_pr,
            "warnings": warnings,
            "lifecycle": compute_lifecycle(prs, work_started, linked_issues),
        }

    def get_sprint_stats(self, sprint_id: int, now: Optional[datetime] = None) -> dict:
        """Burn-down, forecast and KPIs for one sprint.

        Raises SprintNotFound for an unknown sprint. Scope classification and
        PR linking degrade to defaults with a warning.
        """
        now = now or datetime.now(timezone.utc)
        warnings = []

        meta = self.jira.get_sprint_meta(sprint_id)
        if not meta:
            raise SprintNotFound(f"Sprint {sprint_id} not found")

        issues = self.jira.get_sprint_issues(sprint_id)
        keys = [issue.key for issue in issues]

        phases = get_issue_phase_times(self.jira, keys, STATUS_GROUPS)
        if phases.skipped:
            logger.info("Phase times skipped for %s", ", ".join(phases.skipped_keys))
        apply_phase_times(issues, phases, review_falls_back_to_complete=True)

        qa_times = get_field_first_set_times(self.jira, keys, "qa_assignee", self.config.fields)
        for issue in issues:
            issue.qa_assigned_at = qa_times.get(issue.key)

        scope_by_key = {}
        try:
            scope = get_sprint_scope_changes(
                self.jira, sprint_id, keys, meta.get("startDate"), self.config.fields
            )
            scope_by_key = scope.values
            if scope.skipped:
                warnings.append(
                    f"Scope change classification unavailable for {len(scope.skipped)} issue(s); "
                    "counted as committed"
                )
        except Exception as e:
            logger.warning("Scope classification failed for sprint %s: %s", sprint_id, e)
            warnings.append(
                "Scope change classification unavailable "
                "(insufficient Jira permissions or changelog disabled)"
            )

        try:
            warnings.extend(
                link_dev_status_prs(self.jira, self.github, issues, self.config.pr_stats_concurrency)
            )
        except Exception as e:
            logger.warning("PR linking failed for sprint %s: %s", sprint_id, e)
            warnings.append(f"Linked PR statistics unavailable: {e}")

        return compute_sprint_stats(meta, issues, scope_by_key, now, warnings)
