"""Pull request <-> Jira issue linking."""

import logging

from services.github_client import parse_pr_url
from services.pool import run_bounded
from services.results import Ok

logger = logging.getLogger(__name__)


def match_issue_keys(title: str, keys) -> list:
    """Every known issue key that appears verbatim in the title."""
    title = title or ""
    return [key for key in keys if key and key in title]


def link_prs_by_title(prs: list, issues: list) -> list:
    """Attach matching issue keys to each pull request, in place."""
    keys = sorted({issue.key for issue in issues})
    for pr in prs:
        pr.jira_keys = match_issue_keys(pr.title, keys)
    return prs


def link_dev_status_prs(jira, github, issues: list, pool_size: int = 10) -> list:
    """Fold line counts of PRs from each issue's development panel onto it.

    Each issue collects the PRs listed for itself and for its subtasks,
    deduplicated by URL. Statistics for the union of URLs are fetched
    through a bounded worker pool. Lookups that fail count as zero and
    produce a warning; returns the list of warnings.
    """
    warnings = []
    parents = [issue for issue in issues if issue.id]
    if not parents:
        return warnings

    try:
        subtasks = jira.get_subtask_ids([issue.id for issue in parents])
    except Exception as e:
        logger.warning("Subtask lookup failed: %s", e)
        warnings.append(f"Subtask lookup failed, only direct PR links counted: {e}")
        subtasks = {}

    linked_by_key = {}
    failed_lookups = 0
    for issue in parents:
        seen = {}
        for issue_id in [issue.id] + list(subtasks.get(issue.id, [])):
            try:
                prs = jira.get_dev_status_prs(issue_id)
            except Exception as e:
                logger.debug("Dev-status lookup for issue %s failed: %s", issue_id, e)
                failed_lookups += 1
                continue
            for pr in prs:
                seen.setdefault(pr.url, pr)
        linked_by_key[issue.key] = list(seen.values())

    if failed_lookups:
        warnings.append(
            f"Linked PR lookup failed for {failed_lookups} issue(s); their PRs count as zero"
        )

    all_urls = sorted({pr.url for prs in linked_by_key.values() for pr in prs})

    def fetch_stats(url):
        parsed = parse_pr_url(url)
        if parsed is None:
            raise ValueError(f"Not a GitHub pull request URL: {url}")
        return github.get_pr_stats(*parsed)

    outcomes = run_bounded(fetch_stats, all_urls, max_workers=pool_size)
    stats = {o.key: o.value for o in outcomes if isinstance(o, Ok)}
    missing = len(outcomes) - len(stats)
    if missing:
        warnings.append(f"PR line counts unavailable for {missing} linked pull request(s)")

    for issue in parents:
        linked = linked_by_key.get(issue.key, [])
        for pr in linked:
            if not pr.title and stats.get(pr.url, {}).get("title"):
                pr.title = stats[pr.url]["title"]
        issue.linked_prs = linked
        issue.pr_additions = sum(stats.get(pr.url, {}).get("additions", 0) for pr in linked)
        issue.pr_deletions = sum(stats.get(pr.url, {}).get("deletions", 0) for pr in linked)
        issue.pr_review_comments = sum(stats.get(pr.url, {}).get("reviewComments", 0) for pr in linked)

    return warnings
