"""Jira REST, Agile and dev-status client."""

import logging
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import urlparse

import requests

from services.config import DashboardConfig
from services.dates import parse_datetime, parse_local_datetime
from services.models import Issue, LinkedPR

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

ISSUE_FIELDS = [
    "summary", "assignee", "resolutiondate", "status", "created", "updated",
    "issuetype", "parent", "description",
]


class JiraError(Exception):
    """Raised when Jira answers a search with an error payload."""


def adf_to_text(node) -> str:
    """Flatten an Atlassian document (or a plain string) into text."""
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, list):
        return "".join(adf_to_text(n) for n in node)
    if not isinstance(node, dict):
        return ""

    node_type = node.get("type")
    if node_type == "text":
        return node.get("text", "")
    if node_type == "hardBreak":
        return "\n"

    text = adf_to_text(node.get("content"))
    if node_type in ("paragraph", "heading", "listItem", "codeBlock", "blockquote"):
        text = text.rstrip("\n") + "\n"
    return text if node_type != "doc" else text.strip()


class JiraClient:
    """Thin wrapper over the Jira endpoints the dashboard consumes.

    Every public method returns an empty result when Jira is not configured.
    """

    def __init__(self, config: DashboardConfig):
        self.config = config
        self.fields = config.fields
        self.timeout = config.request_timeout
        self.base = self._normalized_base(config.jira_base_url)
        self._changelog_cache = {}

    @staticmethod
    def _normalized_base(url: str) -> str:
        if not url:
            return ""
        parsed = urlparse(url)
        if parsed.scheme and parsed.netloc:
            return f"{parsed.scheme}://{parsed.netloc}"
        return url.rstrip("/")

    @property
    def configured(self) -> bool:
        return self.config.jira_configured

    def _request(self, endpoint: str, params: Optional[dict] = None):
        """Make authenticated GET request to Jira API."""
        response = requests.get(
            f"{self.base}{endpoint}",
            auth=(self.config.jira_email, self.config.jira_token),
            headers={"Accept": "application/json"},
            params=params,
            timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()

    def _post(self, endpoint: str, body: dict):
        return requests.post(
            f"{self.base}{endpoint}",
            auth=(self.config.jira_email, self.config.jira_token),
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            json=body,
            timeout=self.timeout
        )

    def issue_url(self, key: str) -> str:
        return f"{self.base}/browse/{key}"

    # Search

    def run_jql(self, jql: str, fields: list, max_results: int = 100) -> list:
        """Run an enhanced JQL search, following ``nextPageToken`` to the end."""
        if not self.configured:
            return []

        out = []
        next_page_token = None

        while True:
            body = {
                "jql": jql,
                "fields": fields,
                "fieldsByKeys": True,
                "maxResults": max_results,
            }
            if next_page_token:
                body["nextPageToken"] = next_page_token

            response = self._post("/rest/api/3/search/jql", body)
            if response.status_code != 200:
                raise JiraError(
                    f"Jira enhanced search failed with {response.status_code}"
                    f"{self._error_detail(response)}"
                )

            data = response.json()
            out.extend(data.get("issues", []))

            next_page_token = None if data.get("isLast", True) else data.get("nextPageToken")
            if not next_page_token:
                break

        return out

    @staticmethod
    def _error_detail(response) -> str:
        try:
            payload = response.json()
        except ValueError:
            text = getattr(response, "text", "")
            return f": {text}" if text else ""
        messages = list(payload.get("errorMessages") or [])
        if payload.get("errors"):
            messages.append(str(payload["errors"]))
        return f": {'; '.join(messages)}" if messages else ""

    def to_issue(self, raw: dict) -> Issue:
        """Map a raw Jira issue onto an Issue."""
        fields = raw.get("fields", {}) or {}
        key = raw.get("key", "")
        assignee = fields.get("assignee") or {}
        parent = fields.get("parent") or {}
        parent_type = ((parent.get("fields") or {}).get("issuetype") or {}).get("name", "")

        epic_key = self.fields.read_key(fields, "epic_link")
        if not epic_key and parent_type.lower() == "epic":
            epic_key = parent.get("key")

        return Issue(
            id=str(raw.get("id", "")),
            key=key,
            summary=fields.get("summary") or "",
            url=self.issue_url(key),
            assignee=assignee.get("displayName"),
            resolution_date=parse_local_datetime(fields.get("resolutiondate")),
            story_points=self.fields.read_number(fields, "story_points"),
            status=(fields.get("status") or {}).get("name"),
            created=parse_datetime(fields.get("created")),
            updated=parse_datetime(fields.get("updated")),
            issue_type=(fields.get("issuetype") or {}).get("name"),
            parent_key=parent.get("key"),
            epic_key=epic_key,
            description=adf_to_text(fields.get("description")),
            qa_assignees=self.fields.read_users(fields, "qa_assignee"),
        )

    def _issue_fields(self) -> list:
        return ISSUE_FIELDS + [f for f in self.fields.ids() if f not in ISSUE_FIELDS]

    # Directory

    def get_projects(self) -> list:
        """List projects via /project/search, falling back to the legacy list."""
        if not self.configured:
            return []

        projects = []
        start_at = 0
        max_results = 100

        while True:
            response = requests.get(
                f"{self.base}/rest/api/3/project/search",
                auth=(self.config.jira_email, self.config.jira_token),
                headers={"Accept": "application/json"},
                params={"startAt": start_at, "maxResults": max_results},
                timeout=self.timeout
            )

            if response.status_code == 200:
                data = response.json()
                values = data.get("values", [])
                projects.extend({"key": p["key"], "name": p["name"]} for p in values)
                if len(values) < max_results or data.get("isLast"):
                    break
                start_at += max_results
                continue

            if response.status_code in (400, 404):
                legacy = requests.get(
                    f"{self.base}/rest/api/3/project",
                    auth=(self.config.jira_email, self.config.jira_token),
                    headers={"Accept": "application/json"},
                    timeout=self.timeout
                )
                if legacy.status_code != 200:
                    return projects
                projects.extend({"key": p["key"], "name": p["name"]} for p in legacy.json())
                break

            logger.warning("Jira project search returned %s", response.status_code)
            return projects

        projects.sort(key=lambda p: p["name"].lower())
        return projects

    def get_users(self) -> list:
        """List Jira users. Instances that reject an empty query get ``a``."""
        if not self.configured:
            return []

        users = []
        start_at = 0
        max_results = 100
        query = ""

        while True:
            response = requests.get(
                f"{self.base}/rest/api/3/users/search",
                auth=(self.config.jira_email, self.config.jira_token),
                headers={"Accept": "application/json"},
                params={"startAt": start_at, "maxResults": max_results, "query": query},
                timeout=self.timeout
            )

            if response.status_code == 400 and query == "":
                query = "a"
                continue
            if response.status_code != 200:
                return users

            batch = response.json()
            if not batch:
                break
            users.extend(
                {
                    "accountId": u.get("accountId"),
                    "displayName": u.get("displayName"),
                    "emailAddress": u.get("emailAddress"),
                }
                for u in batch
            )
            if len(batch) < max_results:
                break
            start_at += max_results

        return users

    # Sprints

    def get_sprints(self, board_id: int) -> list:
        """All sprints on a board (any state)."""
        if not self.configured:
            return []

        sprints = []
        start_at = 0
        max_results = 50

        while True:
            data = self._request(
                f"/rest/agile/1.0/board/{board_id}/sprint",
                params={"startAt": start_at, "maxResults": max_results}
            )
            values = data.get("values", [])
            sprints.extend(
                {
                    "id": s["id"],
                    "name": s.get("name"),
                    "state": s.get("state"),
                    "startDate": s.get("startDate"),
                    "endDate": s.get("endDate"),
                }
                for s in values
            )
            if data.get("isLast", True) or len(values) < max_results:
                break
            start_at += max_results

        return sprints

    def get_sprint_meta(self, sprint_id: int) -> Optional[dict]:
        """Fetch a sprint by id; None when Jira does not know it."""
        if not self.configured:
            return None
        try:
            data = self._request(f"/rest/agile/1.0/sprint/{sprint_id}")
        except requests.exceptions.HTTPError as e:
            if e.response is not None and e.response.status_code == 404:
                return None
            raise
        return {
            "id": data.get("id", sprint_id),
            "name": data.get("name", ""),
            "state": data.get("state"),
            "startDate": data.get("startDate"),
            "endDate": data.get("endDate"),
        }

    def get_sprint_issues(self, sprint_id: int) -> list:
        """All issues currently in a sprint, as Issue objects."""
        if not self.configured:
            return []

        issues = []
        start_at = 0
        max_results = 100

        while True:
            data = self._request(
                f"/rest/agile/1.0/sprint/{sprint_id}/issue",
                params={
                    "startAt": start_at,
                    "maxResults": max_results,
                    "fields": ",".join(self._issue_fields()),
                }
            )
            batch = data.get("issues", [])
            issues.extend(self.to_issue(raw) for raw in batch)
            if len(batch) < max_results:
                break
            start_at += max_results

        return issues

    # Per-issue history and links

    def get_issue_changelog(self, key: str) -> tuple:
        """Return ``(created, histories)`` with histories sorted oldest first."""
        if not self.configured:
            return None, []
        if key in self._changelog_cache:
            return self._changelog_cache[key]

        data = self._request(
            f"/rest/api/3/issue/{key}",
            params={"expand": "changelog", "fields": "created"}
        )
        created = parse_datetime((data.get("fields") or {}).get("created"))
        histories = (data.get("changelog") or {}).get("histories", []) or []
        ordered = sorted(
            histories,
            key=lambda h: parse_datetime(h.get("created")) or EPOCH
        )
        self._changelog_cache[key] = (created, ordered)
        return created, ordered

    def get_subtask_ids(self, parent_ids: list) -> dict:
        """Map each parent issue id to the ids of its subtasks."""
        result = {str(pid): [] for pid in parent_ids}
        if not self.configured or not parent_ids:
            return result

        jql = f"parent in ({','.join(str(pid) for pid in parent_ids)})"
        for raw in self.run_jql(jql, ["parent"]):
            parent = (raw.get("fields") or {}).get("parent") or {}
            parent_id = str(parent.get("id", ""))
            if parent_id in result:
                result[parent_id].append(str(raw.get("id")))
        return result

    def get_dev_status_prs(self, issue_id: str) -> list:
        """Pull requests listed on an issue's development panel."""
        if not self.configured:
            return []

        data = self._request(
            "/rest/dev-status/latest/issue/detail",
            params={"issueId": issue_id, "applicationType": "GitHub", "dataType": "pullrequest"}
        )
        prs = []
        for detail in data.get("detail", []) or []:
            for pr in detail.get("pullRequests", []) or []:
                url = pr.get("url")
                if url:
                    prs.append(LinkedPR(url=url, id=pr.get("id"), title=pr.get("name")))
        return prs

    def get_issues_updated(self, assignee: str, date_from: str, date_to: str,
                           jira_account_id: str = None, project_key: str = None) -> list:
        """Issues with activity in a window, for one person.

        Tries, in order, until one returns anything: status changed during the
        window, updated during the window, created during the window. Without
        an account id the assignee is matched loosely by name.
        """
        if not self.configured:
            return []

        if project_key:
            project_filter = f"project = {project_key}"
        elif self.config.jira_projects:
            project_filter = f"project in ({','.join(self.config.jira_projects)})"
        else:
            project_filter = ""
        assignee_filter = f'assignee in ("{jira_account_id}")' if jira_account_id else ""
        filters = [f for f in (project_filter, assignee_filter) if f]

        queries = [
            [f'status CHANGED DURING ("{date_from}", "{date_to}")'] + filters,
            [f'updated >= "{date_from}" AND updated <= "{date_to}"'] + filters,
            [f'created >= "{date_from}" AND created <= "{date_to}"'] + filters,
        ]

        raw_issues = []
        for parts in queries:
            try:
                raw_issues = self.run_jql(" AND ".join(parts), self._issue_fields())
            except (JiraError, requests.exceptions.RequestException) as e:
                logger.warning("Jira search failed for %r: %s", parts[0], e)
                raw_issues = []
            if raw_issues:
                break

        by_id = {}
        needle = (assignee or "").lower()
        for raw in raw_issues:
            issue = self.to_issue(raw)
            if not jira_account_id:
                name = issue.assignee or ((raw.get("fields") or {}).get("assignee") or {}).get("emailAddress") or ""
                if needle not in name.lower():
                    continue
            by_id[issue.id] = issue

        return list(by_id.values())
