"""GitHub GraphQL/REST client."""

import logging
import re
from typing import Optional

import requests

from services.config import DashboardConfig
from services.dates import parse_datetime
from services.models import PullRequest

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
MAX_SEARCH_RESULTS = 600

PR_URL_RE = re.compile(r"github\.com/([^/]+)/([^/]+)/pull/(\d+)")

SEARCH_QUERY = """
query($q: String!, $first: Int!, $after: String) {
  search(query: $q, type: ISSUE, first: $first, after: $after) {
    pageInfo { hasNextPage endCursor }
    edges {
      node {
        ... on PullRequest {
          id
          number
          title
          url
          headRefName
          createdAt
          mergedAt
          closedAt
          state
          isDraft
          additions
          deletions
          repository { name owner { login } }
          reviews(first: 50) { nodes { submittedAt state } }
          timelineItems(itemTypes: READY_FOR_REVIEW_EVENT, first: 10) {
            nodes { __typename ... on ReadyForReviewEvent { createdAt } }
          }
        }
      }
    }
  }
}
"""


class GitHubError(Exception):
    """Raised when the GraphQL API reports errors."""


def parse_pr_url(url: str) -> Optional[tuple]:
    """Split a pull request URL into ``(owner, repo, number)``."""
    match = PR_URL_RE.search(url or "")
    if not match:
        return None
    owner, repo, number = match.groups()
    return owner, repo, int(number)


def _earliest(values) -> Optional[str]:
    present = [v for v in values if v]
    return min(present, key=lambda v: parse_datetime(v)) if present else None


class GitHubClient:
    """Client for the handful of GitHub calls the dashboard makes."""

    def __init__(self, config: DashboardConfig):
        self.config = config
        self.timeout = config.request_timeout

    @property
    def configured(self) -> bool:
        return self.config.github_configured

    def _headers(self, accept: str = "application/vnd.github+json") -> dict:
        return {
            "Authorization": f"Bearer {self.config.github_token}",
            "Accept": accept,
        }

    def _request(self, endpoint: str, params: Optional[dict] = None):
        response = requests.get(
            f"{API_URL}{endpoint}",
            headers=self._headers(),
            params=params,
            timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()

    def scope_filter(self) -> str:
        parts = []
        if self.config.github_org:
            parts.append(f"org:{self.config.github_org}")
        parts.extend(f"repo:{r}" for r in self.config.github_repos)
        return " ".join(parts)

    def search_prs(self, login: str, date_from: str, date_to: str) -> list:
        """Pull requests authored by ``login`` and created in the date range."""
        if not self.configured:
            return []

        q = f"is:pr author:{login} created:{date_from}..{date_to} {self.scope_filter()}".strip()
        out = []
        after = None

        while len(out) < MAX_SEARCH_RESULTS:
            response = requests.post(
                f"{API_URL}/graphql",
                headers=self._headers("application/json"),
                json={"query": SEARCH_QUERY, "variables": {"q": q, "first": 50, "after": after}},
                timeout=self.timeout
            )
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            if response.status_code != 200 or payload.get("errors"):
                raise GitHubError(
                    f"GitHub GraphQL error: {payload.get('errors') or response.status_code}"
                )

            search = (payload.get("data") or {}).get("search")
            if search is None:
                raise GitHubError("GitHub GraphQL error: response carried no search results")
            for edge in search.get("edges", []):
                node = edge.get("node") or {}
                if node.get("id"):
                    out.append(self._to_pull_request(node))

            page_info = search.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                break
            after = page_info.get("endCursor")

        return sorted(out, key=lambda pr: pr.created_at)

    @staticmethod
    def _to_pull_request(node: dict) -> PullRequest:
        reviews = (node.get("reviews") or {}).get("nodes", []) or []
        timeline = (node.get("timelineItems") or {}).get("nodes", []) or []
        repo = node.get("repository") or {}

        first_review = _earliest(r.get("submittedAt") for r in reviews)
        ready = _earliest(
            ev.get("createdAt") for ev in timeline
            if ev.get("__typename") == "ReadyForReviewEvent"
        )

        return PullRequest(
            id=node["id"],
            number=node.get("number", 0),
            title=node.get("title", ""),
            url=node.get("url", ""),
            head_ref=node.get("headRefName") or "",
            created_at=parse_datetime(node.get("createdAt")),
            merged_at=parse_datetime(node.get("mergedAt")),
            closed_at=parse_datetime(node.get("closedAt")),
            state=node.get("state", "OPEN"),
            is_draft=bool(node.get("isDraft")),
            additions=node.get("additions") or 0,
            deletions=node.get("deletions") or 0,
            repo_owner=(repo.get("owner") or {}).get("login", ""),
            repo_name=repo.get("name", ""),
            first_review_at=parse_datetime(first_review),
            ready_for_review_at=parse_datetime(ready),
        )

    def get_org_members(self) -> list:
        """Members of the configured org (token needs read:org)."""
        if not self.configured or not self.config.github_org:
            return []

        members = []
        page = 1
        while True:
            batch = self._request(
                f"/orgs/{self.config.github_org}/members",
                params={"per_page": 100, "page": page}
            )
            if not batch:
                break
            members.extend({"login": m["login"], "avatarUrl": m.get("avatar_url")} for m in batch)
            page += 1
        return members

    def get_pr_stats(self, owner: str, repo: str, number: int) -> dict:
        """Line counts and review comment count for one pull request."""
        if not self.configured:
            return {"additions": 0, "deletions": 0, "reviewComments": 0, "title": None}

        data = self._request(f"/repos/{owner}/{repo}/pulls/{number}")
        return {
            "additions": data.get("additions") or 0,
            "deletions": data.get("deletions") or 0,
            "reviewComments": data.get("review_comments") or 0,
            "title": data.get("title"),
        }
