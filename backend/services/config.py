"""Dashboard configuration loaded once from the environment."""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional


def _split_list(raw: str) -> tuple:
    return tuple(s.strip() for s in (raw or "").split(",") if s.strip())


def parse_accounts(raw: str) -> dict:
    """Parse ``user:pass,user2:pass2`` into a username -> password map.

    Entries without a colon, or with an empty user or password, are ignored.
    Passwords may contain colons; only the first one separates the pair.
    """
    accounts = {}
    for pair in _split_list(raw):
        idx = pair.find(":")
        if idx <= 0:
            continue
        user = pair[:idx].strip()
        password = pair[idx + 1:].strip()
        if user and password:
            accounts[user] = password
    return accounts


def _to_int(raw: Optional[str], default: Optional[int]) -> Optional[int]:
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# changelog display names, tried when an item's fieldId does not match
FIELD_NAMES = {
    "story_points": "Story Points",
    "qa_assignee": "QA Assignee",
    "epic_link": "Epic Link",
    "sprint": "Sprint",
}


@dataclass(frozen=True)
class FieldMap:
    """Jira custom field ids, keyed by what the dashboard uses them for."""

    story_points: str = "customfield_10026"
    qa_assignee: str = "customfield_11370"
    epic_link: str = "customfield_10014"
    sprint: str = "customfield_10020"

    def field_id(self, purpose: str) -> str:
        try:
            return getattr(self, purpose)
        except AttributeError:
            raise KeyError(f"Unknown Jira field purpose: {purpose}")

    def matches_item(self, item: dict, purpose: str) -> bool:
        """Whether a changelog item changed the field used for ``purpose``.

        Matches the configured id against ``fieldId`` first, then the
        field's display name against ``field``.
        """
        if item.get("fieldId") and item["fieldId"] == self.field_id(purpose):
            return True
        return (item.get("field") or "").lower() == FIELD_NAMES[purpose].lower()

    def ids(self) -> list:
        return [self.story_points, self.qa_assignee, self.epic_link]

    def read_number(self, fields: dict, purpose: str) -> Optional[float]:
        """Read a numeric custom field, returning None when absent or invalid."""
        value = (fields or {}).get(self.field_id(purpose))
        if value is None or isinstance(value, bool):
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    def read_users(self, fields: dict, purpose: str) -> list:
        """Read a user-picker field (single or multi) as a list of display names."""
        value = (fields or {}).get(self.field_id(purpose))
        if not value:
            return []
        if isinstance(value, dict):
            value = [value]
        names = []
        for user in value:
            if isinstance(user, dict):
                name = user.get("displayName") or user.get("emailAddress")
                if name:
                    names.append(name)
            elif isinstance(user, str) and user:
                names.append(user)
        return names

    def read_key(self, fields: dict, purpose: str) -> Optional[str]:
        """Read a field holding an issue key (plain string or an issue object)."""
        value = (fields or {}).get(self.field_id(purpose))
        if isinstance(value, dict):
            return value.get("key")
        if isinstance(value, str) and value:
            return value
        return None


@dataclass(frozen=True)
class DashboardConfig:
    """Immutable settings shared by every request."""

    github_token: str = ""
    github_org: str = ""
    github_repos: tuple = ()
    jira_base_url: str = ""
    jira_email: str = ""
    jira_token: str = ""
    jira_projects: tuple = ()
    jira_board_id: Optional[int] = None
    fields: FieldMap = field(default_factory=FieldMap)
    auth_secret: str = "dev-change-me"
    accounts: Mapping[str, str] = field(default_factory=dict)
    pr_stats_concurrency: int = 10
    request_timeout: int = 30

    @property
    def jira_configured(self) -> bool:
        return bool(self.jira_base_url and self.jira_email and self.jira_token)

    @property
    def github_configured(self) -> bool:
        return bool(self.github_token)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DashboardConfig":
        env = os.environ if environ is None else environ
        defaults = FieldMap()
        fields = FieldMap(
            story_points=env.get("JIRA_STORY_POINTS_FIELD") or defaults.story_points,
            qa_assignee=env.get("JIRA_QA_ASSIGNEE_FIELD") or defaults.qa_assignee,
            epic_link=env.get("JIRA_EPIC_LINK_FIELD") or defaults.epic_link,
            sprint=env.get("JIRA_SPRINT_FIELD") or defaults.sprint,
        )
        return cls(
            github_token=env.get("GITHUB_TOKEN", ""),
            github_org=env.get("GITHUB_ORG", ""),
            github_repos=_split_list(env.get("GITHUB_REPOS", "")),
            jira_base_url=env.get("JIRA_BASE_URL", ""),
            jira_email=env.get("JIRA_EMAIL", ""),
            jira_token=env.get("JIRA_API_TOKEN", ""),
            jira_projects=_split_list(env.get("JIRA_PROJECTS", "")),
            jira_board_id=_to_int(env.get("JIRA_BOARD_ID"), None),
            fields=fields,
            auth_secret=env.get("AUTH_SECRET") or "dev-change-me",
            accounts=parse_accounts(env.get("USER_ACCOUNTS", "")),
            pr_stats_concurrency=max(1, _to_int(env.get("PR_STATS_CONCURRENCY"), 10)),
            request_timeout=max(1, _to_int(env.get("REQUEST_TIMEOUT"), 30)),
        )
