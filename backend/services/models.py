"""Request-scoped value objects for pull requests and Jira issues."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from services.dates import isoformat


@dataclass
class PullRequest:
    """A GitHub pull request as fetched for one request."""

    id: str
    number: int
    title: str
    url: str
    created_at: datetime
    state: str = "OPEN"
    is_draft: bool = False
    merged_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    additions: int = 0
    deletions: int = 0
    repo_owner: str = ""
    repo_name: str = ""
    head_ref: str = ""
    first_review_at: Optional[datetime] = None
    ready_for_review_at: Optional[datetime] = None
    jira_keys: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "title": self.title,
            "url": self.url,
            "headRefName": self.head_ref,
            "createdAt": isoformat(self.created_at),
            "mergedAt": isoformat(self.merged_at),
            "closedAt": isoformat(self.closed_at),
            "state": self.state,
            "isDraft": self.is_draft,
            "additions": self.additions,
            "deletions": self.deletions,
            "repository": {"owner": self.repo_owner, "name": self.repo_name},
            "firstReviewAt": isoformat(self.first_review_at),
            "readyForReviewAt": isoformat(self.ready_for_review_at),
            "jiraKeys": list(self.jira_keys),
        }


@dataclass
class LinkedPR:
    """A pull request surfaced by an issue's development panel."""

    url: str
    id: Optional[str] = None
    title: Optional[str] = None
    source: str = "dev-status"

    def to_dict(self) -> dict:
        return {"id": self.id, "url": self.url, "title": self.title, "source": self.source}


@dataclass
class Issue:
    """A Jira issue, annotated in place by the phase and linking passes."""

    id: str
    key: str
    summary: str = ""
    url: str = ""
    assignee: Optional[str] = None
    resolution_date: Optional[datetime] = None
    story_points: Optional[float] = None
    status: Optional[str] = None
    created: Optional[datetime] = None
    updated: Optional[datetime] = None
    issue_type: Optional[str] = None
    parent_key: Optional[str] = None
    epic_key: Optional[str] = None
    description: str = ""
    qa_assignees: list = field(default_factory=list)

    # first entry into each status group
    todo_at: Optional[datetime] = None
    in_progress_at: Optional[datetime] = None
    review_at: Optional[datetime] = None
    complete_at: Optional[datetime] = None
    in_progress_to_review_hours: Optional[float] = None
    review_to_complete_hours: Optional[float] = None
    qa_assigned_at: Optional[datetime] = None
    touched_in_window: bool = False

    linked_prs: list = field(default_factory=list)
    pr_additions: int = 0
    pr_deletions: int = 0
    pr_review_comments: int = 0

    @property
    def points(self) -> float:
        return self.story_points if self.story_points is not None else 0.0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "key": self.key,
            "summary": self.summary,
            "url": self.url,
            "assignee": self.assignee,
            "resolutiondate": isoformat(self.resolution_date),
            "storyPoints": self.story_points,
            "status": self.status,
            "created": isoformat(self.created),
            "updated": isoformat(self.updated),
            "issueType": self.issue_type,
            "parentKey": self.parent_key,
            "epicKey": self.epic_key,
            "description": self.description,
            "qaAssignees": list(self.qa_assignees),
            "todoAt": isoformat(self.todo_at),
            "inProgressAt": isoformat(self.in_progress_at),
            "reviewAt": isoformat(self.review_at),
            "completeAt": isoformat(self.complete_at),
            "inProgressToReviewHours": self.in_progress_to_review_hours,
            "reviewToCompleteHours": self.review_to_complete_hours,
            "qaAssignedAt": isoformat(self.qa_assigned_at),
            "touchedInWindow": self.touched_in_window,
            "linkedPRs": [pr.to_dict() for pr in self.linked_prs],
            "prAdditions": self.pr_additions,
            "prDeletions": self.pr_deletions,
            "prReviewComments": self.pr_review_comments,
        }
