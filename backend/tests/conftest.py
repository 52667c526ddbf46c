"""Shared fixtures for dashboard tests."""

import os
import sys

import pytest
from datetime import datetime, timezone

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from services.config import DashboardConfig, FieldMap  # noqa: E402
from services.models import Issue, PullRequest  # noqa: E402


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def dashboard_config():
    """Fully configured dashboard settings."""
    return DashboardConfig(
        github_token="gh-test-token",
        github_org="acme",
        jira_base_url="https://test.atlassian.net",
        jira_email="test@example.com",
        jira_token="test-token-123",
        jira_projects=("PROJ",),
        jira_board_id=42,
        fields=FieldMap(),
        auth_secret="test-secret",
        accounts={"alice": "s3cret"},
        pr_stats_concurrency=4,
        request_timeout=5,
    )


@pytest.fixture
def empty_config():
    """Settings with no GitHub or Jira credentials."""
    return DashboardConfig(auth_secret="test-secret", accounts={"alice": "s3cret"})


@pytest.fixture
def app(dashboard_config):
    """Create Flask test app."""
    from app import create_app
    app = create_app(dashboard_config)
    app.config['TESTING'] = True
    app.config['STREAM_TICK_SECONDS'] = 0.01
    return app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()


@pytest.fixture
def auth_client(client):
    """Test client holding a valid session cookie."""
    response = client.post("/api/auth/login", json={"username": "alice", "password": "s3cret"})
    assert response.status_code == 200
    return client


@pytest.fixture
def make_issue():
    """Factory for Issue objects with sensible defaults."""
    def _make(key="PROJ-1", points=None, **kwargs):
        kwargs.setdefault("id", str(10000 + int(key.rsplit("-", 1)[-1])))
        kwargs.setdefault("summary", f"Work on {key}")
        kwargs.setdefault("url", f"https://test.atlassian.net/browse/{key}")
        kwargs.setdefault("status", "To Do")
        return Issue(key=key, story_points=points, **kwargs)
    return _make


@pytest.fixture
def make_pr():
    """Factory for PullRequest objects with sensible defaults."""
    def _make(number=1, created_at=None, **kwargs):
        kwargs.setdefault("id", f"PR_{number}")
        kwargs.setdefault("title", f"Change {number}")
        kwargs.setdefault("url", f"https://github.com/acme/api/pull/{number}")
        kwargs.setdefault("repo_owner", "acme")
        kwargs.setdefault("repo_name", "api")
        return PullRequest(
            number=number,
            created_at=created_at or utc(2024, 1, 2, 10, 0),
            **kwargs
        )
    return _make


def _status_change(created, to_status, from_status=None, author=None):
    """One changelog history entry moving the status."""
    history = {
        "created": created,
        "items": [{"field": "status", "fromString": from_status, "toString": to_status}]
    }
    if author:
        history["author"] = author
    return history


def _sprint_change(created, from_ids, to_ids):
    """One changelog history entry changing the Sprint field."""
    return {
        "created": created,
        "items": [{"field": "Sprint", "from": from_ids, "to": to_ids}]
    }


@pytest.fixture
def status_change():
    return _status_change


@pytest.fixture
def sprint_change():
    return _sprint_change


@pytest.fixture
def proj1_histories():
    """To Do -> In Progress -> Review -> Done, a day apart."""
    return [
        _status_change("2024-01-01T09:00:00.000+0000", "To Do"),
        _status_change("2024-01-02T09:00:00.000+0000", "In Progress", "To Do",
                       author={"accountId": "acc-1", "displayName": "Alice"}),
        _status_change("2024-01-03T09:00:00.000+0000", "Review", "In Progress"),
        _status_change("2024-01-04T09:00:00.000+0000", "Done", "Review"),
    ]


@pytest.fixture
def sample_sprint_meta():
    """Sample sprint metadata as returned by the Jira client."""
    return {
        "id": 100,
        "name": "Sprint 1",
        "state": "active",
        "startDate": "2024-03-01T00:00:00.000Z",
        "endDate": "2024-03-14T00:00:00.000Z",
    }


@pytest.fixture
def sample_raw_issue():
    """Raw Jira issue payload with custom fields set."""
    return {
        "id": "10001",
        "key": "PROJ-1",
        "fields": {
            "summary": "Implement feature X",
            "assignee": {"displayName": "Alice", "accountId": "acc-1"},
            "status": {"name": "In Progress"},
            "created": "2024-01-02T10:00:00.000+0000",
            "updated": "2024-01-05T10:00:00.000+0000",
            "resolutiondate": None,
            "issuetype": {"name": "Story"},
            "parent": {
                "id": "9000",
                "key": "PROJ-50",
                "fields": {"summary": "Feature X", "issuetype": {"name": "Epic"}}
            },
            "description": {
                "type": "doc",
                "content": [
                    {"type": "paragraph", "content": [{"type": "text", "text": "First line"}]},
                    {"type": "paragraph", "content": [{"type": "text", "text": "Second line"}]},
                ]
            },
            "customfield_10026": 5.0,
            "customfield_11370": [{"displayName": "Quinn"}],
        }
    }
