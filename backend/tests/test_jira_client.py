"""Tests for the Jira client."""

import pytest
from unittest.mock import Mock, patch
from datetime import datetime, timezone
import requests
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from services.jira_client import JiraClient, JiraError, adf_to_text


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def json_response(payload, status_code=200):
    response = Mock(status_code=status_code)
    response.json.return_value = payload
    return response


class TestJiraClientInit:
    """Test client construction."""

    def test_base_url_reduced_to_origin(self, dashboard_config):
        from dataclasses import replace
        config = replace(dashboard_config, jira_base_url="https://test.atlassian.net/jira/software/")
        assert JiraClient(config).base == "https://test.atlassian.net"

    def test_unconfigured_returns_empty(self, empty_config):
        client = JiraClient(empty_config)

        with patch("services.jira_client.requests.get") as mock_get:
            assert client.get_sprints(1) == []
            assert client.get_sprint_meta(1) is None
            assert client.get_issue_changelog("PROJ-1") == (None, [])
            assert client.get_issues_updated("alice", "2024-01-01", "2024-01-31") == []
            mock_get.assert_not_called()


class TestToIssue:
    """Test raw issue mapping."""

    def test_maps_fields(self, dashboard_config, sample_raw_issue):
        issue = JiraClient(dashboard_config).to_issue(sample_raw_issue)

        assert issue.key == "PROJ-1"
        assert issue.id == "10001"
        assert issue.story_points == 5.0
        assert issue.assignee == "Alice"
        assert issue.epic_key == "PROJ-50"
        assert issue.parent_key == "PROJ-50"
        assert issue.qa_assignees == ["Quinn"]
        assert issue.description == "First line\nSecond line"
        assert issue.url == "https://test.atlassian.net/browse/PROJ-1"
        assert issue.created == utc(2024, 1, 2, 10)

    def test_epic_link_field_wins_over_parent(self, dashboard_config, sample_raw_issue):
        sample_raw_issue["fields"]["customfield_10014"] = "PROJ-77"
        issue = JiraClient(dashboard_config).to_issue(sample_raw_issue)
        assert issue.epic_key == "PROJ-77"

    def test_non_epic_parent_is_not_epic(self, dashboard_config, sample_raw_issue):
        sample_raw_issue["fields"]["parent"]["fields"]["issuetype"]["name"] = "Story"
        issue = JiraClient(dashboard_config).to_issue(sample_raw_issue)
        assert issue.epic_key is None


class TestAdfToText:
    """Test rich-text flattening."""

    def test_plain_string(self):
        assert adf_to_text("hello") == "hello"

    def test_hard_break(self):
        node = {"type": "doc", "content": [{"type": "paragraph", "content": [
            {"type": "text", "text": "a"}, {"type": "hardBreak"}, {"type": "text", "text": "b"}
        ]}]}
        assert adf_to_text(node) == "a\nb"

    def test_none(self):
        assert adf_to_text(None) == ""


class TestRunJql:
    """Test enhanced search pagination."""

    @patch("services.jira_client.requests.post")
    def test_follows_next_page_token(self, mock_post, dashboard_config):
        mock_post.side_effect = [
            json_response({"issues": [{"id": "1"}], "isLast": False, "nextPageToken": "abc"}),
            json_response({"issues": [{"id": "2"}], "isLast": True}),
        ]

        issues = JiraClient(dashboard_config).run_jql("project = PROJ", ["summary"])

        assert [i["id"] for i in issues] == ["1", "2"]
        assert mock_post.call_args_list[1].kwargs["json"]["nextPageToken"] == "abc"
        assert mock_post.call_args_list[0].args[0] == "https://test.atlassian.net/rest/api/3/search/jql"

    @patch("services.jira_client.requests.post")
    def test_error_includes_jira_messages(self, mock_post, dashboard_config):
        mock_post.return_value = json_response({"errorMessages": ["Field 'sprint' does not exist"]}, 400)

        with pytest.raises(JiraError, match="Field 'sprint' does not exist"):
            JiraClient(dashboard_config).run_jql("sprint = 1", ["summary"])


class TestSprintEndpoints:
    """Test agile endpoints."""

    @patch("services.jira_client.requests.get")
    def test_sprint_meta_not_found(self, mock_get, dashboard_config):
        response = Mock(status_code=404)
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(response=response)
        mock_get.return_value = response

        assert JiraClient(dashboard_config).get_sprint_meta(999) is None

    @patch("services.jira_client.requests.get")
    def test_sprint_meta_other_errors_propagate(self, mock_get, dashboard_config):
        response = Mock(status_code=500)
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(response=response)
        mock_get.return_value = response

        with pytest.raises(requests.exceptions.HTTPError):
            JiraClient(dashboard_config).get_sprint_meta(1)

    @patch("services.jira_client.requests.get")
    def test_get_sprints_pages(self, mock_get, dashboard_config):
        first = [{"id": i, "name": f"S{i}", "state": "closed"} for i in range(50)]
        mock_get.side_effect = [
            json_response({"values": first, "isLast": False}),
            json_response({"values": [{"id": 50, "name": "S50", "state": "active"}], "isLast": True}),
        ]

        sprints = JiraClient(dashboard_config).get_sprints(42)

        assert len(sprints) == 51
        assert mock_get.call_args_list[1].kwargs["params"]["startAt"] == 50

    @patch("services.jira_client.requests.get")
    def test_sprint_issues_mapped(self, mock_get, dashboard_config, sample_raw_issue):
        mock_get.return_value = json_response({"issues": [sample_raw_issue]})

        issues = JiraClient(dashboard_config).get_sprint_issues(100)

        assert [i.key for i in issues] == ["PROJ-1"]
        assert "customfield_10026" in mock_get.call_args.kwargs["params"]["fields"]


class TestChangelog:
    """Test per-issue changelog fetch."""

    @patch("services.jira_client.requests.get")
    def test_sorted_oldest_first_and_cached(self, mock_get, dashboard_config):
        mock_get.return_value = json_response({
            "fields": {"created": "2024-01-01T00:00:00.000+0000"},
            "changelog": {"histories": [
                {"created": "2024-01-03T00:00:00.000+0000", "items": []},
                {"created": "2024-01-02T00:00:00.000+0000", "items": []},
            ]}
        })
        client = JiraClient(dashboard_config)

        created, histories = client.get_issue_changelog("PROJ-1")
        client.get_issue_changelog("PROJ-1")

        assert created == utc(2024, 1, 1)
        assert [h["created"][:10] for h in histories] == ["2024-01-02", "2024-01-03"]
        assert mock_get.call_count == 1


class TestLinks:
    """Test subtask and dev-status lookups."""

    def test_subtask_ids_grouped_by_parent(self, dashboard_config):
        client = JiraClient(dashboard_config)
        raw = [
            {"id": "201", "fields": {"parent": {"id": "101"}}},
            {"id": "202", "fields": {"parent": {"id": "101"}}},
        ]

        with patch.object(client, "run_jql", return_value=raw) as mock_jql:
            result = client.get_subtask_ids(["101", "102"])

        assert result == {"101": ["201", "202"], "102": []}
        assert mock_jql.call_args.args[0] == "parent in (101,102)"

    def test_dev_status_prs(self, dashboard_config):
        client = JiraClient(dashboard_config)
        payload = {"detail": [{"pullRequests": [
            {"id": "#1", "name": "PROJ-1 fix", "url": "https://github.com/acme/api/pull/1"},
            {"id": "#2", "name": "no url"},
        ]}]}

        with patch.object(client, "_request", return_value=payload) as mock_request:
            prs = client.get_dev_status_prs("10001")

        assert [(p.url, p.title) for p in prs] == [("https://github.com/acme/api/pull/1", "PROJ-1 fix")]
        assert mock_request.call_args.kwargs["params"]["applicationType"] == "GitHub"


class TestIssuesUpdated:
    """Test the per-person issue search fallbacks."""

    def test_falls_through_to_updated_query(self, dashboard_config, sample_raw_issue):
        client = JiraClient(dashboard_config)

        with patch.object(client, "run_jql", side_effect=[[], [sample_raw_issue, sample_raw_issue]]) as mock_jql:
            issues = client.get_issues_updated("alice", "2024-01-01", "2024-01-31", jira_account_id="acc-1")

        assert [i.key for i in issues] == ["PROJ-1"]
        second_jql = mock_jql.call_args_list[1].args[0]
        assert second_jql.startswith('updated >= "2024-01-01"')
        assert 'assignee in ("acc-1")' in second_jql
        assert "project in (PROJ)" in second_jql

    def test_failing_query_moves_on(self, dashboard_config, sample_raw_issue):
        client = JiraClient(dashboard_config)

        with patch.object(client, "run_jql", side_effect=[JiraError("bad jql"), [sample_raw_issue]]):
            issues = client.get_issues_updated("alice", "2024-01-01", "2024-01-31", project_key="OPS")

        assert len(issues) == 1

    def test_name_match_without_account_id(self, dashboard_config, sample_raw_issue):
        client = JiraClient(dashboard_config)

        with patch.object(client, "run_jql", return_value=[sample_raw_issue]):
            assert client.get_issues_updated("ali", "2024-01-01", "2024-01-31") != []
            assert client.get_issues_updated("bob", "2024-01-01", "2024-01-31") == []


class TestDirectory:
    """Test project and user listing."""

    @patch("services.jira_client.requests.get")
    def test_projects_fall_back_to_legacy_endpoint(self, mock_get, dashboard_config):
        mock_get.side_effect = [
            json_response({}, 404),
            json_response([{"key": "OPS", "name": "operations"}, {"key": "PROJ", "name": "Apollo"}]),
        ]

        projects = JiraClient(dashboard_config).get_projects()

        assert [p["key"] for p in projects] == ["PROJ", "OPS"]

    @patch("services.jira_client.requests.get")
    def test_users_retry_with_query(self, mock_get, dashboard_config):
        mock_get.side_effect = [
            json_response({}, 400),
            json_response([{"accountId": "acc-1", "displayName": "Alice"}]),
        ]

        users = JiraClient(dashboard_config).get_users()

        assert users[0]["accountId"] == "acc-1"
        assert mock_get.call_args_list[1].kwargs["params"]["query"] == "a"
