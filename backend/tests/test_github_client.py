"""Tests for the GitHub client."""

import pytest
from unittest.mock import Mock, patch
from datetime import datetime, timezone
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from services.github_client import GitHubClient, GitHubError, parse_pr_url


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def graphql_page(nodes, has_next=False, cursor=None):
    response = Mock(status_code=200)
    response.json.return_value = {"data": {"search": {
        "pageInfo": {"hasNextPage": has_next, "endCursor": cursor},
        "edges": [{"node": n} for n in nodes],
    }}}
    return response


def pr_node(number, created_at, **extra):
    node = {
        "id": f"PR_{number}",
        "number": number,
        "title": f"PROJ-{number} change",
        "url": f"https://github.com/acme/api/pull/{number}",
        "headRefName": f"feature/PROJ-{number}",
        "createdAt": created_at,
        "mergedAt": None,
        "closedAt": None,
        "state": "OPEN",
        "isDraft": False,
        "additions": 12,
        "deletions": 3,
        "repository": {"name": "api", "owner": {"login": "acme"}},
        "reviews": {"nodes": []},
        "timelineItems": {"nodes": []},
    }
    node.update(extra)
    return node


class TestParsePrUrl:
    """Test PR URL parsing."""

    def test_parses_owner_repo_number(self):
        assert parse_pr_url("https://github.com/acme/api/pull/42") == ("acme", "api", 42)

    def test_ignores_trailing_path(self):
        assert parse_pr_url("https://github.com/acme/api/pull/42/files") == ("acme", "api", 42)

    @pytest.mark.parametrize("url", ["", None, "https://github.com/acme/api/issues/1"])
    def test_rejects_non_pr_urls(self, url):
        assert parse_pr_url(url) is None


class TestSearchPrs:
    """Test PR search over GraphQL."""

    @patch("services.github_client.requests.post")
    def test_maps_and_sorts_nodes(self, mock_post, dashboard_config):
        mock_post.return_value = graphql_page([
            pr_node(2, "2024-01-05T10:00:00Z",
                    reviews={"nodes": [{"submittedAt": "2024-01-06T10:00:00Z"},
                                       {"submittedAt": "2024-01-05T12:00:00Z"}]}),
            pr_node(1, "2024-01-02T10:00:00Z", isDraft=True,
                    timelineItems={"nodes": [{"__typename": "ReadyForReviewEvent",
                                              "createdAt": "2024-01-03T10:00:00Z"}]}),
        ])

        prs = GitHubClient(dashboard_config).search_prs("alice", "2024-01-01", "2024-01-31")

        assert [pr.number for pr in prs] == [1, 2]
        assert prs[0].ready_for_review_at == utc(2024, 1, 3, 10)
        assert prs[0].is_draft is True
        assert prs[1].first_review_at == utc(2024, 1, 5, 12)
        assert prs[1].repo_owner == "acme"
        assert prs[1].head_ref == "feature/PROJ-2"

        query = mock_post.call_args.kwargs["json"]["variables"]["q"]
        assert query == "is:pr author:alice created:2024-01-01..2024-01-31 org:acme"

    @patch("services.github_client.requests.post")
    def test_follows_cursor(self, mock_post, dashboard_config):
        mock_post.side_effect = [
            graphql_page([pr_node(1, "2024-01-02T10:00:00Z")], has_next=True, cursor="c1"),
            graphql_page([pr_node(2, "2024-01-03T10:00:00Z")]),
        ]

        prs = GitHubClient(dashboard_config).search_prs("alice", "2024-01-01", "2024-01-31")

        assert len(prs) == 2
        assert mock_post.call_args_list[1].kwargs["json"]["variables"]["after"] == "c1"

    @patch("services.github_client.requests.post")
    def test_graphql_errors_raise(self, mock_post, dashboard_config):
        response = Mock(status_code=200)
        response.json.return_value = {"errors": [{"message": "Bad credentials"}]}
        mock_post.return_value = response

        with pytest.raises(GitHubError, match="Bad credentials"):
            GitHubClient(dashboard_config).search_prs("alice", "2024-01-01", "2024-01-31")

    @patch("services.github_client.requests.post")
    def test_null_data_raises(self, mock_post, dashboard_config):
        response = Mock(status_code=200)
        response.json.return_value = {"data": None}
        mock_post.return_value = response

        with pytest.raises(GitHubError, match="no search results"):
            GitHubClient(dashboard_config).search_prs("alice", "2024-01-01", "2024-01-31")

    def test_unconfigured_returns_empty(self, empty_config):
        with patch("services.github_client.requests.post") as mock_post:
            assert GitHubClient(empty_config).search_prs("alice", "2024-01-01", "2024-01-31") == []
            mock_post.assert_not_called()


class TestRestCalls:
    """Test REST lookups."""

    def test_pr_stats(self, dashboard_config):
        client = GitHubClient(dashboard_config)
        payload = {"additions": 40, "deletions": 9, "review_comments": 3, "title": "PROJ-1 fix"}

        with patch.object(client, "_request", return_value=payload) as mock_request:
            stats = client.get_pr_stats("acme", "api", 7)

        assert stats == {"additions": 40, "deletions": 9, "reviewComments": 3, "title": "PROJ-1 fix"}
        mock_request.assert_called_once_with("/repos/acme/api/pulls/7")

    def test_org_members_pages_until_empty(self, dashboard_config):
        client = GitHubClient(dashboard_config)
        pages = [[{"login": "alice", "avatar_url": "a.png"}], []]

        with patch.object(client, "_request", side_effect=pages):
            members = client.get_org_members()

        assert members == [{"login": "alice", "avatarUrl": "a.png"}]

    def test_scope_filter_includes_repos(self, dashboard_config):
        from dataclasses import replace
        config = replace(dashboard_config, github_repos=("acme/api", "acme/web"))
        assert GitHubClient(config).scope_filter() == "org:acme repo:acme/api repo:acme/web"
