"""People and project pickers."""

from flask import Blueprint, current_app, jsonify
import requests

from services.github_client import GitHubClient
from services.jira_client import JiraClient

bp = Blueprint("directory", __name__, url_prefix="/api")


@bp.route("/users", methods=["GET"])
def list_users():
    """GitHub org members and Jira users; either side may fail on its own."""
    config = current_app.config["DASHBOARD"]
    warnings = []

    try:
        github_users = GitHubClient(config).get_org_members()
    except requests.exceptions.RequestException as e:
        current_app.logger.warning("GitHub member list failed: %s", e)
        warnings.append(f"GitHub users unavailable: {str(e)}")
        github_users = []

    try:
        jira_users = JiraClient(config).get_users()
    except requests.exceptions.RequestException as e:
        current_app.logger.warning("Jira user list failed: %s", e)
        warnings.append(f"Jira users unavailable: {str(e)}")
        jira_users = []

    return jsonify({
        "data": {"githubUsers": github_users, "jiraUsers": jira_users},
        "warnings": warnings
    })


@bp.route("/projects", methods=["GET"])
def list_projects():
    config = current_app.config["DASHBOARD"]

    try:
        projects = JiraClient(config).get_projects()
    except requests.exceptions.RequestException as e:
        current_app.logger.warning("Jira project list failed: %s", e)
        return jsonify({"data": [], "warnings": [f"Jira projects unavailable: {str(e)}"]})

    return jsonify({"data": projects, "warnings": []})
