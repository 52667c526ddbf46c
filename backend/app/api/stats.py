"""Individual contributor stats endpoint."""

from flask import Blueprint, current_app, jsonify, request

from services.dashboard import DashboardService
from services.github_client import GitHubError

bp = Blueprint("stats", __name__, url_prefix="/api/stats")


@bp.route("", methods=["GET"])
def get_stats():
    """PRs, tickets and lifecycle metrics for one person.

    Query params:
        - login: GitHub login
        - from, to: inclusive ISO dates (YYYY-MM-DD)
        - jiraAccountId: optional Jira account id
        - projectKey: optional Jira project key
    """
    login = request.args.get("login", "").strip()
    date_from = request.args.get("from", "").strip()
    date_to = request.args.get("to", "").strip()

    if not all([login, date_from, date_to]):
        return jsonify({"error": "Missing required params: login, from, to"}), 400

    service = DashboardService(current_app.config["DASHBOARD"])

    try:
        data = service.get_individual_stats(
            login, date_from, date_to,
            jira_account_id=request.args.get("jiraAccountId") or None,
            project_key=request.args.get("projectKey") or None,
        )
        return jsonify({"data": data})

    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except GitHubError as e:
        current_app.logger.error("GitHub search failed for %s: %s", login, e)
        return jsonify({"error": str(e)}), 500
    except Exception as e:
        current_app.logger.exception("Stats failed for %s", login)
        return jsonify({"error": f"Failed to compute stats: {str(e)}"}), 500
