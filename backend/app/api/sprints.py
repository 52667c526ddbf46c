"""Sprint listing endpoint."""

from flask import Blueprint, current_app, jsonify, request
import requests

from services.jira_client import JiraClient

bp = Blueprint("sprints", __name__, url_prefix="/api/sprints")


@bp.route("", methods=["GET"])
def list_sprints():
    """Sprints on a board, newest first.

    Query params:
        - boardId: optional, defaults to JIRA_BOARD_ID
    """
    config = current_app.config["DASHBOARD"]
    board_id = request.args.get("boardId", type=int) or config.jira_board_id

    if not board_id:
        return jsonify({"data": [], "warnings": ["No Jira board configured (set JIRA_BOARD_ID)"]})

    try:
        sprints = JiraClient(config).get_sprints(board_id)
    except requests.exceptions.RequestException as e:
        current_app.logger.warning("Sprint list failed for board %s: %s", board_id, e)
        return jsonify({"data": [], "warnings": [f"Failed to load sprints: {str(e)}"]})

    # Sort by end date descending, then start date
    sprints.sort(key=lambda s: (s.get("endDate") or "", s.get("startDate") or ""), reverse=True)

    return jsonify({"data": sprints, "warnings": []})
