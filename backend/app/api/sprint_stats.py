"""Sprint stats endpoints, plain JSON and server-sent events."""

import json
import threading

from flask import Blueprint, Response, current_app, jsonify, request, stream_with_context

from services.dashboard import DashboardService, SprintNotFound

bp = Blueprint("sprint_stats", __name__, url_prefix="/api/sprint-stats")

PROGRESS_STAGES = [
    "Fetching sprint details",
    "Fetching sprint issues",
    "Analyzing ticket history",
    "Fetching PRs & LOC",
    "Computing KPIs & burn",
]
PROGRESS_STEP = 7
PROGRESS_CAP = 95


def get_sprint_id():
    """Parse the sprintId query param; None if missing or not an integer."""
    return request.args.get("sprintId", type=int)


def sse_event(event: str, data) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


@bp.route("", methods=["GET"])
def get_sprint_stats():
    """Burn-down, forecast and KPIs for a sprint.

    Query params:
        - sprintId: Jira sprint id
    """
    sprint_id = get_sprint_id()
    if sprint_id is None:
        return jsonify({"error": "Missing or invalid sprintId"}), 400

    service = DashboardService(current_app.config["DASHBOARD"])

    try:
        return jsonify({"data": service.get_sprint_stats(sprint_id)})
    except SprintNotFound as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        current_app.logger.exception("Sprint stats failed for %s", sprint_id)
        return jsonify({"error": f"Failed to compute sprint stats: {str(e)}"}), 500


@bp.route("/stream", methods=["GET"])
def stream_sprint_stats():
    """Same payload as the plain endpoint, preceded by progress events.

    Progress is estimated on a timer while the computation runs on a worker
    thread; it never passes 95% until the ``done`` event.
    """
    sprint_id = get_sprint_id()
    if sprint_id is None:
        return jsonify({"error": "Missing or invalid sprintId"}), 400

    service = DashboardService(current_app.config["DASHBOARD"])
    tick = current_app.config["STREAM_TICK_SECONDS"]
    logger = current_app.logger
    outcome = {}

    def compute():
        try:
            outcome["data"] = service.get_sprint_stats(sprint_id)
        except SprintNotFound as e:
            outcome["error"] = str(e)
        except Exception as e:
            logger.exception("Sprint stats stream failed for %s", sprint_id)
            outcome["error"] = f"Failed to compute sprint stats: {str(e)}"

    worker = threading.Thread(target=compute, daemon=True)

    def generate():
        worker.start()
        percent = 0
        yield sse_event("progress", {"percent": percent, "stage": PROGRESS_STAGES[0]})

        while True:
            worker.join(timeout=tick)
            if not worker.is_alive():
                break
            percent = min(PROGRESS_CAP, percent + PROGRESS_STEP)
            stage = PROGRESS_STAGES[min(len(PROGRESS_STAGES) - 1, percent * len(PROGRESS_STAGES) // 100)]
            yield sse_event("progress", {"percent": percent, "stage": stage})

        if "error" in outcome:
            yield sse_event("error", {"error": outcome["error"]})
        else:
            yield sse_event("done", {"percent": 100, "data": outcome["data"]})

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
