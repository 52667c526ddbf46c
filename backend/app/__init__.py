"""Flask application factory."""

from flask import Flask, jsonify, redirect, request
from flask_cors import CORS

from services.config import DashboardConfig
from services.session import COOKIE_NAME, verify_token

PUBLIC_PATHS = {"/", "/health", "/api/auth/login", "/api/auth/logout"}


def get_dashboard_config(app) -> DashboardConfig:
    return app.config["DASHBOARD"]


def register_auth_gate(app):
    """Reject requests without a valid session cookie."""

    @app.before_request
    def require_session():
        if request.method == "OPTIONS" or request.path in PUBLIC_PATHS:
            return None

        config = get_dashboard_config(app)
        if verify_token(config.auth_secret, request.cookies.get(COOKIE_NAME)):
            return None

        if request.path.startswith("/api/"):
            return jsonify({"error": "Unauthorized"}), 401
        return redirect(f"/?next={request.path}")


def create_app(config: DashboardConfig = None):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config["DASHBOARD"] = config or DashboardConfig.from_env()
    app.config.setdefault("STREAM_TICK_SECONDS", 0.7)

    dashboard = get_dashboard_config(app)
    if not dashboard.github_configured:
        app.logger.warning("GITHUB_TOKEN not set, pull request data disabled")
    if not dashboard.jira_configured:
        app.logger.warning("Jira credentials not set, ticket data disabled")
    if not dashboard.accounts:
        app.logger.warning("USER_ACCOUNTS is empty, nobody can log in")

    # Enable CORS for frontend
    CORS(app, supports_credentials=True, resources={
        r"/api/*": {
            "origins": ["http://localhost:5173", "http://127.0.0.1:5173"],
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Content-Type"]
        }
    })

    register_auth_gate(app)

    # Register blueprints
    from app.api import auth, directory, sprint_stats, sprints, stats
    app.register_blueprint(auth.bp)
    app.register_blueprint(stats.bp)
    app.register_blueprint(sprint_stats.bp)
    app.register_blueprint(sprints.bp)
    app.register_blueprint(directory.bp)

    # Health check endpoint
    @app.route("/health")
    def health():
        return {"status": "ok"}

    return app
