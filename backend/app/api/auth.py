"""Login and logout endpoints."""

from flask import Blueprint, current_app, jsonify, request

from services.session import COOKIE_MAX_AGE, COOKIE_NAME, sign_token, verify_credentials

bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@bp.route("/login", methods=["POST"])
def login():
    """Check a username/password pair and set the session cookie.

    Expects JSON body with:
        - username
        - password
    """
    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""

    if not username or not password:
        return jsonify({"error": "Missing required fields: username, password"}), 400

    config = current_app.config["DASHBOARD"]
    if not verify_credentials(config.accounts, username, password):
        current_app.logger.info("Failed login for %s", username)
        return jsonify({"error": "Invalid credentials"}), 401

    response = jsonify({"data": {"username": username}})
    response.set_cookie(
        COOKIE_NAME,
        sign_token(config.auth_secret, username),
        max_age=COOKIE_MAX_AGE,
        httponly=True,
        samesite="Lax",
        secure=request.is_secure,
        path="/",
    )
    return response


@bp.route("/logout", methods=["POST"])
def logout():
    response = jsonify({"data": {"ok": True}})
    response.delete_cookie(COOKIE_NAME, path="/")
    return response
