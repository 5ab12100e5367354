from flask import current_app, jsonify, request
from flask_login import login_user, logout_user

from linkpulse.auth import auth_bp
from linkpulse.extensions import db
from linkpulse.models import ApiToken, User, utcnow
from linkpulse.services.security import (
    bearer_token_from_request,
    find_active_token,
    get_authenticated_api_user,
)

SUPPORTED_PROVIDERS = {"password"}


@auth_bp.route("/register", methods=["POST"])
def register():
    payload = request.get_json(silent=True) or {}
    username = (payload.get("username") or "").strip()
    password = payload.get("password") or ""
    if not username or not password:
        return jsonify({"error": "username and password are required"}), 400
    if User.query.filter_by(username=username).first():
        return jsonify({"error": "username already exists"}), 409

    user = User(username=username, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return jsonify({"status": "created", "user": user.as_identity()}), 201


@auth_bp.route("/session", methods=["POST"])
def sign_in():
    payload = request.get_json(silent=True) or {}
    provider = (payload.get("provider") or "password").strip().lower()
    if provider not in SUPPORTED_PROVIDERS:
        return jsonify({"error": f"unsupported provider: {provider}"}), 400

    username = (payload.get("username") or "").strip()
    password = payload.get("password") or ""
    user = User.query.filter_by(username=username).first()
    if not user or not user.is_active or not user.check_password(password):
        current_app.logger.info("Rejected sign-in for %r", username)
        return jsonify({"error": "invalid credentials"}), 401

    token, token_hash = ApiToken.issue_token()
    token_name = (payload.get("token_name") or "LinkPulse session").strip()
    db.session.add(ApiToken(user_id=user.id, name=token_name, token_hash=token_hash))
    db.session.commit()
    login_user(user)
    return jsonify({"token": token, "user": user.as_identity()})


@auth_bp.route("/session", methods=["GET"])
def current_session():
    user = get_authenticated_api_user()
    return jsonify({"user": user.as_identity() if user else None})


@auth_bp.route("/session", methods=["DELETE"])
def sign_out():
    token = bearer_token_from_request()
    if token:
        token_row = find_active_token(token)
        if token_row:
            token_row.revoked_at = utcnow()
            db.session.commit()
    logout_user()
    return jsonify({"status": "signed_out"})
