# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/partsdesk/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- Login throttling to prevent brute-force attacks
- Account lockout after repeated failed attempts
- Session management with token-based auth
- /me returns the role scope and capability flags the UI gates on
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import login_throttle_service
from ..services.lifecycle_service import ORDER_STATUS_TRANSITIONS, STATUS_CHANGE_ROLES
from ..decorators import require_auth
from partsdesk.permissions import Actor, capability_flags, current_scope_label


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _next_status_map(actor) -> dict:
    """Allowed targets per status for this actor; empty lists if it may not change status."""
    may_change = actor.role in STATUS_CHANGE_ROLES
    return {
        status.value: sorted(target.value for target in targets) if may_change else []
        for status, targets in ORDER_STATUS_TRANSITIONS.items()
    }


def _session_payload(user, actor) -> dict:
    return {
        "user": user.to_dict(),
        "actor": actor.to_dict(),
        "scope_label": current_scope_label(actor),
        "capabilities": capability_flags(actor),
        "next_statuses": _next_status_map(actor),
    }


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.

    SECURITY:
    - Checks for account lockout before attempting authentication
    - Records failed attempts for throttling
    - Records successful logins for audit trail
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400
        if not isinstance(email, str) or not isinstance(password, str):
            return jsonify({"error": "email and password must be strings", "code": "VALIDATION_ERROR"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        is_locked, seconds_remaining = login_throttle_service.is_account_locked(email)
        if is_locked:
            return jsonify({
                "error": "Account temporarily locked due to too many failed login attempts",
                "locked": True,
                "retry_after_seconds": seconds_remaining,
            }), 429

        user = auth_service.authenticate(email, password)

        if not user:
            failed_count = login_throttle_service.record_failed_attempt(
                identifier=email,
                ip_address=ip_address,
                user_agent=user_agent,
                reason="Invalid credentials"
            )

            remaining = login_throttle_service.MAX_FAILED_ATTEMPTS - failed_count
            if remaining <= 0:
                return jsonify({
                    "error": "Account locked due to too many failed login attempts",
                    "locked": True,
                }), 429
            elif remaining <= 3:
                return jsonify({
                    "error": "Invalid credentials",
                    "warning": f"{remaining} attempts remaining before account lockout"
                }), 401
            return jsonify({"error": "Invalid credentials"}), 401

        try:
            session, token = session_service.create_session(
                user_id=user.id,
                user_agent=user_agent,
                ip_address=ip_address
            )
        except ValueError as e:
            return jsonify({"error": str(e)}), 403

        login_throttle_service.record_successful_login(
            user,
            ip_address=ip_address,
            user_agent=user_agent
        )

        payload = _session_payload(user, Actor.from_user(user))
        payload.update({
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful",
        })
        return jsonify(payload), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authorization header required"}), 401

        token = auth_header.split(" ", 1)[1]

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """
    Current user with role scope.

    Returns:
        - user, actor
        - scope_label: human-readable scope, e.g. "Company: 1"
        - capabilities: boolean flags (manage_users, create_orders, ...)
        - next_statuses: status -> allowed targets for this role
    """
    return jsonify(_session_payload(g.current_user, g.actor)), 200
