import secrets
from flask import g, request, jsonify, current_app

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"
UNSAFE_METHODS = ("POST", "PUT", "PATCH", "DELETE")


def issue_csrf_token(resp):
    resp.set_cookie(
        CSRF_COOKIE,
        secrets.token_urlsafe(32),
        httponly=False,  # read by the browser client and echoed in the header
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        path="/",
    )
    return resp


def require_csrf():
    cookie_token = request.cookies.get(CSRF_COOKIE) or ""
    header_token = request.headers.get(CSRF_HEADER) or ""
    if cookie_token and header_token and secrets.compare_digest(cookie_token, header_token):
        return None
    return jsonify(success=False, error="CSRF validation failed", error_kind="csrf_failed"), 403


def csrf_protect(exempt_paths):
    """Double-submit check for state changes made with a session cookie.

    Anonymous requests and the paths in ``exempt_paths`` pass through.
    """
    if request.method not in UNSAFE_METHODS or request.path in exempt_paths:
        return None
    if getattr(g, "user", None) is None:
        return None
    return require_csrf()
