"""Admin authorization.

Sign-in itself happens at an external identity provider (typically an
authenticating proxy in front of the app). This module only answers "may
this request use the admin area?" and guards the admin views.
"""

from __future__ import annotations

from functools import wraps
from typing import Callable, Optional

from flask import current_app, jsonify, redirect, request, session, url_for

SESSION_KEY = "admin_email"


def allowed_emails() -> set[str]:
    return set(current_app.config.get("ALLOWED_ADMIN_EMAILS") or [])


def current_email() -> Optional[str]:
    return session.get(SESSION_KEY)


def _default_authorizer() -> bool:
    email = current_email()
    return bool(email) and email in allowed_emails()


def is_authorized() -> bool:
    """Return the authorization signal for the current request.

    ``ADMIN_AUTHORIZER`` in the app config, when set, replaces the built-in
    session check.
    """
    check: Optional[Callable[[], bool]] = current_app.config.get("ADMIN_AUTHORIZER")
    if check is not None:
        return bool(check())
    return _default_authorizer()


def sign_in_from_header() -> Optional[str]:
    """Copy the proxy-asserted email into the session if it is allowed.

    Returns the email on success, ``None`` otherwise.
    """
    header = current_app.config.get("ADMIN_EMAIL_HEADER")
    if not header:
        return None
    email = (request.headers.get(header) or "").strip()
    if not email:
        return None
    if email not in allowed_emails():
        current_app.logger.warning("Unauthorized login attempt: %s", email)
        return None
    session[SESSION_KEY] = email
    session.permanent = True
    current_app.logger.info("Admin signed in: %s", email)
    return email


def sign_out() -> None:
    session.pop(SESSION_KEY, None)


def admin_required(view):
    """Reject unauthorized requests.

    API endpoints get a 401 JSON body; pages redirect to the login page with
    the original path as ``callbackUrl``.
    """

    @wraps(view)
    def wrapped(*args, **kwargs):
        if is_authorized() or (sign_in_from_header() and is_authorized()):
            return view(*args, **kwargs)
        current_app.logger.warning("Unauthorized admin request: %s %s", request.method, request.path)
        if request.path.startswith("/api/"):
            return jsonify({"success": False, "error": "Authentication required"}), 401
        return redirect(url_for("main.admin_login", callbackUrl=request.path))

    return wrapped
