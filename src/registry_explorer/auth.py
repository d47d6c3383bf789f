from datetime import datetime, timezone
import functools
import hashlib
import hmac
from typing import Any, Callable, Optional

from flask import Response, current_app, redirect, request, url_for

from .models import ExplorerSettings

AUTH_TOKEN_COOKIE_NAME = "auth_token"
COOKIE_EXPIRES = datetime(9999, 1, 1, tzinfo=timezone.utc)


def hash_credentials(username: str, password: str) -> str:
    """Compute the session token of a credential pair as uppercase hex SHA-256."""
    hasher = hashlib.sha256()
    hasher.update("{0}{1}".format(username, password).encode("utf-8"))
    return hasher.hexdigest().upper()


def authenticate(settings: ExplorerSettings, username: str, password: str) -> bool:
    """Check a login attempt against the configured explorer credentials."""
    username_ok = hmac.compare_digest(
        username.encode("utf-8"), settings.explorer_username.encode("utf-8")
    )
    password_ok = hmac.compare_digest(
        password.encode("utf-8"), settings.explorer_password.encode("utf-8")
    )
    return username_ok and password_ok


def is_valid_token(settings: ExplorerSettings, token: Optional[str]) -> bool:
    """Check a session token taken from the auth cookie."""
    if not token:
        return False
    expected = hash_credentials(settings.explorer_username, settings.explorer_password)
    return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


def safe_redirect_target(target: Optional[str]) -> str:
    """Return target if it's a path on this site, '/' otherwise."""
    if not target or not target.startswith("/") or target.startswith("//"):
        return "/"
    return target


def set_auth_token(response: Response, token: str) -> Response:
    """Store the session token in the auth cookie."""
    response.set_cookie(
        AUTH_TOKEN_COOKIE_NAME,
        token,
        expires=COOKIE_EXPIRES,
        path="/",
        secure=True,
        httponly=True,
        samesite="Strict",
    )
    return response


def remove_auth_token(response: Response) -> Response:
    """Remove the auth cookie."""
    response.delete_cookie(AUTH_TOKEN_COOKIE_NAME, path="/")
    return response


def login_required(view: Callable[..., Any]) -> Callable[..., Any]:
    """
    Let only requests with a valid auth cookie through to the view.

    Others are redirected to the login page, which sends them back afterwards. An invalid
    cookie is removed.
    """

    @functools.wraps(view)
    def wrapped_view(*args: Any, **kwargs: Any) -> Any:
        settings = current_app.config["EXPLORER_SETTINGS"]
        token = request.cookies.get(AUTH_TOKEN_COOKIE_NAME)
        if is_valid_token(settings, token):
            return view(*args, **kwargs)

        response = redirect(url_for("login_index", **{"from": request.path}))
        if token is not None:
            remove_auth_token(response)
        return response

    return wrapped_view
