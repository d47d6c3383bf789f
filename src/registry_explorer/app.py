import logging
import os
from typing import Any, Optional

from flask import Flask, current_app, redirect, render_template, request, url_for

from . import __version__, image_browser
from .auth import (
    authenticate as check_credentials,
    hash_credentials,
    login_required,
    remove_auth_token,
    safe_redirect_target,
    set_auth_token,
)
from .exceptions import MalformedManifest, PaginationError, RequestError
from .manifest_resolver import ManifestResolver
from .models import ErrorManifest, ExplorerSettings, MultiArchManifest, NominalManifest
from .registry_client import RegistryClient

LOG = logging.getLogger("registry_explorer")

PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_STATIC_DIR = os.path.join(PACKAGE_DIR, "static")
INVALID_CREDENTIALS = "invalid_credentials"
LOGIN_ERRORS = {INVALID_CREDENTIALS: "Invalid username or password"}


def _settings() -> ExplorerSettings:
    return current_app.config["EXPLORER_SETTINGS"]


def _client() -> RegistryClient:
    return current_app.extensions["registry_explorer"]["client"]


def _resolver() -> ManifestResolver:
    return current_app.extensions["registry_explorer"]["resolver"]


def pull_reference_base(registry_host: str) -> str:
    """Strip the scheme from the registry URL so it can prefix image references."""
    return registry_host.split("://", 1)[-1].rstrip("/")


def home() -> Any:
    """List repositories with their tag counts."""
    try:
        images = image_browser.get_images(_client(), _settings().request_threads)
    except RequestError:
        LOG.exception("Could not retrieve images")
        return render_template("home.html", images=None, error="Could not retrieve images")
    return render_template("home.html", images=images, error=None)


def image_index(image: str) -> Any:
    """List one page of tags of an image."""
    try:
        tags = image_browser.get_image_page(
            _client(),
            _resolver(),
            image,
            page=request.args.get("page", type=int),
            size=request.args.get("size", type=int),
            default_size=_settings().page_size,
        )
    except (RequestError, MalformedManifest, PaginationError) as exc:
        LOG.error("Could not list tags of '{0}': {1}".format(image, exc))
        return redirect(url_for("home"))
    return render_template(
        "image.html",
        image=image,
        tags=tags,
        reference_base=pull_reference_base(_settings().registry_host),
    )


def delete_all_image_tags(image: str) -> Any:
    """Delete every tag of an image."""
    try:
        image_browser.delete_all_image_tags(
            _client(), _resolver(), image, threads=_settings().request_threads
        )
    except (RequestError, MalformedManifest) as exc:
        LOG.error("Could not delete tags of '{0}': {1}".format(image, exc))
    return redirect(url_for("home"))


def delete_tag(image: str, digest: str) -> Any:
    """Delete one manifest of an image."""
    try:
        image_browser.delete_tag(_client(), image, digest)
    except RequestError as exc:
        LOG.error("Could not delete '{0}@{1}': {2}".format(image, digest, exc))
    return redirect(url_for("image_index", image=image))


def login_index() -> Any:
    """Show the login form."""
    error = request.args.get("error")
    return render_template(
        "login.html",
        error=LOGIN_ERRORS.get(error) if error else None,
        redirect_to=request.args.get("from"),
        username=request.args.get("username"),
    )


def authenticate() -> Any:
    """Check submitted credentials and start a session."""
    username = request.form.get("username", "")
    password = request.form.get("password", "")
    redirect_to = request.args.get("from")

    if check_credentials(_settings(), username, password):
        LOG.info("User '{0}' logged in".format(username))
        response = redirect(safe_redirect_target(redirect_to))
        return set_auth_token(response, hash_credentials(username, password))

    LOG.warning("Failed login attempt for user '{0}'".format(username))
    query = {"error": INVALID_CREDENTIALS, "username": username}
    if redirect_to:
        query["from"] = redirect_to
    return redirect(url_for("login_index", **query))


def logout() -> Any:
    """End the session."""
    return remove_auth_token(redirect(url_for("home")))


def health() -> Any:
    return "OK"


def favicon() -> Any:
    return redirect(url_for("static", filename="favicon.ico"), code=308)


def _no_store(response: Any) -> Any:
    response.headers["Cache-Control"] = "no-store"
    return response


def create_app(settings: ExplorerSettings, client: Optional[RegistryClient] = None) -> Flask:
    """
    Create the web application.

    Args:
        settings (ExplorerSettings):
            Explorer configuration.
        client (RegistryClient):
            Registry client. Created from settings when not given.
    Returns (Flask):
        Configured application.
    """
    app = Flask(
        __name__,
        static_folder=settings.static_dir or DEFAULT_STATIC_DIR,
        static_url_path="/static",
    )
    if client is None:
        client = RegistryClient.from_settings(settings)
    app.config["EXPLORER_SETTINGS"] = settings
    app.extensions["registry_explorer"] = {
        "client": client,
        "resolver": ManifestResolver(client),
    }

    app.jinja_env.globals["app_version"] = "v{0}".format(__version__)
    app.jinja_env.tests["nominal"] = lambda m: isinstance(m, NominalManifest)
    app.jinja_env.tests["multi_arch"] = lambda m: isinstance(m, MultiArchManifest)
    app.jinja_env.tests["registry_error"] = lambda m: isinstance(m, ErrorManifest)
    app.after_request(_no_store)

    app.add_url_rule("/", "home", login_required(home))
    app.add_url_rule("/health", "health", health)
    app.add_url_rule("/favicon.ico", "favicon", favicon)
    app.add_url_rule("/auth/login", "login_index", login_index)
    app.add_url_rule("/auth/authenticate", "authenticate", authenticate, methods=["POST"])
    app.add_url_rule("/auth/logout", "logout", logout, methods=["POST"])
    app.add_url_rule("/<path:image>", "image_index", login_required(image_index))
    app.add_url_rule(
        "/<path:image>/delete",
        "delete_all_image_tags",
        login_required(delete_all_image_tags),
        methods=["POST"],
    )
    app.add_url_rule(
        "/<path:image>/delete/<digest>",
        "delete_tag",
        login_required(delete_tag),
        methods=["POST"],
    )
    return app
