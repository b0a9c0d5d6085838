"""ABOUTME: Flask extensions initialization and configuration
ABOUTME: Sets up security headers, translations and the security core attached to the app"""

from flask import Flask, current_app, has_request_context, request
from flask_babel import Babel
from flask_talisman import Talisman

from charityguard.bootstrap import SecurityCore

CORE_EXTENSION_KEY = "charityguard"

# Initialize extensions
talisman = Talisman()
babel = Babel()


def init_extensions(app: Flask, core: SecurityCore) -> None:
    """Initialize Flask extensions with app instance."""

    # JSON API only, so no script or style sources are needed
    talisman.init_app(
        app,
        force_https=app.config.get("FORCE_HTTPS", False),  # False in development
        strict_transport_security=True,
        content_security_policy={"default-src": "'none'", "frame-ancestors": "'none'"},
    )

    babel.init_app(app, locale_selector=get_locale)

    app.extensions[CORE_EXTENSION_KEY] = core


def get_locale() -> str:
    """Get the best language match for the request."""
    supported_languages = current_app.config.get("LANGUAGES", ["en", "ar"])
    if not has_request_context():
        return str(supported_languages[0])

    requested_language = request.args.get("lang")
    if requested_language and requested_language in supported_languages:
        return requested_language

    return request.accept_languages.best_match(supported_languages) or supported_languages[0]


def get_core() -> SecurityCore:
    """The security core of the current app."""
    core = current_app.extensions[CORE_EXTENSION_KEY]
    assert isinstance(core, SecurityCore)
    return core
