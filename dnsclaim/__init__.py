"""
Flask application factory for the DNS claim service.

Creates and configures the Flask application, registers the blueprints,
initialises SQLAlchemy and builds the shared verification components
(one RateLimiter and one ClaimVerifier per application).
"""

from __future__ import annotations

import logging
import sys

from flask import Flask
from flask_sqlalchemy import SQLAlchemy

from dnsclaim.config import Config

# ---------------------------------------------------------------------------
# Extension instances (created here, initialised in create_app)
# ---------------------------------------------------------------------------
db: SQLAlchemy = SQLAlchemy()


def _configure_logging(debug: bool) -> None:
    """Configure root logger for the application.

    Logging is sent to stdout so WSGI hosts capture it without file
    handlers.

    Format: timestamp  level  logger-name  message

    Args:
        debug: When True, sets the root level to DEBUG.  Otherwise INFO.
    """
    level = logging.DEBUG if debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)-8s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%SZ",
        )
    )

    root_logger = logging.getLogger()
    # Avoid adding duplicate handlers if create_app() is called multiple times
    # (e.g. in tests).
    if not root_logger.handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(level)


def _build_components(app: Flask) -> None:
    """Create the resolver, rate limiter, allocator and verifier for *app*."""
    from dnsclaim.claims.allocator import SubdomainAllocator
    from dnsclaim.claims.resolver import DnsTxtResolver, ResolverSettings
    from dnsclaim.claims.verifier import ClaimVerifier
    from dnsclaim.utils.rate_limit import RateLimiter

    resolver = app.config.get("CLAIM_RESOLVER") or DnsTxtResolver(ResolverSettings.from_config(app.config))
    rate_limiter = RateLimiter(
        max_requests=app.config["RATE_LIMIT_MAX"],
        window_seconds=app.config["RATE_LIMIT_WINDOW_SECONDS"],
    )
    allocator = SubdomainAllocator(resolver, max_claims=app.config["MAX_CLAIMS_PER_SUBDOMAIN"])

    app.extensions["dnsclaim.rate_limiter"] = rate_limiter
    app.extensions["dnsclaim.verifier"] = ClaimVerifier(
        resolver,
        rate_limiter=rate_limiter,
        max_clock_skew=app.config["MAX_CLOCK_SKEW_SECONDS"],
    )
    app.extensions["dnsclaim.allocator"] = allocator


def create_app(config_object: object = Config) -> Flask:
    """Application factory.

    Args:
        config_object: Configuration class or object to load settings from.

    Returns:
        A fully configured Flask application instance.
    """
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_object is not Config:
        app.config.from_object(config_object)

    _configure_logging(debug=app.debug)

    # ------------------------------------------------------------------
    # Initialise extensions
    # ------------------------------------------------------------------
    db.init_app(app)

    from dnsclaim import models  # noqa: F401

    with app.app_context():
        db.create_all()

    _build_components(app)

    # ------------------------------------------------------------------
    # Register blueprints
    # ------------------------------------------------------------------
    from dnsclaim.api import bp as api_bp
    from dnsclaim.signer import bp as signer_bp

    app.register_blueprint(api_bp)
    app.register_blueprint(signer_bp)

    # ------------------------------------------------------------------
    # Response headers
    # Applied to every response from this application.
    # ------------------------------------------------------------------
    from flask import Response

    @app.after_request
    def set_response_headers(response: Response) -> Response:
        """Attach CORS and security-related HTTP response headers.

        The browser signer page is served from another origin (a local
        file or dev server), so claim submission needs permissive CORS.
        """
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    return app
