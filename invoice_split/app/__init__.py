"""Application factory and app-wide configuration."""

from __future__ import annotations

from typing import Optional

from flask import Flask
from flask_cors import CORS

from invoice_split.app.api.routes import EXTENSION_KEY, api_bp
from invoice_split.config import Settings, load_settings
from invoice_split.core.cache import CalculationCache
from invoice_split.logging_setup import configure_logging, get_logger

_logger = get_logger("invoice_split.app")


def create_app(settings: Optional[Settings] = None) -> Flask:
    """Build the Flask app instance."""
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    app = Flask(__name__)

    CORS(
        app,
        resources={r"/api/*": {"origins": settings.cors_origins}},
        supports_credentials=True,
    )

    app.extensions[EXTENSION_KEY] = {
        "settings": settings,
        "cache": (
            CalculationCache(max_size=settings.cache_size, ttl_seconds=settings.cache_ttl_seconds)
            if settings.cache_enabled
            else None
        ),
    }

    app.register_blueprint(api_bp, url_prefix="/api")
    _logger.info(
        "Created app (cache %s, origins %s)",
        "enabled" if settings.cache_enabled else "disabled",
        ", ".join(settings.cors_origins),
    )
    return app
