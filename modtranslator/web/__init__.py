"""Web application package for ModTranslator."""

from typing import Any, Dict, Optional

from flask import Flask

from modtranslator.config import initialize_app


def create_app(overrides: Optional[Dict[str, Any]] = None) -> Flask:
    """Application factory for the web API."""
    initialize_app()

    from .app import build_app  # Import here to avoid circular imports

    return build_app(overrides)


__all__ = ["create_app"]
