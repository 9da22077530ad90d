"""Route blueprints for the web application."""

from .protection import protection_bp
from .validation import validation_bp
from .retry import retry_bp
from .settings import settings_bp

__all__ = [
    "protection_bp",
    "validation_bp",
    "retry_bp",
    "settings_bp",
]
