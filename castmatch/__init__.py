"""CastMatch: shared cast, crew and filmography lookups for selected titles or people.

The FastAPI application lives in :mod:`app.main`; the comparison session can be
embedded directly by constructing :class:`ComparisonSession` with any
key-value store and metadata provider.
"""

from __future__ import annotations

from app.config import Settings, get_settings
from app.main import app, create_app
from app.session import ComparisonSession

__version__ = "1.0.0"

__all__ = ["ComparisonSession", "Settings", "__version__", "app", "create_app", "get_settings"]
