"""
App assembly entry point.

Re-exports the FastAPI `app` from `core.api.main` so servers can load `app:app`.
"""

from core.api.main import app  # noqa: F401
