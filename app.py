"""
App assembly entry point.

Re-exports the FastAPI `app` from `storefront.api.main` for ASGI servers
(``uvicorn app:app``).
"""

from storefront.api.main import app  # noqa: F401
