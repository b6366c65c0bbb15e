"""
Root-level ASGI entrypoint for deployments that start from the repository root:

    uvicorn app.main:app --host 0.0.0.0 --port 8000

The portal itself lives in `portal.app.main`; nothing is configured here.
"""

from portal.app.main import app

__all__ = ["app"]
