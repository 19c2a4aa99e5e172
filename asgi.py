"""
asgi.py -- Application assembly for the Registry API.

Run with:  uvicorn asgi:app --reload

api/main.py builds the app; this module is the stable import path servers
point at, so deployments never reference api/ internals directly.
"""

from api.main import app

__all__ = ["app"]
