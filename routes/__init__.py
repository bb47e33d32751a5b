"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.sync import router as sync_router

__all__ = [
    "sync_router",
]
