"""
FastAPI feed service.

Provides the REST API over the feed engine:
- GET /api/feed - Merged, paginated feed
- GET /api/news/{source} - Single-source listing
- GET /api/comments/... - Comment trees
- GET /api/services/status - Upstream platform status
- GET /health - Service health check
"""

from src.api.app import create_app

__all__ = ["create_app"]
