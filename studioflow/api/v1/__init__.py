"""Version 1 API package."""

from studioflow.api.v1.router import api_router, get_api_router

__all__ = ["api_router", "get_api_router"]
