"""API routers."""
from .checks import router as checks_router
from .samples import router as samples_router
from .tags import router as tags_router

__all__ = ["checks_router", "samples_router", "tags_router"]
