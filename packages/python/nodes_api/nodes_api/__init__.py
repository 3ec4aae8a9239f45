"""Expose the node FastAPI router and its error handlers."""

from .dependencies import get_store
from .errors import install_error_handlers
from .router import router

__all__ = ["router", "get_store", "install_error_handlers"]
