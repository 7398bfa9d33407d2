"""FastAPI router modules for the form reconciliation service."""

from .health import router as health_router
from .forms import router as forms_router

__all__ = [
    "health_router",
    "forms_router",
]
