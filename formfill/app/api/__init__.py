"""HTTP routes for the FormFill gateway."""

from formfill.app.api.generate_fill import router as generate_fill_router
from formfill.app.api.health import router as health_router

__all__ = ["generate_fill_router", "health_router"]
