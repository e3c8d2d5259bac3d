"""API controllers."""

from redyce.api.controller.jobs_controller import router as jobs_router
from redyce.api.controller.requirements_controller import router as requirements_router

__all__ = ["jobs_router", "requirements_router"]
