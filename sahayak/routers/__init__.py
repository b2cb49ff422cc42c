# Routers package
from . import auth_router
from . import applications_router
from . import webhooks_router

__all__ = [
    "auth_router",
    "applications_router",
    "webhooks_router",
]
