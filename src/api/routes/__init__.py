from src.api.routes.members import router as members_router
from src.api.routes.webhooks import router as webhooks_router

__all__ = [
    "members_router",
    "webhooks_router",
]
