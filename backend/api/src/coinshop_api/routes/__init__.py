"""API routes package.

- webhooks: processor payment notifications

All routers are registered in main.py with /api prefix.
"""

from coinshop_api.routes.webhooks import router as webhooks_router

__all__ = ["webhooks_router"]
