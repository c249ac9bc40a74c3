"""ASGI entry point for the gateway.

Mounts the CoinGate callback route and a ping endpoint under /api. The
same app is served by uvicorn locally and by Mangum on Lambda.
"""

import os
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from mangum import Mangum

from coinshop import __version__
from coinshop.utils.logging import configure_logging
from coinshop_api.middleware.correlation import CorrelationIdMiddleware
from coinshop_api.routes.webhooks import router as webhooks_router

configure_logging()

app = FastAPI(
    title="Coinshop Gateway API",
    description="Receives CoinGate callbacks and reconciles shop orders",
    version=__version__,
)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(webhooks_router, prefix="/api")


@app.get("/api/ping")
async def ping() -> dict[str, Any]:
    """Liveness probe; touches no AWS resources."""
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "coinshop-gateway",
        "environment": os.environ.get("ENVIRONMENT", "dev"),
    }


# API Gateway -> Lambda
handler = Mangum(app, lifespan="off")


def run_server(host: str = "0.0.0.0", port: int = 8080, reload: bool = True) -> None:
    """Serve the app with uvicorn for local development.

    Args:
        host: Bind address
        port: Bind port
        reload: Restart on source changes under api/src and coinshop/src
    """
    import uvicorn

    if not reload:
        uvicorn.run(app, host=host, port=port)
        return

    # reload needs an import string, not the app object
    uvicorn.run(
        "coinshop_api.main:app",
        host=host,
        port=port,
        reload=True,
        reload_dirs=["api/src", "coinshop/src"],
    )


if __name__ == "__main__":
    run_server()
