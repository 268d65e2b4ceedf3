"""Proxy and static file server.

Forwards the vault stats endpoints that browsers cannot call directly and
serves the built dashboard bundle with a client-side routing fallback.

Usage:
    uvicorn fdv_dashboard.server:create_app --factory --port 3001
"""

import logging
from datetime import datetime, timezone
from pathlib import Path

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from . import __version__
from .core.config import AppConfig, get_config
from .core.exceptions import DashboardError, DataSourceError
from .providers.tvl.vault_stats import VaultStatsProvider

logger = logging.getLogger(__name__)


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message})


def _resolve_static(static_dir: Path, path: str) -> Path | None:
    """Return the file under ``static_dir`` for a request path, if one exists."""
    root = static_dir.resolve()
    candidate = (root / path).resolve()
    if not candidate.is_relative_to(root) or not candidate.is_file():
        return None
    return candidate


def create_app(
    config: AppConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    Build the server application.

    Args:
        config: Runtime configuration (global config if not provided)
        transport: Optional httpx transport for upstream requests

    Returns:
        FastAPI application
    """
    config = config or get_config()

    app = FastAPI(
        title="FDV Comparison Dashboard",
        description="Stats proxy and static host for the FDV comparison dashboard",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    providers = {
        name: VaultStatsProvider(name, url, transport=transport)
        for name, url in config.stats_upstreams.items()
    }

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=exc)
        message = "Something went wrong" if config.is_production else str(exc)
        return _error(500, "Internal server error", message)

    @app.get("/api/health")
    async def health() -> dict:
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "environment": config.environment,
        }

    @app.get("/api/{upstream}/stats")
    async def upstream_stats(upstream: str):
        provider = providers.get(upstream)
        if provider is None:
            return _error(404, "Not found", f"Unknown upstream: {upstream}")

        try:
            return await provider.get_stats()
        except DashboardError as e:
            logger.error(f"Error fetching {provider.display_name} API: {e.message}")
            message = e.reason if isinstance(e, DataSourceError) else e.message
            return _error(500, f"Failed to fetch {provider.display_name} API data", message)

    @app.api_route("/api/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
    async def api_not_found(path: str) -> JSONResponse:
        return _error(404, "Not found", f"No API route /api/{path}")

    @app.get("/{path:path}")
    async def static_files(path: str):
        static_dir = config.static_dir
        index = static_dir / "index.html"
        if not index.is_file():
            return _error(404, "Not found", f"No dashboard build found in {static_dir}")

        file_path = _resolve_static(static_dir, path) if path else None
        return FileResponse(file_path or index)

    return app


def run(host: str = "0.0.0.0", port: int | None = None, config: AppConfig | None = None) -> None:
    """Run the server with uvicorn."""
    config = config or get_config()
    port = port or config.port
    logger.info(f"Server running on port {port} ({config.environment})")
    uvicorn.run(create_app(config), host=host, port=port)
