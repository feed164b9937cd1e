"""
FastAPI Main Application
========================

HTTP API for the stackforge installer: scan, plan and install features in a
project directory on the server host.
"""

import os

from dotenv import load_dotenv

# Load environment variables from .env file if present
load_dotenv()

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from stackforge import __version__
from stackforge.config import load_settings

from .exceptions import register_exception_handlers
from .routers import features_router, projects_router, system_router
from .schemas import HealthResponse

# Create FastAPI app
app = FastAPI(
    title="stackforge",
    description="Feature-by-feature installer for Next.js SaaS projects",
    version=__version__,
)

# ============================================================================
# Exception Handlers
# ============================================================================

# {"error_code": "ERROR_TYPE", "message": "Human-readable message", "details": {...}}
register_exception_handlers(app)

# The API writes to the host filesystem, so remote access is opt-in
ALLOW_REMOTE = os.environ.get("STACKFORGE_ALLOW_REMOTE", "").lower() in ("1", "true", "yes")

if ALLOW_REMOTE:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ============================================================================
# Security Middleware
# ============================================================================

if not ALLOW_REMOTE:
    @app.middleware("http")
    async def require_localhost(request: Request, call_next):
        """Only allow requests from localhost (disabled when STACKFORGE_ALLOW_REMOTE=1)."""
        client_host = request.client.host if request.client else None

        if client_host not in ("127.0.0.1", "::1", "localhost", None):
            raise HTTPException(status_code=403, detail="Localhost access only")

        return await call_next(request)


# ============================================================================
# Include Routers
# ============================================================================

app.include_router(projects_router)
app.include_router(features_router)
app.include_router(system_router)


@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=__version__)


if __name__ == "__main__":
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "server.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
    )
