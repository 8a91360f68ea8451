"""FastAPI application factory."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dvmux import __version__
from dvmux.api.middleware import dvmux_error_handler
from dvmux.api.routes import jobs, tools
from dvmux.models.errors import DvmuxError


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="dvmux",
        description="Dolby Vision Profile 5 MKV to dvh1 MP4 conversion jobs",
        version=__version__,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Error handlers
    app.add_exception_handler(DvmuxError, dvmux_error_handler)

    # Routes
    app.include_router(tools.router)
    app.include_router(jobs.router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    return app


app = create_app()
