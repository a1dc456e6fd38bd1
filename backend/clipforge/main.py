"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clipforge.config import Settings, settings, ensure_directories
from clipforge.db.database import Database
from clipforge.errors import ClipForgeError
from clipforge.api.routes import router
from clipforge.pipeline.detector import KillTemplates
from clipforge.pipeline.orchestrator import JobOrchestrator
from clipforge.services.cleanup_service import sweep_orphaned_workspaces
from clipforge.services.storage_service import create_storage
from clipforge.services.transcription_service import GroqTranscriber
from clipforge.workers.job_runner import JobRunner

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def create_app(config: Settings = settings) -> FastAPI:
    """Build the application around a settings object."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        # Startup
        logger.info(f"Starting {config.app_name}...")
        ensure_directories(config)

        database = Database(config.database_url, echo=config.debug)
        await database.init_schema()
        logger.info("Database initialized")

        removed = sweep_orphaned_workspaces(
            config.temp_root, config.workspace_prefix, config.orphan_workspace_max_age_seconds
        )
        if removed:
            logger.info(f"Removed {removed} orphaned workspaces")

        templates = KillTemplates.load(config.templates_dir)
        storage = create_storage(config)
        transcriber = GroqTranscriber.from_settings(config) if config.groq_api_key else None
        if transcriber is None:
            logger.warning("GROQ_API_KEY not set; captions will be skipped")

        app.state.settings = config
        app.state.database = database
        app.state.templates = templates
        app.state.storage = storage
        app.state.orchestrator = JobOrchestrator(database, storage, templates, transcriber, config)
        app.state.job_runner = JobRunner()
        logger.info(f"Storage backend: {config.storage_backend}")

        yield

        # Shutdown
        logger.info(f"Shutting down {config.app_name}...")
        await app.state.job_runner.shutdown()
        await database.close()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=config.app_name,
        description="Kill detection and highlight clip generation for gameplay videos",
        version="1.0.0",
        lifespan=lifespan
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            config.frontend_url,
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ClipForgeError)
    async def clipforge_error_handler(request: Request, exc: ClipForgeError):
        """Map pipeline errors to JSON bodies without internal details."""
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # Include API routes
    app.include_router(router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "app": config.app_name,
            "version": "1.0.0",
            "api": "/api",
            "docs": "/docs"
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "clipforge.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
