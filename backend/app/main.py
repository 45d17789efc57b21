from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from app.core.config import Settings, get_settings
from app.core.database import Base, build_engine, build_session_factory
from app.core.logging_config import configure_logging
from app.core.scheduler import start_scheduler, stop_scheduler
from app.api.error_handlers import register_exception_handlers
from app.api.routes import auth, currency, fun_facts
from app.services.fun_fact_service import FunFactGenerator
from app.services.fx_client import AlphaVantageClient

# Import models so their tables are registered on Base.metadata
from app.models import currency as currency_model, user as user_model  # noqa: F401


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage app lifecycle events.

    Startup: Start background scheduler for the refresh token purge
    Shutdown: Stop the scheduler and close upstream HTTP clients
    """
    settings: Settings = app.state.settings
    if settings.ENABLE_SCHEDULER:
        start_scheduler(app.state.session_factory)
    yield
    if settings.ENABLE_SCHEDULER:
        stop_scheduler()
    await app.state.fx_client.close()
    await app.state.fun_fact_generator.close()


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the application around one Settings object.

    Settings() raises when DATABASE_URL or SECRET_KEY is missing, so a
    misconfigured process stops here instead of failing per request.
    """
    settings = settings or get_settings()

    engine = build_engine(settings.DATABASE_URL)
    # Create tables if they don't exist
    # In production, use migrations (Alembic) instead of create_all
    Base.metadata.create_all(bind=engine)

    app = FastAPI(
        title="Currency Exchange API",
        description="Exchange rates, history and currency trivia with user accounts",
        version="1.0.0",
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.fx_client = AlphaVantageClient(
        api_key=settings.ALPHA_VANTAGE_API_KEY,
        base_url=settings.ALPHA_VANTAGE_BASE_URL,
        timeout=settings.FX_TIMEOUT_SECONDS,
    )
    app.state.fun_fact_generator = FunFactGenerator(
        api_key=settings.GEMINI_API_KEY,
        model=settings.GEMINI_MODEL,
        base_url=settings.GEMINI_BASE_URL,
        timeout=settings.GEMINI_TIMEOUT_SECONDS,
    )

    # CORS middleware - allows the frontend origin to call the API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,  # Allow cookies/auth headers
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # All routes are prefixed with /api for consistency
    app.include_router(auth.router, prefix="/api")
    app.include_router(currency.router, prefix="/api")
    app.include_router(fun_facts.router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint - API information"""
        return {"message": "Currency Exchange API", "version": "1.0.0"}

    @app.get("/health")
    async def health():
        """Health check endpoint - used by monitoring/deployment tools"""
        return {"status": "healthy"}

    return app


configure_logging(get_settings().LOG_LEVEL)
app = create_app()
