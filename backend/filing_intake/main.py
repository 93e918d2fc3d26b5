from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from filing_intake.config import settings
from filing_intake.database import create_engine, create_session_maker
from filing_intake.logging_utils import configure_logging
from filing_intake.services.llm_client import LLMClient
from filing_intake.services.llm_extraction import LLMUsageTracker
from filing_intake.api import health, upload, documents, form_data, llm_usage

# Configure logging
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

# Database setup
if settings.database_url.startswith("sqlite") and ":memory:" not in settings.database_url:
    Path(settings.data_dir).mkdir(parents=True, exist_ok=True)
engine = create_engine(settings.database_url)
async_session_maker = create_session_maker(engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    # Note: Database tables are created via Alembic migrations
    # Run 'alembic upgrade head' to create/update tables
    app.state.llm_client = LLMClient()
    app.state.usage_tracker = LLMUsageTracker()
    logger.info(f"Application started (LLM enabled: {settings.llm_enabled}, provider: {app.state.llm_client.provider})")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    app.state.usage_tracker.clear()
    await engine.dispose()
    logger.info("Application shutdown")


# Create FastAPI app
app = FastAPI(
    title="Filing Intake API",
    description="Document text extraction, field extraction and form data normalization for divorce filings",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def generic_exception_handler(request, exc):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Include routers
app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(upload.router, prefix="/api", tags=["upload"])
app.include_router(documents.router, prefix="/api", tags=["documents"])
app.include_router(form_data.router, prefix="/api", tags=["form-data"])
app.include_router(llm_usage.router, prefix="/api", tags=["llm"])


@app.get("/")
async def root():
    return {"message": "Filing Intake API", "version": "1.0.0"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
