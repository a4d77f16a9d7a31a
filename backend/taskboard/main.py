"""
Taskboard - role-based task management API with dependency-gated completion.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI

from taskboard.database import get_session_context, init_db
from taskboard.exceptions import register_exception_handlers
from taskboard.logging_config import get_logger, setup_logging
from taskboard.routes import auth, dependencies, tasks
from taskboard.services.graph import audit_dependency_graph

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    logger.info("Starting Taskboard API...")
    await init_db()
    logger.info("Database initialized")
    async with get_session_context() as session:
        await audit_dependency_graph(session)
    yield
    logger.info("Shutting down Taskboard API...")


app = FastAPI(
    title="Taskboard",
    description="Role-based task management with dependency-gated completion",
    version="0.1.0",
    lifespan=lifespan,
)

# Register custom exception handlers
register_exception_handlers(app)

# Include routers
app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
app.include_router(dependencies.router, tags=["Dependencies"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "Task Management API",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
