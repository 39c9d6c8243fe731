import logging
import time
from datetime import datetime, timezone

from .config import get_settings

settings = get_settings()

# Log configuration (before other imports)
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402

from .database import create_tables  # noqa: E402
from .errors import install_exception_handlers  # noqa: E402
from .routers import auth, tasks, users  # noqa: E402

logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()

# Create FastAPI app
app = FastAPI(
    title="Task Manager API",
    description="Task management REST API with per-user task visibility",
    version="1.0.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_exception_handlers(app)

# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(tasks.router, prefix="/api/tasks", tags=["tasks"])
app.include_router(users.router, prefix="/api/users", tags=["users"])


# Check configuration and create tables on startup
@app.on_event("startup")
def on_startup():
    if not get_settings().jwt_secret:
        raise RuntimeError("JWT_SECRET is not set; refusing to start")
    create_tables()
    logger.info("Database tables ready")


@app.get("/")
def read_root():
    return {"message": "Task Manager API", "docs": "/docs"}


@app.get("/health")
def health_check():
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
    }
