"""FastAPI application entry point."""
import os

# Force UTC before anything caches timezone information; "today's quests" are UTC days
os.environ['TZ'] = 'UTC'

import time

if hasattr(time, "tzset"):
    time.tzset()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from contextlib import asynccontextmanager

from questledger.config import get_settings
from questledger.version import APP_VERSION
from questledger.routers import health, notifications, quests, stats
from questledger.services import get_event_bus, get_notification_service
from questledger.utils import durable_cache

# Create logs directory if it doesn't exist
logs_dir = Path("logs")
logs_dir.mkdir(exist_ok=True)

log_file = logs_dir / "questledger.log"
sql_log_file = logs_dir / "questledger_sql.log"
api_log_file = logs_dir / "questledger_api.log"

# General logs (1MB max size, keep 5 backup files)
rotating_handler = RotatingFileHandler(log_file, maxBytes=1024 * 1024, backupCount=5, encoding='utf-8')
rotating_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

# SQL logs (1MB max size, keep 5 backup files)
sql_rotating_handler = RotatingFileHandler(sql_log_file, maxBytes=1024 * 1024, backupCount=5, encoding='utf-8')
sql_rotating_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

# API request logs (2MB max size, keep 15 backup files)
api_rotating_handler = RotatingFileHandler(api_log_file, maxBytes=2 * 1024 * 1024, backupCount=15, encoding='utf-8')
api_rotating_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))

# Force=True overrides any existing configuration (e.g., from uvicorn)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
        rotating_handler,
    ],
    force=True,
)

logger = logging.getLogger(__name__)

# Dedicated API request logger
api_logger = logging.getLogger("questledger.api")
api_logger.handlers.clear()
api_logger.addHandler(api_rotating_handler)
api_logger.setLevel(logging.INFO)
api_logger.propagate = False

# SQLAlchemy engine logger writes to its own file
sqlalchemy_logger = logging.getLogger("sqlalchemy.engine.Engine")
sqlalchemy_logger.handlers.clear()
sqlalchemy_logger.addHandler(sql_rotating_handler)
sqlalchemy_logger.setLevel(logging.INFO)
sqlalchemy_logger.propagate = False


class SQLTransactionFilter(logging.Filter):
    def filter(self, record):
        if record.levelno == logging.INFO and hasattr(record, 'getMessage'):
            message = record.getMessage()

            # Transaction bookkeeping is noise
            if any(keyword in message for keyword in ['ROLLBACK', 'BEGIN', 'COMMIT', 'generated in']):
                return False

            # One line per statement
            if any([kw in message for kw in ['SELECT', 'DELETE', 'INSERT', 'UPDATE']]):
                record.msg = ' '.join(message.split())
                record.args = ()

        return True


sqlalchemy_logger.addFilter(SQLTransactionFilter())

settings = get_settings()


@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    """Manage application startup and shutdown tasks."""
    logger.info("=" * 60)
    logger.info("Quest Ledger API Starting")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Database: {settings.database_url.split('@')[-1] if '@' in settings.database_url else 'SQLite'}")

    cache_backend = await durable_cache.connect()
    logger.info(f"Durable cache: {cache_backend}")
    logger.info(f"Single-flight locks: {'Enabled' if settings.enforce_single_flight else 'Disabled'}")
    logger.info("=" * 60)

    event_bus = get_event_bus()
    notification_service = get_notification_service()
    event_bus.subscribe(notification_service.handle_event)

    try:
        yield
    finally:
        event_bus.unsubscribe(notification_service.handle_event)
        try:
            await durable_cache.close()
        except Exception as e:
            logger.error(f"Error closing durable cache: {e}")
        logger.info("Quest Ledger API Shutting Down... Goodbye!")


app = FastAPI(
    title="Quest Ledger API",
    description="Daily quest lifecycle and reward ledger",
    version=APP_VERSION,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors with user-friendly messages."""
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")

    errors = []
    for error in exc.errors():
        loc = error.get("loc", [])
        field_path = " -> ".join(str(x) for x in loc[1:]) if len(loc) > 1 else "unknown field"
        errors.append({
            "field": field_path,
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "unknown"),
        })

    return JSONResponse(
        status_code=422,
        content={
            "detail": "Request validation failed",
            "errors": errors,
        }
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request and its outcome to the dedicated API log."""
    start_time = time.time()

    client_ip = request.client.host if request.client else "unknown"
    method = request.method
    path = request.url.path
    player_id = request.headers.get("x-player-id", "-")

    request_id = f"{method}:{path}:{int(start_time * 1000) % 100000}"
    api_logger.info(f">> {request_id} | START | {method} {path} | player: {player_id} | IP: {client_ip}")

    try:
        response = await call_next(request)
    except Exception as e:
        api_logger.error(
            f"<< {request_id} | EXCEPTION | {method} {path} | "
            f"Error: {str(e)[:100]} | Time: {time.time() - start_time:.3f}s"
        )
        raise

    api_logger.info(
        f"<< {request_id} | COMPLETE | {method} {path} | "
        f"Status: {response.status_code} | Time: {time.time() - start_time:.3f}s"
    )
    return response


app.include_router(health.router, tags=["health"])
app.include_router(quests.router, prefix="/quests", tags=["quests"])
app.include_router(stats.router, tags=["stats"])
app.include_router(notifications.router, tags=["notifications"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Quest Ledger API",
        "version": APP_VERSION,
        "environment": settings.environment,
        "docs": "/docs",
    }
