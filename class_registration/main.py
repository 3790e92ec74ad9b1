from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import time

from .core.config import settings
from .core.database import engine, AsyncSessionLocal, close_db_connections
from .core.error_handlers import registration_exception_handler, general_exception_handler
from .core.exceptions import RegistrationError
from .core.locks import get_lock_backend
from .core.logging import setup_logging
from .services.audit_service import DatabaseAuditSink
from .services.registration_engine import RegistrationEngine

from .routers import health, classes, enrollments, payments

setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name} ({settings.environment})")

    lock_backend = get_lock_backend()
    app.state.db_engine = engine
    app.state.engine = RegistrationEngine(
        session_factory=AsyncSessionLocal,
        lock_backend=lock_backend,
        audit_sink=DatabaseAuditSink(AsyncSessionLocal),
    )
    logger.info(f"Registration engine ready with {settings.lock_backend} locks")

    yield

    logger.info(f"Shutting down {settings.app_name}")
    await lock_backend.close()
    await close_db_connections()
    logger.info("Shutdown complete")

app = FastAPI(
    title="Class Registration API",
    description="Class scheduling, seat capacity, waitlists and blocklists",
    version=settings.app_version,
    lifespan=lifespan
)

@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    logger.info(f"{request.method} {request.url.path} - {process_time:.3f}s")
    return response

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,
)

app.add_exception_handler(RegistrationError, registration_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

app.include_router(health.router)
app.include_router(classes.router)
app.include_router(enrollments.router)
app.include_router(payments.router)

@app.get("/")
async def root():
    return {
        "message": "Class Registration API",
        "version": settings.app_version,
        "status": "active"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
