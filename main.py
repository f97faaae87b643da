import logging
import time
import uuid
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from hydrolog.config.database import engine, Base
from hydrolog.config.log_config import setup_logging
from hydrolog.config.settings import settings, DEFAULT_SECRET_KEY
from hydrolog.features.auth.router import router as auth_router
from hydrolog.features.systems.router import router as systems_router
from hydrolog.features.measurements.router import router as measurements_router
from hydrolog.features.plants.router import router as plants_router
from hydrolog.features.admin.router import router as admin_router
from hydrolog.features.health.router import router as health_router
from hydrolog.models import plant, session, system, system_log, user, user_system  # noqa: F401 register tables
from hydrolog.utils.metrics import record_request

setup_logging()
logger = logging.getLogger("hydrolog")

if settings.is_production and settings.SECRET_KEY == DEFAULT_SECRET_KEY:
    logger.warning("Using the default SECRET_KEY in production, set a strong secret in the environment")

# Create Database Tables
Base.metadata.create_all(bind=engine)

app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["x-request-id"],
)

@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    start = time.perf_counter()
    response = await call_next(request)
    duration = time.perf_counter() - start

    response.headers["x-request-id"] = request_id
    response.headers["Server-Timing"] = f"total;dur={duration * 1000:.1f}"
    record_request(request.method, response.status_code, duration)
    logger.debug(
        "Request handled",
        extra={"context": {"method": request.method, "path": request.url.path, "status": response.status_code, "request_id": request_id}},
    )
    return response

# Measurements before systems: both live under /api/system
app.include_router(auth_router)
app.include_router(measurements_router)
app.include_router(systems_router)
app.include_router(plants_router)
app.include_router(admin_router)
app.include_router(health_router)

@app.get("/")
def read_root():
    return {"message": "HydroLog is running"}
