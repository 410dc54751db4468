import os
import logging
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(dotenv_path=Path(__file__).parent / ".env")

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.exceptions import TimeTrackingError

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Crewhours API")

# --- Register routers ---
from app.routers.auth import router as auth_router
from app.routers.time_entries import router as time_entries_router
from app.routers.week_locks import router as week_locks_router
from app.routers.activities import router as activities_router
from app.routers.projects import router as projects_router
from app.routers.customers import router as customers_router
from app.routers.reports import router as reports_router
from app.routers.users import router as users_router
from app.routers.settings import router as settings_router
from app.routers.dashboard import router as dashboard_router

app.include_router(auth_router)
app.include_router(time_entries_router)
app.include_router(week_locks_router)
app.include_router(activities_router)
app.include_router(projects_router)
app.include_router(customers_router)
app.include_router(reports_router)
app.include_router(users_router)
app.include_router(settings_router)
app.include_router(dashboard_router)

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in CORS_ORIGINS],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(TimeTrackingError)
async def time_tracking_error_handler(request: Request, exc: TimeTrackingError):
    if exc.status_code >= 409:
        logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})

@app.get("/api/health")
def health():
    return {"status": "ok"}
