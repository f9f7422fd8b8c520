from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from fastapi import Depends, FastAPI
from starlette.middleware.cors import CORSMiddleware

from hrdesk.config import APP_NAME, APP_VERSION
from hrdesk.db import close_mongo, connect_mongo, get_db, ping
from hrdesk.exception_handlers import register_exception_handlers
from hrdesk.middleware.correlation_id import CorrelationIdMiddleware
from hrdesk.middleware.structured_logging_middleware import StructuredLoggingMiddleware
from hrdesk.routers.attendance import router as attendance_router
from hrdesk.routers.auth import router as auth_router
from hrdesk.routers.efiling import router as efiling_router
from hrdesk.routers.leave import router as leave_router
from hrdesk.routers.remuneration import router as remuneration_router
from hrdesk.routers.roles import router as roles_router
from hrdesk.routers.users import router as users_router
from hrdesk.routers.variable_pay import peer_router, variable_router
from hrdesk.seed import ensure_seed_data

ROOT_DIR = Path(__file__).parent

# Load .env only if exists (development fallback)
env_path = ROOT_DIR / ".env"
if env_path.exists():
    load_dotenv(env_path)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("hrdesk")

app = FastAPI(title=APP_NAME, version=APP_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get("CORS_ORIGINS", "*").split(","),
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(StructuredLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)

register_exception_handlers(app)

# Routers (/api prefix is on each router)
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(roles_router)
app.include_router(attendance_router)
app.include_router(leave_router)
app.include_router(efiling_router)
app.include_router(remuneration_router)
app.include_router(variable_router)
app.include_router(peer_router)


@app.get("/api/health")
async def health(db=Depends(get_db)) -> dict[str, Any]:
    """Health check with database ping"""
    ok = await ping(db)
    return {"success": ok, "ok": ok, "service": "hrdesk"}


@app.on_event("startup")
async def _startup() -> None:
    await connect_mongo()
    await ensure_seed_data()
    logger.info("Startup complete")


@app.on_event("shutdown")
async def _shutdown() -> None:
    await close_mongo()
    logger.info("Shutdown complete")
