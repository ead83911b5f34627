# boutique_hub/main.py
# Boutique Hub - catalog reconciliation and serialized stock
from __future__ import annotations
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from boutique_hub.settings import settings
from boutique_hub.database import (
    init_db, close_db, check_db_health, create_schema, seed_stores, get_session_context,
)
from boutique_hub.errors import InventoryError
from boutique_hub.logging_setup import setup_logging

from boutique_hub.routers.catalog import router as catalog_router
from boutique_hub.routers.products import router as products_router
from boutique_hub.routers.stock import router as stock_router
from boutique_hub.routers.soon_in_stock import router as soon_in_stock_router
from boutique_hub.routers.items import router as items_router
from boutique_hub.routers.activities import router as activities_router
from boutique_hub.routers.exports import router as exports_router

VERSION = "1.0.0"

# ---------------------------------------------------------
# Logging setup
# ---------------------------------------------------------
setup_logging(settings)
logger = logging.getLogger("boutique_hub")

# ---------------------------------------------------------
# Lifespan: Database init/cleanup
# ---------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    await init_db()
    if settings.DB_CREATE_SCHEMA:
        await create_schema()
        async with get_session_context() as db:
            await seed_stores(db, settings.DEFAULT_STORES)
    logger.info("Boutique Hub %s started", VERSION)
    yield
    await close_db()
    logger.info("Boutique Hub stopped")

# ---------------------------------------------------------
# FastAPI app + CORS
# ---------------------------------------------------------
app = FastAPI(
    title="Boutique Hub API",
    version=VERSION,
    description="Luxury boutique inventory - catalog reconciliation and serialized stock",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected: [%s] %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(catalog_router)
app.include_router(products_router)
app.include_router(stock_router)
app.include_router(soon_in_stock_router)
app.include_router(items_router)
app.include_router(activities_router)
app.include_router(exports_router)

# ---------------------------------------------------------
# Endpoints
# ---------------------------------------------------------
@app.get("/health")
async def health():
    """Health check endpoint with database status."""
    result = {"status": "ok", "version": VERSION}
    db_health = await check_db_health()
    result["database"] = db_health
    if db_health.get("status") != "healthy":
        result["status"] = "degraded"
    return result
