import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import database as db
from config import CONTENT_SECURITY_POLICY
from deps import CORS_ORIGINS, gemini, maintenance, remove_bg
from routes import (
    admin_products,
    audit_routes,
    auth_routes,
    bulk_import,
    catalog,
    constraints,
    google_ai,
    image_proxy_routes,
    mockups,
    remove_bg_routes,
    statistics,
    uploads,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database and maintenance jobs on startup."""
    await db.init_db()
    maintenance.start()
    yield
    maintenance.stop()
    await db.close_pool()


app = FastAPI(title="Corporate Gift Mockup API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials="*" not in CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Content-Security-Policy"] = CONTENT_SECURITY_POLICY
    return response


app.include_router(auth_routes.router)
app.include_router(catalog.router)
# bulk-import paths must match before /api/admin/products/{item_id}
app.include_router(bulk_import.router)
app.include_router(admin_products.router)
app.include_router(constraints.router)
app.include_router(audit_routes.router)
app.include_router(statistics.router)
app.include_router(mockups.router)
app.include_router(remove_bg_routes.router)
app.include_router(google_ai.router)
app.include_router(image_proxy_routes.router)
app.include_router(uploads.router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Corporate Gift Mockup API is running"}


@app.get("/health")
async def health():
    """Health check with DB connectivity test (for container orchestration)."""
    try:
        db_status = "ok" if await db.ping() else "error: unexpected response"
    except Exception as e:
        db_status = f"error: {e}"

    code = 200 if db_status == "ok" else 503
    return JSONResponse(
        status_code=code,
        content={
            "status": "healthy" if code == 200 else "unhealthy",
            "database": db_status,
            "scheduler": "running" if maintenance.running else "stopped",
            "gemini": "configured" if gemini.is_configured else "not_configured",
            "removeBg": "configured" if remove_bg.is_configured else "not_configured",
        },
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
