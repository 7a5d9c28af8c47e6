import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, Depends, Security, status
from fastapi.security import APIKeyHeader
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from database import db
from routes.carrier_lookup_routes import router as carrier_lookup_router
from routes.proxy_routes import router as proxy_router

Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(settings.log_file),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(api_key: Optional[str] = Security(api_key_header)):
    """Check the X-API-Key header; every request passes when no key is configured."""
    if not settings.api_key:
        return True
    if not api_key or api_key != settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key"
        )
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name} {settings.app_version}")
    if not db.verify_connectivity():
        logger.warning("Cannot connect to Neo4j database; lookups will work but imports will fail")
    yield
    logger.info("Shutting down, closing Neo4j driver")
    db.close()


app = FastAPI(
    title=settings.app_name,
    description=(
        "Looks up motor carriers in the FMCSA registry by DOT number, MC number or name "
        "and keeps one record per DOT number. Authenticate with the `X-API-Key` header."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "health", "description": "Service and database status"},
        {"name": "carrier-lookup", "description": "Registry search, background import, saved results and web key"},
    ],
    debug=settings.debug
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["health"])
async def health_check():
    """API status plus Neo4j connectivity"""
    return {
        "status": "healthy",
        "database": "healthy" if db.verify_connectivity() else "unhealthy",
        "version": settings.app_version
    }


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "documentation": "/docs"
    }


for router in (carrier_lookup_router, proxy_router):
    app.include_router(router, dependencies=[Depends(verify_api_key)])


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    logger.error(f"Internal server error on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"}
    )
