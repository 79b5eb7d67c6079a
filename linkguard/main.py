import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from linkguard.config import settings
from linkguard.database import init_db
from linkguard.api import routes
from linkguard.services.analysis_service import build_analysis_service

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"🚀 Starting {settings.APP_NAME} ({settings.ENVIRONMENT})...")
    init_db()
    logger.info("✓ Database initialized")
    app.state.analysis_service = build_analysis_service(settings)
    logger.info(f"✓ Analysis engine ready ({len(app.state.analysis_service.blacklist)} blacklist entries)")
    yield
    # Shutdown
    app.state.analysis_service.close()
    logger.info(f"👋 Shutting down {settings.APP_NAME}...")

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(routes.router, prefix=settings.API_PREFIX, tags=["Analysis"])

@app.get("/")
def root():
    return {
        "message": f"{settings.APP_NAME} URL Analysis API",
        "version": settings.VERSION,
        "docs": "/docs",
        "endpoints": {
            "check": f"POST {settings.API_PREFIX}/check",
            "batch": f"POST {settings.API_PREFIX}/check/batch",
            "expand": f"POST {settings.API_PREFIX}/expand-url",
            "scans": f"GET {settings.API_PREFIX}/scans",
            "health": f"GET {settings.API_PREFIX}/health",
        },
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("linkguard.main:app", host="0.0.0.0", port=8000, reload=False)
