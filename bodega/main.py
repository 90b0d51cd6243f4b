# bodega/main.py
import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager

from bodega.config.settings import settings
from bodega.core.exceptions import register_exception_handlers
from bodega.core.middleware import setup_middleware
from bodega.api.v1.router import api_router

logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    print("🚀 Bodega Tarimas API Starting...")
    print(f"📍 Version: {settings.version}")
    print(f"🌍 Environment: {'Development' if settings.debug else 'Production'}")
    print(f"🔐 JWT Algorithm: {settings.algorithm}")
    print(f"⏰ Token Expire: {settings.access_token_expire_minutes} minutes")
    print(f"🗄️  Database: {settings.database_url.split('@')[1] if '@' in settings.database_url else 'local'}")
    print(f"🔁 Ledger max attempts: {settings.ledger_max_attempts}")

    yield

    # Shutdown
    print("🛑 Bodega Tarimas API Shutting down...")

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Inventario por tarimas con ledger de eventos, picking y pedidos para distribuidora de bebidas",
    docs_url="/docs",
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# Setup middleware
setup_middleware(app)

# Errores de dominio -> ErrorResponse
register_exception_handlers(app)

# Include routers
app.include_router(api_router, prefix="/api/v1")

# Root endpoint
@app.get("/")
async def root():
    return {
        "message": "🚀 Bodega Tarimas API",
        "version": settings.version,
        "status": "running",
        "environment": "production" if not settings.debug else "development",
        "docs": "/docs",
        "api": "/api/v1"
    }

@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "version": settings.version,
        "app": settings.app_name,
        "environment": "production" if not settings.debug else "development"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "bodega.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
