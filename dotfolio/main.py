from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import balances, chains, health
from .config import settings
from .logging_config import setup_logging

setup_logging(settings.log_level)

# Create FastAPI app
app = FastAPI(
    title="Dotfolio API",
    description="Multi-provider Substrate balance resolver",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(balances.router, tags=["Balances"])
app.include_router(chains.router, tags=["Chains"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "Dotfolio API",
        "version": __version__,
        "description": "Multi-provider Substrate balance resolver",
        "default_chain": settings.default_chain,
        "docs": "/docs",
        "health": "/healthz"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "dotfolio.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
