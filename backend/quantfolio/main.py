"""FastAPI application entry point."""

from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from quantfolio import __version__
from quantfolio.api.v1 import portfolio, strategies
from quantfolio.core.config import settings
from quantfolio.core.logging import setup_logging
from quantfolio.middleware.exception_handler import ExceptionHandlerMiddleware

# Initialize logging
setup_logging()

app = FastAPI(
    title="Quantfolio API",
    description="Portfolio dashboard for algorithmic trading strategies",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)
app.add_middleware(ExceptionHandlerMiddleware)

app.include_router(strategies.router, prefix="/api/v1/strategies", tags=["strategies"])
app.include_router(portfolio.router, prefix="/api/v1/portfolio", tags=["portfolio"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Quantfolio API", "version": __version__}


@app.get("/health")
async def health():
    """Report whether the source directories the loader reads from are present."""
    sources = {
        "backtest_dir": Path(settings.BACKTEST_DIR),
        "forward_dir": Path(settings.FORWARD_DIR),
    }
    return {
        "status": "healthy" if sources["backtest_dir"].is_dir() else "degraded",
        "sources": {name: {"path": str(path), "exists": path.is_dir()} for name, path in sources.items()},
    }
