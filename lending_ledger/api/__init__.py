"""
Lending Ledger API Application Factory
"""

from typing import Optional

from fastapi import FastAPI
import uvicorn

from .. import __version__
from ..config import get_config
from ..logging_config import setup_logging
from .audit import router as audit_router
from .customers import router as customers_router
from .loans import router as loans_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Lending Ledger API",
        description="Customer loans under simple-interest terms with payment reconciliation",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.include_router(customers_router, prefix="/customers", tags=["Customers"])
    app.include_router(loans_router, prefix="/loans", tags=["Loans"])
    app.include_router(audit_router, prefix="/audit", tags=["Audit"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "lending_ledger_api",
            "version": __version__
        }

    return app


app = create_app()


def run_server(host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    setup_logging(config.log_level, config.log_format, config.log_file)
    uvicorn.run(
        "lending_ledger.api:app",
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level=config.log_level.lower()
    )
