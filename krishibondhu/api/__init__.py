"""
KrishiBondhu API Application Factory
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from ..config import get_config
from ..logging_config import setup_logging, get_logger
from .loans import router as loans_router
from .payments import router as payments_router
from .reminders import router as reminders_router
from .system import get_system


logger = get_logger("krishibondhu.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the due-reminder poller for the lifetime of the server"""
    config = get_config()
    poller = None
    if config.reminder_poller_enabled:
        poller = get_system().poller
        poller.start()
        logger.info("Due reminder poller started")
    try:
        yield
    finally:
        if poller is not None:
            await poller.stop()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="KrishiBondhu Loan Tracker API",
        description="Loan tracking, simulated settlement and due-date reminders for farmers",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(loans_router, prefix="/loans", tags=["Loans"])
    app.include_router(payments_router, prefix="/payments", tags=["Payments"])
    app.include_router(reminders_router, prefix="/reminders", tags=["Reminders"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "krishibondhu_api",
            "version": "1.0.0"
        }

    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "KrishiBondhu Loan Tracker API",
            "version": "1.0.0",
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "loans": "/loans",
                "payments": "/payments",
                "reminders": "/reminders",
            }
        }

    return app


app = create_app()


def run_server(host: str = None, port: int = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format)
    uvicorn.run(
        "krishibondhu.api:app",
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level="info"
    )
