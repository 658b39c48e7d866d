"""
Account Ledger API Application Factory
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import uvicorn

from .accounts import router as accounts_router
from .. import __version__
from ..config import get_config
from ..exceptions import LedgerError
from ..logging_config import setup_logging, get_logger


logger = get_logger("ledger.api")


ERROR_STATUS_CODES = {
    "invalid_argument": 400,
    "insufficient_balance": 400,
    "overdraft_exceeded": 400,
    "conflict": 409,
    "not_found": 404,
}


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = ERROR_STATUS_CODES.get(exc.code, 500)
    if status_code == 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "code": exc.code})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return JSONResponse(status_code=400, content={"detail": errors, "code": "invalid_argument"})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    config = get_config()
    setup_logging(config.log_level, "ledger", config.log_format, config.log_file)

    app = FastAPI(
        title="Account Ledger API",
        description="Account ledger with debit, credit, transfer and interest operations",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(accounts_router, prefix="/accounts", tags=["Accounts"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "account_ledger_api",
            "version": __version__
        }

    return app


app = create_app()


def run_server(host: str = None, port: int = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    uvicorn.run(
        "account_ledger.api:app",
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level="info"
    )
