"""
Main FastAPI Application
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from backoffice.core.config import settings
from backoffice.core.database import init_db
from backoffice.core.exceptions import BackofficeError
from backoffice.api.v1 import expenses, cancellations, refunds, cheques, payroll, banking, ledger, sales
from backoffice.services.scheduler import start_scheduler, stop_scheduler

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("Starting up...")
    init_db()
    logger.info("Database initialized")

    sweep_task = None
    if settings.ENABLE_SCHEDULED_JOBS:
        sweep_task = start_scheduler()

    yield

    # Shutdown
    logger.info("Shutting down...")
    await stop_scheduler(sweep_task)


# Create app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan
)


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"code": code, "message": message}}
    )


# Exception handlers
@app.exception_handler(BackofficeError)
async def backoffice_exception_handler(request: Request, exc: BackofficeError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}")
    return error_response(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return error_response(400, "VALIDATION_ERROR", message)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")


# Health check
@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": settings.APP_VERSION}


# Include routers
app.include_router(expenses.router, prefix="/api/v1")
app.include_router(expenses.category_router, prefix="/api/v1")
app.include_router(sales.client_router, prefix="/api/v1")
app.include_router(sales.router, prefix="/api/v1")
app.include_router(sales.receipt_router, prefix="/api/v1")
app.include_router(cancellations.router, prefix="/api/v1")
app.include_router(refunds.router, prefix="/api/v1")
app.include_router(cheques.router, prefix="/api/v1")
app.include_router(payroll.employee_router, prefix="/api/v1")
app.include_router(payroll.router, prefix="/api/v1")
app.include_router(banking.bank_router, prefix="/api/v1")
app.include_router(banking.cash_router, prefix="/api/v1")
app.include_router(ledger.router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
