# backend/dealerdb/main.py
import logging
import os
from typing import List

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from .apps.accounts.router import router as accounts_router
from .apps.audit.router import router as audit_router
from .apps.numbering.router import router as numbering_router
from .apps.customers.router import router as customers_router
from .apps.stock.router import router as stock_router
from .apps.purchases.router import router as purchases_router
from .apps.sales.router import router as sales_router
from .apps.workshop.router import router as workshop_router
from .apps.reports.router import router as reports_router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

APP_ENV = os.getenv("APP_ENV", "development").lower()


def _allowed_origins() -> List[str]:
    """
    Parse CORS_ALLOWED_ORIGINS from env.

    Accepts comma-separated origins. If unset, defaults to local dev ports.
    """
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if raw:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
        if origins:
            return origins
    return [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
        "http://localhost:4173",
    ]


def _public_error_message(exc: Exception, *, env: str = APP_ENV) -> str:
    if env == "production":
        return "An unexpected error occurred. Please try again."
    return str(exc) or exc.__class__.__name__


app = FastAPI(title="Dealer Portal API", version="1.0.0")
cors_origins = _allowed_origins()
allow_credentials = "*" not in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    # Concurrent writers racing past the service-level checks.
    logger.warning("Integrity error", extra={"path": request.url.path}, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "The record conflicts with existing data. Refresh and try again."},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error", extra={"path": request.url.path}, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": _public_error_message(exc)},
    )


@app.get("/", tags=["health"])
def read_root():
    return {"status": "ok", "message": "Dealer Portal backend is running"}


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


app.include_router(accounts_router)
app.include_router(audit_router)
app.include_router(numbering_router)
app.include_router(customers_router)
app.include_router(stock_router)
app.include_router(purchases_router)
app.include_router(sales_router)
app.include_router(workshop_router)
app.include_router(reports_router)
