"""
Main FastAPI application - travel agency ledger.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from travel_ledger.api.exceptions import register_error_handler
from travel_ledger.api.routers import accounts, sequences, settings, vouchers
from travel_ledger.core.logging_config import configure_logging
from travel_ledger.infrastructure.database import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan - startup and shutdown events."""
    configure_logging()
    init_db()
    logger.info("ledger_started")
    yield


app = FastAPI(
    title="Travel Ledger API",
    description="""
## Double-entry ledger for a travel agency

### Features:
- **Voucher numbers**: per-type sequences (`BK-00001`, `VS-00042`), never duplicated
- **Journal posting**: balanced vouchers against leaf accounts only
- **Voucher lifecycle**: trash, restore and permanent delete
- **Finance account map**: receivable, payable, cash and revenue/expense roles

### Rules:
- Debits equal credits on every voucher
- Posted entries are never edited; deletion is a flag until purged
- Every change is written to the audit log
    """,
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handler(app)

app.include_router(vouchers.router)
app.include_router(sequences.router)
app.include_router(settings.router)
app.include_router(accounts.router)


@app.get("/")
def root():
    return {
        "name": "Travel Ledger API",
        "version": "0.1.0",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle validation errors."""
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc)}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
