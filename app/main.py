"""
Splits & Contracts - FastAPI Application

Split ledger and contract e-signature lifecycle for music publishing.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app import models  # noqa: F401  (registers tables on Base.metadata)
from app.core.database import engine, Base
from app.routers.works import router as works_router
from app.routers.contracts import router as contracts_router
from app.routers.esignature import router as esignature_router
from app.services.errors import LedgerError


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    # Create tables on startup (for development; production uses alembic)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield
    # Cleanup on shutdown
    await engine.dispose()


app = FastAPI(
    title="Splits & Contracts",
    description="Split ledger and contract e-signature lifecycle for music publishing",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    """Map domain errors to their HTTP status with {"detail", "total"?}."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
app.include_router(works_router)
app.include_router(contracts_router)
app.include_router(esignature_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
