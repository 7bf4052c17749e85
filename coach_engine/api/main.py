"""
FastAPI Application

Main entry point for the coach decision engine web API.
"""

from typing import Dict

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from coach_engine.api.routes import guardrails, journal, memory, prescriptions, readiness
from coach_engine.config import settings
from coach_engine.logger import setup_logger

setup_logger(settings.log_level, settings.log_file)

# Initialize FastAPI app
app = FastAPI(
    title="Coach Decision Engine API",
    description="Deterministic readiness, prescription, guardrail and memory engine for endurance athletes",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS configuration - allow frontend to access API
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(readiness.router, prefix="/api", tags=["Readiness"])
app.include_router(prescriptions.router, prefix="/api", tags=["Prescriptions"])
app.include_router(guardrails.router, prefix="/api", tags=["Guardrails"])
app.include_router(memory.router, prefix="/api", tags=["Memory"])
app.include_router(journal.router, prefix="/api", tags=["Journal"])


@app.get("/")
async def root() -> Dict[str, str]:
    """Root endpoint - API information."""
    return {
        "name": "Coach Decision Engine API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health")
async def health_check() -> Dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "coach-engine-api"}


# Global exception handler
@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions with consistent error format."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content=exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "message": str(exc.detail)},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled error on {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal Server Error",
            "message": str(exc),
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "coach_engine.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
