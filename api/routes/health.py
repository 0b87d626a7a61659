"""Health check endpoints."""

from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check."""
    return {"status": "healthy", "service": "nelson-medical-assistant"}


@router.get("/")
async def root():
    """API root."""
    return {
        "name": "Nelson Pediatric Medical Assistant API",
        "version": "1.0.0",
        "docs": "/docs",
    }
