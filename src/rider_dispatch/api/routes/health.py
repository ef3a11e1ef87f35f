"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/database", status_code=status.HTTP_200_OK)
def check_database() -> dict:
    """Check database configuration and connectivity."""
    from ...db.supabase import get_supabase_client
    from ...persistence.database import check_connection

    if not get_supabase_client():
        return {
            "configured": False,
            "message": "Supabase not configured. Set DISPATCH_SUPABASE_URL and DISPATCH_SUPABASE_KEY environment variables.",
        }

    try:
        check_connection()
        return {"configured": True, "connected": True, "message": "Database connected."}
    except Exception as exc:
        return {
            "configured": True,
            "connected": False,
            "error": str(exc),
            "message": f"Database connection error: {exc}",
        }
