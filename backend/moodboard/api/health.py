"""Health check endpoints for deployment readiness monitoring."""
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

router = APIRouter()

@router.get("/health/live")
async def health_live():
    """Liveness probe - always returns ok if service is running."""
    return {"status": "ok", "checks": {"basic": "ok"}}

@router.get("/health/ready")
def health_ready():
    """Readiness probe - checks database and blob storage."""
    checks = {}
    overall_status = "ok"
    status_code = 200

    # Check database connection
    try:
        from ..models import get_session
        with get_session() as session:
            session.execute(text("SELECT 1"))
            checks["db"] = "ok"
    except Exception as e:
        checks["db"] = f"error: {str(e)}"
        overall_status = "error"
        status_code = 503

    # Check blob storage is writable
    try:
        from ..services.storage import STORAGE
        probe = STORAGE.put(".ready", b"ok")
        probe.unlink()
        checks["storage"] = "ok"
    except Exception as e:
        checks["storage"] = f"error: {str(e)}"
        if overall_status == "ok":
            overall_status = "degraded"

    response_data = {
        "status": overall_status,
        "checks": checks
    }

    return JSONResponse(content=response_data, status_code=status_code)
