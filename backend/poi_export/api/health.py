from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from poi_export.api.deps import get_export_gate
from poi_export.core.database import get_db
from poi_export.export.coordinator import ExportGate

router = APIRouter()


@router.get("/health")
async def health_check(
    db: Session = Depends(get_db),
    gate: ExportGate = Depends(get_export_gate),
):
    """Health check endpoint - verifies database connectivity and export state."""
    health_status = {
        "status": "healthy",
        "database": "disconnected",
        "export_running": gate.busy,
    }

    # Check database
    try:
        db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["database"] = f"error: {str(e)}"

    return health_status
