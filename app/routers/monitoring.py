import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_db
from app.services.grading_client import GradingClient, get_grading_client
from app.services.session_status import check_and_update_session_status
from app.services.task_monitor import (
    check_all_pending_tasks,
    get_active_sessions,
    get_monitoring_stats,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["monitoring"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# Called by an external scheduler every few minutes.
@router.api_route("/cron/status-check", methods=["GET", "POST"])
def cron_status_check(
    db: Session = Depends(get_db),
    client: GradingClient = Depends(get_grading_client),
):
    batch = check_all_pending_tasks(db, client)
    stats = get_monitoring_stats(db)

    logger.info(
        "background check completed: processed=%s updated=%s errors=%s skipped=%s",
        batch.processed, batch.updated, batch.errors, batch.skipped,
    )
    return {
        "message": "Background task status check completed",
        "timestamp": _now(),
        "summary": {
            "tasks_processed": batch.processed,
            "tasks_updated": batch.updated,
            "errors": batch.errors,
            "skipped": batch.skipped,
            "current_stats": stats.model_dump(),
        },
    }


@router.post("/sessions/status-check")
def sessions_status_check(
    db: Session = Depends(get_db),
    client: GradingClient = Depends(get_grading_client),
):
    batch = check_all_pending_tasks(db, client)

    sessions = [(s.id, s.status) for s in get_active_sessions(db)]
    session_results = []
    for session_id, old_status in sessions:
        try:
            session = check_and_update_session_status(db, session_id)
        except Exception as e:
            db.rollback()
            logger.exception("error updating session %s", session_id)
            session_results.append({"session_id": session_id, "error": str(e)})
            continue
        session_results.append(
            {
                "session_id": session_id,
                "old_status": old_status,
                "new_status": session.status,
                "updated": session.status != old_status,
            }
        )

    return {
        "message": "Comprehensive status check completed",
        "timestamp": _now(),
        "tasks": {
            "processed": batch.processed,
            "updated": batch.updated,
            "errors": batch.errors,
            "skipped": batch.skipped,
            "details": [r.model_dump() for r in batch.results],
        },
        "sessions": {
            "checked": len(sessions),
            "results": session_results,
        },
    }


@router.get("/monitoring/stats")
def monitoring_stats(db: Session = Depends(get_db)):
    return {
        "message": "Monitoring statistics retrieved",
        "timestamp": _now(),
        "stats": get_monitoring_stats(db).model_dump(),
    }
