from fastapi import APIRouter, Depends, HTTPException
import logging
from datetime import date, datetime, time, timedelta
from typing import Optional
from sqlalchemy.orm import Session
from modhealth_core.auth import get_current_user, get_db
from modhealth_core.models import VariableLog

router = APIRouter(prefix="/logs", tags=["logs"])
log = logging.getLogger("modhealth_api")


def log_out(row: VariableLog) -> dict:
    return {
        "id": row.id,
        "variable_id": row.variable_id,
        "display_value": row.display_value,
        "display_unit": row.display_unit,
        "source": row.source,
        "logged_at": row.logged_at.isoformat() if row.logged_at else None,
        "notes": row.notes or "",
    }


def _day(value: Optional[str], name: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{name} must be an ISO date (YYYY-MM-DD)")


@router.get("/")
def list_logs(
    start: Optional[str] = None,
    end: Optional[str] = None,
    variable_id: Optional[int] = None,
    source: Optional[str] = None,
    limit: int = 500,
    user = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    start_day = _day(start, "start")
    end_day = _day(end, "end")
    q = db.query(VariableLog).filter(VariableLog.user_id == user.id)
    if start_day:
        q = q.filter(VariableLog.logged_at >= datetime.combine(start_day, time.min))
    if end_day:
        q = q.filter(VariableLog.logged_at < datetime.combine(end_day + timedelta(days=1), time.min))
    if variable_id is not None:
        q = q.filter(VariableLog.variable_id == variable_id)
    if source:
        q = q.filter(VariableLog.source == source)
    rows = q.order_by(VariableLog.logged_at.desc()).limit(max(1, min(limit, 5000))).all()
    log.info("logs.list count=%d actor=%s", len(rows), user.username)
    return [log_out(r) for r in rows]


@router.delete("/{log_id}/")
def delete_log(log_id: int, user = Depends(get_current_user), db: Session = Depends(get_db)):
    row = db.query(VariableLog).filter(VariableLog.id == log_id, VariableLog.user_id == user.id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Log not found")
    db.delete(row)
    db.commit()
    log.info("logs.delete ok id=%s actor=%s", log_id, user.username)
    return {"status": "deleted"}
