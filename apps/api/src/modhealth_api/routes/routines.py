from fastapi import APIRouter, Depends, HTTPException
import logging
from datetime import date
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Union
from sqlalchemy.orm import Session
from modhealth_core.auth import get_current_user, get_db
from modhealth_core.batch_logging import apply_planned_logs, coerce_value, create_auto_logs
from modhealth_core.config import Settings
from modhealth_core.models import Routine, RoutineVariable, RoutineVariableTime, Variable
from modhealth_core.planner import (
    FILTER_MODES,
    GROUP_MODES,
    PlannedRoutineLog,
    filter_logs,
    generate_planned_logs,
    group_display_name,
    group_logs,
    selected_logs,
)
from modhealth_core.routines import (
    format_weekdays,
    load_routine_plans,
    parse_weekdays,
    query_routines,
    validate_time_of_day,
)

router = APIRouter(prefix="/routines", tags=["routines"])
log = logging.getLogger("modhealth_api")


class RoutineTimeRequest(BaseModel):
    time: str
    name: str = ""


class RoutineVariableRequest(BaseModel):
    variable_id: int
    default_value: Union[bool, int, float, str]
    default_unit: Optional[str] = None
    weekdays: List[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5, 6, 7])
    times: List[RoutineTimeRequest] = Field(default_factory=list)


class RoutineCreateRequest(BaseModel):
    name: str
    notes: str = ""
    is_active: bool = True
    variables: List[RoutineVariableRequest]


class RoutineUpdateRequest(BaseModel):
    name: Optional[str] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None
    variables: Optional[List[RoutineVariableRequest]] = None


class PlanRequest(BaseModel):
    start_date: str
    end_date: str
    routine_ids: Optional[List[int]] = None
    group_by: Optional[str] = None
    filter: str = "all"
    search: str = ""


class PlannedLogPayload(BaseModel):
    id: str = ""
    routine_id: str
    routine_name: str = ""
    variable_id: str
    variable_name: str = ""
    variable_slug: str = ""
    default_value: Union[bool, int, float, str]
    default_unit: Optional[str] = None
    date: str
    time_of_day: str
    time_name: Optional[str] = ""
    weekday: int = 0
    enabled: bool = True

    def to_planned(self) -> PlannedRoutineLog:
        return PlannedRoutineLog(
            id=self.id,
            routine_id=self.routine_id,
            routine_name=self.routine_name,
            variable_id=self.variable_id,
            variable_name=self.variable_name,
            variable_slug=self.variable_slug,
            default_value=self.default_value,
            default_unit=self.default_unit,
            date=self.date,
            time_of_day=self.time_of_day,
            time_name=self.time_name or "",
            weekday=self.weekday,
            enabled=self.enabled,
        )


class BatchLogRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(alias="userId")
    logs: List[PlannedLogPayload]


class AutoLogRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_date: Optional[str] = Field(default=None, alias="targetDate")
    admin_token: Optional[str] = Field(default=None, alias="adminToken")


def routine_out(routine: Routine) -> dict:
    return {
        "id": routine.id,
        "name": routine.name,
        "notes": routine.notes or "",
        "is_active": bool(routine.is_active),
        "variables": [
            {
                "id": rv.id,
                "variable_id": rv.variable_id,
                "variable_name": rv.variable.name if rv.variable is not None else None,
                "default_value": rv.default_value,
                "default_unit": rv.default_unit,
                "weekdays": sorted(parse_weekdays(rv.weekdays)),
                "times": [{"time": t.time_of_day, "name": t.name or ""} for t in rv.times],
            }
            for rv in routine.variables
        ],
    }


def _parse_date(value: str, field_name: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{field_name} must be an ISO date (YYYY-MM-DD)")


def _build_variables(items: List[RoutineVariableRequest], db: Session) -> List[RoutineVariable]:
    if not items:
        raise HTTPException(status_code=400, detail="Please add at least one variable")
    built: List[RoutineVariable] = []
    for idx, item in enumerate(items, start=1):
        variable = db.get(Variable, item.variable_id)
        if variable is None:
            raise HTTPException(status_code=400, detail=f"Variable {idx}: unknown variable {item.variable_id}")
        label = variable.name
        if not item.weekdays:
            raise HTTPException(status_code=400, detail=f"{label}: select at least one day of the week")
        if any(d < 1 or d > 7 for d in item.weekdays):
            raise HTTPException(status_code=400, detail=f"{label}: weekdays must be between 1 (Mon) and 7 (Sun)")
        if not item.times:
            raise HTTPException(status_code=400, detail=f"{label}: add at least one time")
        seen_times = set()
        for j, t in enumerate(item.times, start=1):
            if not validate_time_of_day(t.time):
                raise HTTPException(
                    status_code=400,
                    detail=f"{label}: Time {j} has invalid format. Please use HH:MM format (e.g., 08:30).",
                )
            slot = tuple(int(part) for part in t.time.split(":"))
            if slot in seen_times:
                raise HTTPException(status_code=400, detail=f"{label}: time {t.time} is listed more than once")
            seen_times.add(slot)
        if isinstance(item.default_value, str) and not item.default_value.strip():
            raise HTTPException(status_code=400, detail=f"{label}: a default value is required")
        try:
            default_value = coerce_value(item.default_value, variable.data_type)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"{label}: {e}")
        built.append(
            RoutineVariable(
                variable_id=variable.id,
                default_value=default_value,
                default_unit=item.default_unit or variable.default_unit,
                weekdays=format_weekdays(item.weekdays),
                times=[
                    RoutineVariableTime(time_of_day=t.time, name=t.name or "", display_order=order)
                    for order, t in enumerate(item.times)
                ],
            )
        )
    return built


def _get_owned_routine(routine_id: int, user, db: Session) -> Routine:
    routine = query_routines(db, user_id=user.id, routine_ids=[routine_id]).first()
    if not routine:
        log.warning("routines.lookup not_found id=%s actor=%s", routine_id, user.username)
        raise HTTPException(status_code=404, detail="Routine not found")
    return routine


@router.get("/")
def list_routines(user = Depends(get_current_user), db: Session = Depends(get_db)):
    items = query_routines(db, user_id=user.id).all()
    log.info("routines.list count=%d actor=%s", len(items), user.username)
    return [routine_out(r) for r in items]


@router.post("/")
def create_routine(data: RoutineCreateRequest, user = Depends(get_current_user), db: Session = Depends(get_db)):
    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Routine name is required")
    routine = Routine(user_id=user.id, name=name, notes=data.notes or "", is_active=data.is_active)
    routine.variables = _build_variables(data.variables, db)
    db.add(routine)
    db.commit()
    db.refresh(routine)
    log.info("routines.create id=%s variables=%d actor=%s", routine.id, len(routine.variables), user.username)
    return routine_out(routine)


@router.put("/{routine_id}")
def update_routine(routine_id: int, update: RoutineUpdateRequest, user = Depends(get_current_user), db: Session = Depends(get_db)):
    routine = _get_owned_routine(routine_id, user, db)
    if update.name is not None:
        if not update.name.strip():
            raise HTTPException(status_code=400, detail="Routine name is required")
        routine.name = update.name.strip()
    if update.notes is not None:
        routine.notes = update.notes
    if update.is_active is not None:
        routine.is_active = update.is_active
    if update.variables is not None:
        routine.variables = _build_variables(update.variables, db)
    db.commit()
    db.refresh(routine)
    log.info("routines.update ok id=%s actor=%s", routine.id, user.username)
    return routine_out(routine)


@router.delete("/{routine_id}/")
def delete_routine(routine_id: int, user = Depends(get_current_user), db: Session = Depends(get_db)):
    routine = _get_owned_routine(routine_id, user, db)
    db.delete(routine)
    db.commit()
    log.info("routines.delete ok id=%s actor=%s", routine_id, user.username)
    return {"status": "deleted"}


@router.post("/plan")
def plan_routine_logs(data: PlanRequest, user = Depends(get_current_user), db: Session = Depends(get_db)):
    start = _parse_date(data.start_date, "start_date")
    end = _parse_date(data.end_date, "end_date")
    max_days = Settings().planner_max_days
    if (end - start).days + 1 > max_days:
        raise HTTPException(status_code=400, detail=f"Date range may span at most {max_days} days")
    if data.group_by is not None and data.group_by not in GROUP_MODES:
        raise HTTPException(status_code=400, detail=f"group_by must be one of {', '.join(GROUP_MODES)}")
    if data.filter not in FILTER_MODES:
        raise HTTPException(status_code=400, detail=f"filter must be one of {', '.join(FILTER_MODES)}")

    plans = load_routine_plans(db, user.id, routine_ids=data.routine_ids)
    planned = generate_planned_logs(plans, start, end)
    visible = filter_logs(planned, data.filter, data.search)
    body = {
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "count": len(visible),
        "logs": [p.to_dict() for p in visible],
    }
    if data.group_by:
        body["groups"] = [
            {
                "key": key,
                "name": group_display_name(key, data.group_by, items),
                "count": len(items),
                "log_ids": [p.id for p in items],
            }
            for key, items in group_logs(visible, data.group_by).items()
        ]
    log.info(
        "routines.plan routines=%d range=%s..%s count=%d actor=%s",
        len(plans), body["start_date"], body["end_date"], len(visible), user.username,
    )
    return body


@router.post("/batch-log")
def batch_log(data: BatchLogRequest, user = Depends(get_current_user), db: Session = Depends(get_db)):
    if data.user_id != user.id:
        log.warning("routines.batch_log forbidden user_id=%s actor=%s", data.user_id, user.username)
        raise HTTPException(status_code=403, detail="Cannot create logs for another user")
    chosen = selected_logs([item.to_planned() for item in data.logs])
    result = apply_planned_logs(db, user.id, chosen)
    log.info("routines.batch_log %s actor=%s", result.message, user.username)
    return result.to_dict()


@router.post("/auto-logs")
def auto_logs(data: AutoLogRequest, user = Depends(get_current_user), db: Session = Depends(get_db)):
    target = _parse_date(data.target_date, "targetDate") if data.target_date else date.today()
    scope_user_id = user.id
    if data.admin_token is not None:
        admin_token = Settings().admin_token
        if not admin_token or data.admin_token != admin_token:
            log.warning("routines.auto_logs denied: invalid admin token actor=%s", user.username)
            raise HTTPException(status_code=403, detail="Invalid admin token")
        scope_user_id = None
    outcome = create_auto_logs(db, target, user_id=scope_user_id)
    summary = outcome["summary"]
    message = f"Successfully created {summary['auto_logs_created']} auto-logs"
    if summary["skipped"]:
        message += f", skipped {summary['skipped']}"
    if summary["errors"]:
        message += f", with {summary['errors']} errors"
    log.info("routines.auto_logs date=%s all_users=%s actor=%s", target.isoformat(), scope_user_id is None, user.username)
    return {"success": True, "target_date": target.isoformat(), "message": message, **outcome}
