"""Apply confirmed planned logs to the database.

This is the confirmation side of routine planning: the planner only proposes
entries, and this module turns the user's selection into ``VariableLog`` rows
while skipping slots that already hold a log.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Dict, List, Optional, Sequence, Set, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from modhealth_core.config import Settings
from modhealth_core.models import User, UserVariablePreference, Variable, VariableLog
from modhealth_core.planner import PlannedRoutineLog, generate_planned_logs
from modhealth_core.routines import load_routine_plans

logger = logging.getLogger("modhealth_core.batch_logging")

_TRUE_STRINGS = {"true", "1", "yes", "y", "on"}
_FALSE_STRINGS = {"false", "0", "no", "n", "off", ""}

SlotKey = Tuple[int, int, datetime]


@dataclass
class BatchLogResult:
    created: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        msg = f"Created {self.created} logs, skipped {self.skipped} duplicates"
        if self.errors:
            msg += f", with {len(self.errors)} errors"
        return msg

    def to_dict(self) -> Dict:
        out = {"success": True, "created": self.created, "skipped": self.skipped, "message": self.message}
        if self.errors:
            out["errors"] = list(self.errors)
        return out


def parse_time_of_day(value: str) -> time:
    """Accept ``HH:MM`` or ``HH:MM:SS``; anything else raises ValueError."""
    parts = (value or "").strip().split(":")
    if len(parts) == 2:
        parts.append("0")
    if len(parts) != 3 or not all(p.strip().isdigit() for p in parts):
        raise ValueError(f"invalid time of day: {value!r}")
    return time(int(parts[0]), int(parts[1]), int(parts[2]))


def planned_timestamp(log: PlannedRoutineLog) -> datetime:
    return datetime.combine(date.fromisoformat(log.date), parse_time_of_day(log.time_of_day))


def coerce_value(value, data_type: Optional[str]) -> str:
    """Normalise a routine default value for storage according to the variable type."""
    if data_type == "continuous":
        if isinstance(value, bool):
            raise ValueError(f"not a number: {value!r}")
        if isinstance(value, int):
            return str(value)
        text = str(value).strip()
        try:
            return str(int(text))
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            raise ValueError(f"not a number: {value!r}") from None
        if not math.isfinite(number):
            raise ValueError(f"not a finite number: {value!r}")
        return str(int(number)) if number.is_integer() else str(number)
    if data_type == "boolean":
        if isinstance(value, bool):
            return "true" if value else "false"
        text = str(value).strip().lower()
        if text in _TRUE_STRINGS:
            return "true"
        if text in _FALSE_STRINGS:
            return "false"
        raise ValueError(f"not a boolean: {value!r}")
    return "" if value is None else str(value)


def preferred_unit(db: Session, user_id: int, variable_id: int) -> Optional[str]:
    pref = (
        db.query(UserVariablePreference)
        .filter(UserVariablePreference.user_id == user_id, UserVariablePreference.variable_id == variable_id)
        .first()
    )
    return pref.display_unit if pref and pref.display_unit else None


def _existing_slots(db: Session, user_id: int, keys: Sequence[Tuple[int, datetime]]) -> Set[SlotKey]:
    if not keys:
        return set()
    variable_ids = {vid for vid, _ in keys}
    stamps = [ts for _, ts in keys]
    rows = (
        db.query(VariableLog.variable_id, VariableLog.logged_at)
        .filter(VariableLog.user_id == user_id)
        .filter(VariableLog.variable_id.in_(variable_ids))
        .filter(VariableLog.logged_at >= min(stamps), VariableLog.logged_at <= max(stamps))
        .all()
    )
    wanted = set(keys)
    return {(user_id, vid, ts) for vid, ts in rows if (vid, ts) in wanted}


def apply_planned_logs(db: Session, user_id: int, logs: Sequence[PlannedRoutineLog], source: Optional[str] = None) -> BatchLogResult:
    """Persist ``logs`` for ``user_id``.

    Entries whose (user, variable, date, time) slot already holds a log are
    skipped, including repeats inside the same batch. A failing entry is
    recorded in ``errors`` and the rest of the batch still goes through.
    """
    result = BatchLogResult()
    source = source or Settings().auto_log_source

    prepared: List[Tuple[PlannedRoutineLog, int, datetime]] = []
    for log in logs:
        try:
            prepared.append((log, int(log.variable_id), planned_timestamp(log)))
        except ValueError as e:
            result.errors.append(f"Failed to create log for {log.variable_name}: {e}")

    seen = _existing_slots(db, user_id, [(vid, ts) for _, vid, ts in prepared])
    variables: Dict[int, Optional[Variable]] = {}

    for log, variable_id, logged_at in prepared:
        key = (user_id, variable_id, logged_at)
        if key in seen:
            result.skipped += 1
            continue
        if variable_id not in variables:
            variables[variable_id] = db.get(Variable, variable_id)
        variable = variables[variable_id]
        if variable is None:
            result.errors.append(f"Failed to create log for {log.variable_name}: unknown variable {variable_id}")
            continue
        try:
            value = coerce_value(log.default_value, variable.data_type)
            unit = preferred_unit(db, user_id, variable_id) or log.default_unit or None
            with db.begin_nested():
                db.add(
                    VariableLog(
                        user_id=user_id,
                        variable_id=variable_id,
                        display_value=value,
                        display_unit=unit,
                        source=source,
                        logged_at=logged_at,
                        notes=f"Auto-generated from routine: {log.routine_name}",
                    )
                )
        except IntegrityError:
            # Another writer filled the slot after the pre-read.
            logger.info("batch.entry duplicate variable=%s at=%s", variable_id, logged_at.isoformat())
            seen.add(key)
            result.skipped += 1
            continue
        except (ValueError, SQLAlchemyError) as e:
            logger.warning("batch.entry failed variable=%s date=%s err=%s", variable_id, log.date, e)
            result.errors.append(f"Failed to create log for {log.variable_name}: {e}")
            continue
        seen.add(key)
        result.created += 1

    db.commit()
    logger.info(
        "batch.apply user=%s created=%d skipped=%d errors=%d",
        user_id, result.created, result.skipped, len(result.errors),
    )
    return result


def create_auto_logs(db: Session, target_date: date, user_id: Optional[int] = None) -> Dict:
    """Plan ``target_date`` for active routines and apply it.

    Covers every user unless ``user_id`` restricts the run to one account.
    """
    summary = {"total_routines_processed": 0, "auto_logs_created": 0, "skipped": 0, "errors": 0}
    details: List[Dict] = []
    users = db.query(User).order_by(User.id)
    if user_id is not None:
        users = users.filter(User.id == user_id)
    for user in users.all():
        plans = load_routine_plans(db, user.id, active_only=True)
        if not plans:
            continue
        planned = generate_planned_logs(plans, target_date, target_date)
        result = apply_planned_logs(db, user.id, planned)
        summary["total_routines_processed"] += len(plans)
        summary["auto_logs_created"] += result.created
        summary["skipped"] += result.skipped
        summary["errors"] += len(result.errors)
        details.append({"user_id": user.id, **result.to_dict()})
    logger.info(
        "batch.auto_logs date=%s routines=%d created=%d skipped=%d",
        target_date.isoformat(), summary["total_routines_processed"], summary["auto_logs_created"], summary["skipped"],
    )
    return {"summary": summary, "details": details}


__all__ = [
    "BatchLogResult",
    "parse_time_of_day",
    "planned_timestamp",
    "coerce_value",
    "preferred_unit",
    "apply_planned_logs",
    "create_auto_logs",
]
