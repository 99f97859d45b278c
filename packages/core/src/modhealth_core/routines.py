"""Routine persistence helpers.

Maps stored routines onto the frozen inputs ``modhealth_core.planner``
expects, and holds the small parsing/validation helpers shared by the API.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session, selectinload

from modhealth_core.models import Routine, RoutineVariable
from modhealth_core.planner import RoutinePlan, RoutineTime, RoutineVariablePlan

logger = logging.getLogger("modhealth_core.routines")

TIME_OF_DAY_RE = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")
ALL_WEEKDAYS = frozenset(range(1, 8))


def parse_weekdays(raw: Optional[str]) -> frozenset:
    """Parse ``"1,3,5"`` into ``frozenset({1, 3, 5})``; unknown tokens are dropped."""
    if not raw:
        return frozenset()
    days = set()
    for token in raw.split(","):
        token = token.strip()
        if not token:
            continue
        try:
            day = int(token)
        except ValueError:
            logger.warning("routines.weekdays ignored token=%r", token)
            continue
        if day in ALL_WEEKDAYS:
            days.add(day)
    return frozenset(days)


def format_weekdays(days: Iterable[int]) -> str:
    return ",".join(str(d) for d in sorted(set(days)))


def validate_time_of_day(value: str) -> bool:
    return bool(TIME_OF_DAY_RE.match(value or ""))


def routine_to_plan(routine: Routine) -> RoutinePlan:
    variables: List[RoutineVariablePlan] = []
    for rv in routine.variables:
        var = rv.variable
        variables.append(
            RoutineVariablePlan(
                variable_id=str(rv.variable_id),
                variable_name=var.name if var is not None else str(rv.variable_id),
                variable_slug=var.slug if var is not None else "",
                default_value=rv.default_value,
                default_unit=rv.default_unit or None,
                weekdays=parse_weekdays(rv.weekdays),
                times=tuple(RoutineTime(time_of_day=t.time_of_day, name=t.name or "") for t in rv.times),
            )
        )
    return RoutinePlan(id=str(routine.id), name=routine.name, variables=tuple(variables))


def query_routines(db: Session, user_id: Optional[int] = None, routine_ids: Optional[Iterable[int]] = None, active_only: bool = False):
    q = db.query(Routine).options(
        selectinload(Routine.variables).selectinload(RoutineVariable.times),
        selectinload(Routine.variables).selectinload(RoutineVariable.variable),
    )
    if user_id is not None:
        q = q.filter(Routine.user_id == user_id)
    if routine_ids is not None:
        q = q.filter(Routine.id.in_(list(routine_ids)))
    if active_only:
        q = q.filter(Routine.is_active.is_(True))
    return q.order_by(Routine.id)


def load_routine_plans(db: Session, user_id: int, routine_ids: Optional[Iterable[int]] = None, active_only: bool = True) -> List[RoutinePlan]:
    routines = query_routines(db, user_id=user_id, routine_ids=routine_ids, active_only=active_only).all()
    plans = [routine_to_plan(r) for r in routines]
    logger.debug("routines.load user=%s count=%d", user_id, len(plans))
    return plans


__all__ = [
    "TIME_OF_DAY_RE",
    "ALL_WEEKDAYS",
    "parse_weekdays",
    "format_weekdays",
    "validate_time_of_day",
    "routine_to_plan",
    "query_routines",
    "load_routine_plans",
]
