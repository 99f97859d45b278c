"""Planned routine log generation.

Expands routine rules (variable x weekday x time of day) over an inclusive
date range into candidate log entries the user can review before anything is
persisted. Everything here is pure: inputs are frozen dataclasses, outputs are
new lists, and no function touches the database.

Review helpers (grouping, filtering, toggling) return new lists as well, so
callers keep their own copy of the review state.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from datetime import date, timedelta
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

DateLike = Union[date, str]

GROUP_MODES = ("routine", "date", "variable")
FILTER_MODES = ("all", "enabled", "disabled")


@dataclass(frozen=True)
class RoutineTime:
    time_of_day: str
    name: str = ""


@dataclass(frozen=True)
class RoutineVariablePlan:
    variable_id: str
    variable_name: str
    default_value: str
    default_unit: Optional[str] = None
    variable_slug: str = ""
    weekdays: FrozenSet[int] = frozenset()
    times: Tuple[RoutineTime, ...] = ()


@dataclass(frozen=True)
class RoutinePlan:
    id: str
    name: str
    variables: Tuple[RoutineVariablePlan, ...] = ()


@dataclass(frozen=True)
class PlannedRoutineLog:
    id: str
    routine_id: str
    routine_name: str
    variable_id: str
    variable_name: str
    date: str
    time_of_day: str
    default_value: str
    time_name: str = ""
    default_unit: Optional[str] = None
    variable_slug: str = ""
    weekday: int = 0
    enabled: bool = True

    def to_dict(self) -> Dict:
        return asdict(self)


def _as_date(value: DateLike) -> date:
    if isinstance(value, date):
        return value
    # Malformed strings raise ValueError for the caller.
    return date.fromisoformat(value)


def iso_weekday(day: date) -> int:
    """1 = Monday .. 7 = Sunday."""
    return day.isoweekday()


def date_range(start_date: DateLike, end_date: DateLike) -> Iterator[date]:
    """Yield every day in ``[start_date, end_date]``; nothing if start > end."""
    current = _as_date(start_date)
    end = _as_date(end_date)
    while current <= end:
        yield current
        current += timedelta(days=1)


def is_eligible(variable: RoutineVariablePlan) -> bool:
    return bool(variable.weekdays) and bool(variable.times)


def planned_log_id(routine_id: str, variable_id: str, day: str, time_of_day: str) -> str:
    return f"{routine_id}_{variable_id}_{day}_{time_of_day}"


def generate_planned_logs(
    routines: Sequence[RoutinePlan],
    start_date: DateLike,
    end_date: DateLike,
) -> List[PlannedRoutineLog]:
    """Expand ``routines`` over ``[start_date, end_date]`` inclusive.

    One entry is emitted per (day, routine, variable, time) whose variable
    runs on that day's ISO weekday. Entries are not deduplicated against
    persisted logs; that happens when the selection is applied.
    """
    planned: List[PlannedRoutineLog] = []
    for day in date_range(start_date, end_date):
        weekday = iso_weekday(day)
        day_str = day.isoformat()
        for routine in routines:
            for variable in routine.variables:
                if weekday not in variable.weekdays:
                    continue
                for entry in variable.times:
                    planned.append(
                        PlannedRoutineLog(
                            id=planned_log_id(str(routine.id), str(variable.variable_id), day_str, entry.time_of_day),
                            routine_id=str(routine.id),
                            routine_name=routine.name,
                            variable_id=str(variable.variable_id),
                            variable_name=variable.variable_name,
                            variable_slug=variable.variable_slug,
                            date=day_str,
                            time_of_day=entry.time_of_day,
                            time_name=entry.name or "",
                            default_value=variable.default_value,
                            default_unit=variable.default_unit or None,
                            weekday=weekday,
                            enabled=True,
                        )
                    )
    return planned


# ---- Review helpers ----

def _group(logs: Iterable[PlannedRoutineLog], key) -> Dict[str, List[PlannedRoutineLog]]:
    grouped: Dict[str, List[PlannedRoutineLog]] = {}
    for log in logs:
        grouped.setdefault(key(log), []).append(log)
    return grouped


def group_by_routine(logs: Iterable[PlannedRoutineLog]) -> Dict[str, List[PlannedRoutineLog]]:
    return _group(logs, lambda log: log.routine_id)


def group_by_date(logs: Iterable[PlannedRoutineLog]) -> Dict[str, List[PlannedRoutineLog]]:
    return _group(logs, lambda log: log.date)


def group_by_variable(logs: Iterable[PlannedRoutineLog]) -> Dict[str, List[PlannedRoutineLog]]:
    return _group(logs, lambda log: log.variable_id)


def group_logs(logs: Iterable[PlannedRoutineLog], mode: str = "routine") -> Dict[str, List[PlannedRoutineLog]]:
    if mode == "date":
        return group_by_date(logs)
    if mode == "variable":
        return group_by_variable(logs)
    return group_by_routine(logs)


def group_display_name(group_key: str, mode: str, logs: Optional[Sequence[PlannedRoutineLog]] = None) -> str:
    """Human label for a group key, e.g. ``"Monday, Jan 1, 2024"`` for dates."""
    if mode == "date":
        day = _as_date(group_key)
        return f"{day.strftime('%A, %b')} {day.day}, {day.year}"
    if mode == "variable":
        return logs[0].variable_name if logs else group_key
    if mode == "routine":
        return logs[0].routine_name if logs else group_key
    return group_key


def filter_logs(logs: Sequence[PlannedRoutineLog], mode: str = "all", search: str = "") -> List[PlannedRoutineLog]:
    if mode not in FILTER_MODES:
        raise ValueError(f"unknown filter mode: {mode}")
    out = list(logs)
    if mode == "enabled":
        out = [log for log in out if log.enabled]
    elif mode == "disabled":
        out = [log for log in out if not log.enabled]
    if search:
        term = search.lower()
        out = [
            log for log in out
            if term in log.routine_name.lower()
            or term in log.variable_name.lower()
            or term in (log.time_name or "").lower()
            or term in log.date
        ]
    return out


def toggle_log(logs: Sequence[PlannedRoutineLog], log_id: str) -> List[PlannedRoutineLog]:
    return [replace(log, enabled=not log.enabled) if log.id == log_id else log for log in logs]


def toggle_group(logs: Sequence[PlannedRoutineLog], group: Sequence[PlannedRoutineLog]) -> List[PlannedRoutineLog]:
    """Disable the group if it is fully enabled, otherwise enable all of it."""
    ids = {log.id for log in group}
    all_enabled = all(log.enabled for log in group)
    return [replace(log, enabled=not all_enabled) if log.id in ids else log for log in logs]


def toggle_all(logs: Sequence[PlannedRoutineLog], visible: Optional[Sequence[PlannedRoutineLog]] = None) -> List[PlannedRoutineLog]:
    """Flip every entry based on whether ``visible`` (default: all) is fully enabled."""
    reference = logs if visible is None else visible
    all_enabled = all(log.enabled for log in reference)
    return [replace(log, enabled=not all_enabled) for log in logs]


def selected_logs(logs: Sequence[PlannedRoutineLog]) -> List[PlannedRoutineLog]:
    return [log for log in logs if log.enabled]


__all__ = [
    "RoutineTime",
    "RoutineVariablePlan",
    "RoutinePlan",
    "PlannedRoutineLog",
    "GROUP_MODES",
    "FILTER_MODES",
    "iso_weekday",
    "date_range",
    "is_eligible",
    "planned_log_id",
    "generate_planned_logs",
    "group_by_routine",
    "group_by_date",
    "group_by_variable",
    "group_logs",
    "group_display_name",
    "filter_logs",
    "toggle_log",
    "toggle_group",
    "toggle_all",
    "selected_logs",
]
