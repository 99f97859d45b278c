"""ORM models."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from modhealth_core.db import Base

DATA_TYPES = ("continuous", "boolean", "categorical", "time", "text")


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    username = Column(String, unique=True, index=True)
    password_hash = Column(String)


class Variable(Base):
    __tablename__ = "variables"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)
    data_type = Column(String, nullable=False, default="continuous")
    default_unit = Column(String, nullable=True)


class UserVariablePreference(Base):
    __tablename__ = "user_variable_preferences"
    __table_args__ = (UniqueConstraint("user_id", "variable_id", name="uq_user_variable_pref"),)
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    variable_id = Column(Integer, ForeignKey("variables.id", ondelete="CASCADE"), nullable=False)
    display_unit = Column(String, nullable=True)


class Routine(Base):
    __tablename__ = "routines"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    name = Column(String, nullable=False)
    notes = Column(Text, default="")
    is_active = Column(Boolean, default=True, nullable=False)

    variables = relationship(
        "RoutineVariable",
        back_populates="routine",
        cascade="all, delete-orphan",
        order_by="RoutineVariable.id",
    )


class RoutineVariable(Base):
    __tablename__ = "routine_variables"
    id = Column(Integer, primary_key=True)
    routine_id = Column(Integer, ForeignKey("routines.id", ondelete="CASCADE"), index=True, nullable=False)
    variable_id = Column(Integer, ForeignKey("variables.id", ondelete="CASCADE"), nullable=False)
    default_value = Column(String, nullable=False)
    default_unit = Column(String, nullable=True)
    weekdays = Column(String, nullable=False, default="1,2,3,4,5,6,7")  # ISO numbers, e.g. "1,3,5"

    routine = relationship("Routine", back_populates="variables")
    variable = relationship("Variable")
    times = relationship(
        "RoutineVariableTime",
        back_populates="routine_variable",
        cascade="all, delete-orphan",
        order_by="RoutineVariableTime.display_order",
    )


class RoutineVariableTime(Base):
    __tablename__ = "routine_variable_times"
    id = Column(Integer, primary_key=True)
    routine_variable_id = Column(Integer, ForeignKey("routine_variables.id", ondelete="CASCADE"), index=True, nullable=False)
    time_of_day = Column(String, nullable=False)  # e.g. "08:00"
    name = Column(String, default="")
    display_order = Column(Integer, default=0)

    routine_variable = relationship("RoutineVariable", back_populates="times")


class VariableLog(Base):
    __tablename__ = "variable_logs"
    __table_args__ = (UniqueConstraint("user_id", "variable_id", "logged_at", name="uq_variable_log_slot"),)
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    variable_id = Column(Integer, ForeignKey("variables.id", ondelete="CASCADE"), index=True, nullable=False)
    display_value = Column(String, nullable=False)
    display_unit = Column(String, nullable=True)
    source = Column(String, default="manual")
    logged_at = Column(DateTime, index=True, nullable=False)
    notes = Column(Text, default="")


__all__ = [
    "DATA_TYPES",
    "User",
    "Variable",
    "UserVariablePreference",
    "Routine",
    "RoutineVariable",
    "RoutineVariableTime",
    "VariableLog",
]
