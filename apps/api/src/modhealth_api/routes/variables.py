from fastapi import APIRouter, Depends, HTTPException
import logging
import re
from pydantic import BaseModel
from typing import Optional
from sqlalchemy.orm import Session
from modhealth_core.auth import get_current_user, get_db
from modhealth_core.models import DATA_TYPES, UserVariablePreference, Variable

router = APIRouter(prefix="/variables", tags=["variables"])
log = logging.getLogger("modhealth_api")


class VariableCreateRequest(BaseModel):
    name: str
    data_type: str = "continuous"
    default_unit: Optional[str] = None
    slug: Optional[str] = None


class PreferenceRequest(BaseModel):
    display_unit: Optional[str] = None


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", name.strip().lower()).strip("_")


def variable_out(v: Variable) -> dict:
    return {"id": v.id, "name": v.name, "slug": v.slug, "data_type": v.data_type, "default_unit": v.default_unit}


@router.get("/")
def list_variables(user = Depends(get_current_user), db: Session = Depends(get_db)):
    items = db.query(Variable).order_by(Variable.name).all()
    log.info("variables.list count=%d actor=%s", len(items), user.username)
    return [variable_out(v) for v in items]


@router.post("/")
def create_variable(data: VariableCreateRequest, user = Depends(get_current_user), db: Session = Depends(get_db)):
    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Variable name is required")
    if data.data_type not in DATA_TYPES:
        raise HTTPException(status_code=400, detail=f"data_type must be one of {', '.join(DATA_TYPES)}")
    slug = slugify(data.slug or name)
    if not slug:
        raise HTTPException(status_code=400, detail="Variable slug is empty")
    if db.query(Variable).filter(Variable.slug == slug).first():
        log.warning("variables.create conflict slug=%s actor=%s", slug, user.username)
        raise HTTPException(status_code=400, detail="Variable already exists")
    variable = Variable(name=name, slug=slug, data_type=data.data_type, default_unit=data.default_unit or None)
    db.add(variable)
    db.commit()
    db.refresh(variable)
    log.info("variables.create id=%s slug=%s actor=%s", variable.id, slug, user.username)
    return variable_out(variable)


@router.delete("/{variable_id}/")
def delete_variable(variable_id: int, user = Depends(get_current_user), db: Session = Depends(get_db)):
    variable = db.get(Variable, variable_id)
    if not variable:
        raise HTTPException(status_code=404, detail="Variable not found")
    db.delete(variable)
    db.commit()
    log.info("variables.delete ok id=%s actor=%s", variable_id, user.username)
    return {"status": "deleted"}


@router.put("/{variable_id}/preference")
def set_preference(variable_id: int, data: PreferenceRequest, user = Depends(get_current_user), db: Session = Depends(get_db)):
    if not db.get(Variable, variable_id):
        raise HTTPException(status_code=404, detail="Variable not found")
    pref = (
        db.query(UserVariablePreference)
        .filter(UserVariablePreference.user_id == user.id, UserVariablePreference.variable_id == variable_id)
        .first()
    )
    if pref is None:
        pref = UserVariablePreference(user_id=user.id, variable_id=variable_id)
        db.add(pref)
    pref.display_unit = data.display_unit or None
    db.commit()
    log.info("variables.preference id=%s unit=%s actor=%s", variable_id, pref.display_unit, user.username)
    return {"variable_id": variable_id, "display_unit": pref.display_unit}
