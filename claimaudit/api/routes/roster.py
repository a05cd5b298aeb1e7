"""Roster routes — the users who own and audit cases."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from claimaudit.api.deps import get_db
from claimaudit.db.models import RosterUser
from claimaudit.db.repositories import RosterRepository

router = APIRouter(prefix="/roster", tags=["roster"])


class RosterBody(BaseModel):
    role: str
    enabled: bool = True
    display_name: str | None = None
    department: str | None = None


def _serialize_user(user: RosterUser) -> dict:
    return {
        "user_id": user.user_id,
        "display_name": user.display_name,
        "role": user.role,
        "department": user.department,
        "enabled": user.enabled,
    }


@router.get("", summary="List roster users")
def list_roster(db: Session = Depends(get_db)):
    return [_serialize_user(u) for u in RosterRepository(db).all_users()]


@router.put("/{user_id}", summary="Create or update a roster user")
def put_roster_user(user_id: str, body: RosterBody, db: Session = Depends(get_db)):
    try:
        user = RosterRepository(db).upsert(
            user_id,
            role=body.role,
            enabled=body.enabled,
            display_name=body.display_name,
            department=body.department,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _serialize_user(user)
