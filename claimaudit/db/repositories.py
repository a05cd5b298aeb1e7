from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from claimaudit.core.constants import AuditStatus
from claimaudit.db import models
from claimaudit.review.roles import active_auditors, parse_role

ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    model: type[ModelT]

    def __init__(self, db: Session):
        self.db = db

    def create(self, **kwargs) -> ModelT:
        entity = self.model(**kwargs)
        self.db.add(entity)
        self.db.flush()
        return entity

    def get(self, entity_id: Any) -> ModelT | None:
        return self.db.get(self.model, entity_id)

    def list(self, limit: int = 100, offset: int = 0) -> list[ModelT]:
        stmt = select(self.model).offset(offset).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def update(self, entity: ModelT, **kwargs) -> ModelT:
        for key, value in kwargs.items():
            setattr(entity, key, value)
        self.db.flush()
        return entity


class CaseAuditRepository(BaseRepository[models.CaseAudit]):
    """Authoritative store of case audits.  Records are never deleted."""

    model = models.CaseAudit

    def add_all(self, records: Iterable[models.CaseAudit]) -> list[models.CaseAudit]:
        added = list(records)
        self.db.add_all(added)
        self.db.flush()
        return added

    def list_for_quarter(self, quarter_key: str) -> list[models.CaseAudit]:
        stmt = (
            select(models.CaseAudit)
            .where(models.CaseAudit.quarter_key == quarter_key)
            .order_by(models.CaseAudit.created_at.asc(), models.CaseAudit.id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def count_for_quarter(self, quarter_key: str) -> int:
        stmt = select(func.count()).select_from(models.CaseAudit).where(
            models.CaseAudit.quarter_key == quarter_key
        )
        return int(self.db.execute(stmt).scalar_one())

    def existing_ids(self, case_ids: Iterable[str]) -> set[str]:
        ids = list(set(case_ids))
        if not ids:
            return set()
        stmt = select(models.CaseAudit.id).where(models.CaseAudit.id.in_(ids))
        return set(self.db.execute(stmt).scalars().all())

    def has_other_completed(self, owner_user_id: str, quarter_key: str, exclude_id: str) -> bool:
        """Whether *owner_user_id* has a COMPLETED record in the quarter besides *exclude_id*."""
        stmt = (
            select(func.count())
            .select_from(models.CaseAudit)
            .where(
                models.CaseAudit.owner_user_id == owner_user_id,
                models.CaseAudit.quarter_key == quarter_key,
                models.CaseAudit.status == AuditStatus.COMPLETED.value,
                models.CaseAudit.id != exclude_id,
            )
        )
        return int(self.db.execute(stmt).scalar_one()) > 0


class QuarterlyStatusRepository(BaseRepository[models.QuarterlyUserStatus]):
    model = models.QuarterlyUserStatus

    def get_status(self, user_id: str, quarter_key: str) -> models.QuarterlyUserStatus | None:
        return self.db.get(models.QuarterlyUserStatus, (user_id, quarter_key))

    def upsert(
        self,
        user_id: str,
        quarter_key: str,
        *,
        completed: bool,
        last_completed_at: datetime | None = None,
    ) -> models.QuarterlyUserStatus:
        """Set the rollup; ``last_completed_at`` is only ever moved, never cleared."""
        status = self.get_status(user_id, quarter_key)
        if status is None:
            return self.create(
                user_id=user_id,
                quarter_key=quarter_key,
                completed=completed,
                last_completed_at=last_completed_at,
            )
        changes: dict[str, object] = {"completed": completed}
        if last_completed_at is not None:
            changes["last_completed_at"] = last_completed_at
        return self.update(status, **changes)


class RosterRepository(BaseRepository[models.RosterUser]):
    model = models.RosterUser

    def upsert(
        self,
        user_id: str,
        *,
        role: str,
        enabled: bool = True,
        display_name: str | None = None,
        department: str | None = None,
    ) -> models.RosterUser:
        parse_role(role)
        entry = self.get(user_id)
        if entry is None:
            return self.create(
                user_id=user_id,
                role=role,
                enabled=enabled,
                display_name=display_name,
                department=department,
            )
        return self.update(
            entry,
            role=role,
            enabled=enabled,
            display_name=display_name,
            department=department,
        )

    def all_users(self) -> list[models.RosterUser]:
        stmt = select(models.RosterUser).order_by(models.RosterUser.user_id.asc())
        return list(self.db.execute(stmt).scalars().all())

    def active_auditors(self) -> list[models.RosterUser]:
        return active_auditors(self.all_users())

    def role_of(self, user_id: str) -> str | None:
        """Role of an enabled user, or ``None`` for unknown and disabled users."""
        entry = self.get(user_id) if user_id else None
        if entry is None or not entry.enabled:
            return None
        return entry.role


class QuarterSelectionRepository(BaseRepository[models.QuarterSelection]):
    model = models.QuarterSelection

    def lock(self, quarter_key: str) -> models.QuarterSelection:
        """Return the quarter's selection row, locked for this transaction.

        A missing row is added to the session but not flushed; a writer that
        loses the race to create it fails on the primary key at flush time.
        """
        stmt = (
            select(models.QuarterSelection)
            .where(models.QuarterSelection.quarter_key == quarter_key)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = self.db.execute(stmt).scalar_one_or_none()
        if row is None:
            row = models.QuarterSelection(quarter_key=quarter_key, runs=0)
            self.db.add(row)
        return row
