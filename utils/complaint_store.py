"""Relational access to the entity directory and complaints."""
from __future__ import annotations

from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from flask import current_app
from sqlalchemy import case, func, or_, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import contains_eager

from extensions import db
from models import COMPLAINT_STATUSES, DEFAULT_COMPLAINT_STATUS, DEFAULT_ENTITIES, MAX_ROW_ID, Complaint, Entity

ENTITY_MATCH_MODES: tuple[str, ...] = ("substring", "exact")


def is_storable_id(value) -> bool:
    """True when ``value`` fits the INTEGER primary key columns."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value <= MAX_ROW_ID


class StorageError(Exception):
    """Raised when the database cannot complete an operation."""


class ReferentialError(StorageError):
    """Raised when a complaint would reference an entity that does not exist."""


class ComplaintStore:
    """CRUD and aggregate queries over ``entities`` and ``complaints``.

    Every write commits on its own; on failure the session is rolled back so
    no partial row survives.
    """

    def __init__(self, session=None, clock: Callable[[], datetime] = datetime.utcnow) -> None:
        self._session = session
        self._clock = clock

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def _fail(self, operation: str, exc: Exception, **context) -> StorageError:
        self.session.rollback()
        current_app.logger.exception(
            "Storage operation failed",
            extra={"operation": operation, **context, "error": str(exc)},
        )
        return StorageError(f"{operation} failed")

    # ------------------------------------------------------------------ entities

    def list_entities(self, active_only: bool = True) -> List[Entity]:
        try:
            query = self.session.query(Entity)
            if active_only:
                query = query.filter(Entity.active.is_(True))
            return query.order_by(Entity.name.asc()).all()
        except SQLAlchemyError as exc:
            raise self._fail("list_entities", exc) from exc

    def get_entity_by_id(self, entity_id: int) -> Optional[Entity]:
        if not is_storable_id(entity_id):
            return None
        try:
            return self.session.get(Entity, entity_id)
        except SQLAlchemyError as exc:
            raise self._fail("get_entity_by_id", exc, entity_id=entity_id) from exc

    def find_entity_by_name(self, name: str, match: str = "substring") -> Optional[Entity]:
        """Resolve a textual entity reference.

        ``substring`` is a lenient case-insensitive contains-match where the
        first entity in name order wins; ``exact`` compares case-insensitively
        against the whole name.
        """
        if match not in ENTITY_MATCH_MODES:
            raise ValueError(f"Unsupported entity match mode: {match}")
        needle = (name or "").strip()
        if not needle:
            return None
        try:
            if match == "exact":
                criterion = func.lower(Entity.name) == needle.lower()
            else:
                escaped = needle.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
                criterion = Entity.name.ilike(f"%{escaped}%", escape="\\")
            return self.session.query(Entity).filter(criterion).order_by(Entity.name.asc()).first()
        except SQLAlchemyError as exc:
            raise self._fail("find_entity_by_name", exc, entity_name=needle) from exc

    def seed_entities(self, rows=DEFAULT_ENTITIES) -> int:
        """Insert the default directory when the entities table is empty."""
        try:
            if self.session.query(Entity).count():
                return 0
            for row in rows:
                self.session.add(Entity(**row))
            self.session.commit()
            return len(rows)
        except SQLAlchemyError as exc:
            raise self._fail("seed_entities", exc) from exc

    # ---------------------------------------------------------------- complaints

    def create_complaint(
        self,
        entity_id: int,
        description: str,
        origin_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Complaint:
        if not is_storable_id(entity_id):
            raise ReferentialError(f"Entity {entity_id} does not exist")
        try:
            if self.session.get(Entity, entity_id) is None:
                raise ReferentialError(f"Entity {entity_id} does not exist")
            now = self._clock()
            complaint = Complaint(
                entity_id=entity_id,
                description=description,
                status=DEFAULT_COMPLAINT_STATUS,
                origin_ip=origin_ip,
                user_agent=(user_agent or "")[:255] or None,
                created_at=now,
                updated_at=now,
            )
            self.session.add(complaint)
            self.session.commit()
            return complaint
        except IntegrityError as exc:
            self.session.rollback()
            current_app.logger.warning(
                "Complaint rejected by referential constraint",
                extra={"entity_id": entity_id, "error": str(exc.orig)},
            )
            raise ReferentialError(f"Entity {entity_id} does not exist") from exc
        except SQLAlchemyError as exc:
            raise self._fail("create_complaint", exc, entity_id=entity_id) from exc

    def get_complaint_by_id(self, complaint_id: int) -> Optional[Complaint]:
        if not is_storable_id(complaint_id):
            return None
        try:
            return self.session.get(Complaint, complaint_id)
        except SQLAlchemyError as exc:
            raise self._fail("get_complaint_by_id", exc, complaint_id=complaint_id) from exc

    def _joined_complaints(self):
        return (
            self.session.query(Complaint).join(Entity, Complaint.entity_id == Entity.id)
            .options(contains_eager(Complaint.entity))
            .order_by(Complaint.created_at.desc(), Complaint.id.desc())
        )

    def list_complaints(self, status: Optional[str] = None) -> List[Complaint]:
        try:
            query = self._joined_complaints()
            if status:
                query = query.filter(Complaint.status == status)
            return query.all()
        except SQLAlchemyError as exc:
            raise self._fail("list_complaints", exc, status=status) from exc

    def list_complaints_by_entity(self, entity_id: int) -> List[Complaint]:
        if not is_storable_id(entity_id):
            return []
        try:
            return self._joined_complaints().filter(Complaint.entity_id == entity_id).all()
        except SQLAlchemyError as exc:
            raise self._fail("list_complaints_by_entity", exc, entity_id=entity_id) from exc

    def count_complaints(self) -> int:
        try:
            return self.session.query(Complaint).count()
        except SQLAlchemyError as exc:
            raise self._fail("count_complaints", exc) from exc

    def update_status(self, complaint_id: int, new_status: str) -> bool:
        if new_status not in COMPLAINT_STATUSES:
            raise ValueError(f"Invalid complaint status: {new_status}")
        if not is_storable_id(complaint_id):
            return False
        try:
            complaint = self.session.get(Complaint, complaint_id)
            if complaint is None:
                return False
            complaint.status = new_status
            complaint.updated_at = self._clock()
            self.session.commit()
            return True
        except SQLAlchemyError as exc:
            raise self._fail("update_status", exc, complaint_id=complaint_id, status=new_status) from exc

    def delete_complaint(self, complaint_id: int) -> bool:
        if not is_storable_id(complaint_id):
            return False
        try:
            complaint = self.session.get(Complaint, complaint_id)
            if complaint is None:
                return False
            self.session.delete(complaint)
            self.session.commit()
            return True
        except SQLAlchemyError as exc:
            raise self._fail("delete_complaint", exc, complaint_id=complaint_id) from exc

    # ---------------------------------------------------------------- aggregates

    def aggregate_by_entity(self) -> List[Dict]:
        """Complaint counts per entity, busiest first.

        Active entities appear even with zero complaints; inactive ones only
        when they still hold complaints, so the counts always add up to the
        total number of complaints.
        """
        total = func.count(Complaint.id)
        try:
            rows = (
                self.session.query(Entity.id, Entity.name, total.label("total"))
                .outerjoin(Complaint, Complaint.entity_id == Entity.id)
                .group_by(Entity.id, Entity.name, Entity.active)
                .having(or_(Entity.active.is_(True), total > 0))
                .order_by(total.desc(), Entity.name.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            raise self._fail("aggregate_by_entity", exc) from exc
        return [{"entity_id": row.id, "entity_name": row.name, "count": int(row.total)} for row in rows]

    def aggregate_by_status(self) -> List[Dict]:
        try:
            rows = (
                self.session.query(Complaint.status, func.count(Complaint.id))
                .group_by(Complaint.status)
                .all()
            )
        except SQLAlchemyError as exc:
            raise self._fail("aggregate_by_status", exc) from exc
        counts = {status: int(count) for status, count in rows}
        return [{"status": status, "count": counts.get(status, 0)} for status in COMPLAINT_STATUSES]

    def aggregate_by_month(self, months: int = 12) -> List[Dict]:
        """Complaint counts per ``YYYY-MM`` for the trailing ``months`` months, newest first."""
        now = self._clock()
        buckets: "OrderedDict[str, int]" = OrderedDict()
        year, month = now.year, now.month
        for _ in range(max(months, 0)):
            buckets[f"{year:04d}-{month:02d}"] = 0
            month -= 1
            if month == 0:
                year, month = year - 1, 12
        if not buckets:
            return []
        oldest = next(reversed(buckets))
        cutoff = datetime(int(oldest[:4]), int(oldest[5:]), 1)
        try:
            stamps = (
                self.session.query(Complaint.created_at)
                .filter(Complaint.created_at >= cutoff)
                .all()
            )
        except SQLAlchemyError as exc:
            raise self._fail("aggregate_by_month", exc, months=months) from exc
        for (created_at,) in stamps:
            key = created_at.strftime("%Y-%m")
            if key in buckets:
                buckets[key] += 1
        return [{"month": key, "count": count} for key, count in buckets.items()]

    def general_stats(self) -> Dict:
        recent_cutoff = self._clock() - timedelta(days=30)
        try:
            row = self.session.query(
                func.count(Complaint.id),
                func.sum(case((Complaint.status == "pending", 1), else_=0)),
                func.sum(case((Complaint.status == "in_progress", 1), else_=0)),
                func.sum(case((Complaint.status == "resolved", 1), else_=0)),
                func.sum(case((Complaint.status == "rejected", 1), else_=0)),
                func.sum(case((Complaint.created_at >= recent_cutoff, 1), else_=0)),
            ).one()
            active_entities = self.session.query(Entity).filter(Entity.active.is_(True)).count()
        except SQLAlchemyError as exc:
            raise self._fail("general_stats", exc) from exc
        total, pending, in_progress, resolved, rejected, recent = (int(value or 0) for value in row)
        return {
            "total_complaints": total,
            "pending": pending,
            "in_progress": in_progress,
            "resolved": resolved,
            "rejected": rejected,
            "last_30_days": recent,
            "active_entities": active_entities,
        }

    def health_check(self) -> bool:
        try:
            self.session.execute(text("SELECT 1")).scalar()
            return True
        except SQLAlchemyError as exc:
            self.session.rollback()
            current_app.logger.error("Storage health check failed", extra={"error": str(exc)})
            return False
