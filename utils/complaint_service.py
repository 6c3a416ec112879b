"""Request orchestration: rate gate, validation, referential checks, persistence."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from models import COMPLAINT_STATUSES
from utils.audit import AuditSink
from utils.complaint_store import ComplaintStore, ReferentialError, StorageError
from utils.rate_limiter import RateLimiter
from utils.validation import ComplaintInput, ValidationRules, is_valid_status, parse_entity_id

HTTP_STATUS: Dict[str, int] = {
    "ok": 200,
    "created": 201,
    "updated": 200,
    "deleted": 200,
    "invalid_input": 400,
    "invalid_entity": 400,
    "invalid_status": 400,
    "not_found": 404,
    "too_many_requests": 429,
    "storage_error": 503,
    "internal_error": 500,
}

SUCCESS_STATES = frozenset({"ok", "created", "updated", "deleted"})

STORAGE_ERROR_MESSAGE = "The complaint service is temporarily unavailable. Please try again later."


@dataclass
class Outcome:
    """Terminal state of a handled request."""

    status: str
    data: Any = None
    message: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    retry_after: Optional[int] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.status not in HTTP_STATUS:
            raise ValueError(f"Unknown outcome status: {self.status}")

    @property
    def success(self) -> bool:
        return self.status in SUCCESS_STATES

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self.status]


class ComplaintService:
    def __init__(
        self,
        store: ComplaintStore,
        limiter: Optional[RateLimiter] = None,
        audit: Optional[AuditSink] = None,
        rules: Optional[ValidationRules] = None,
        entity_match: str = "substring",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.limiter = limiter
        self.audit = audit
        self.rules = rules or ValidationRules()
        self.entity_match = entity_match
        self.logger = logger or logging.getLogger(__name__)

    def _audit(self, operation_type: str, client_id: Optional[str], details: Mapping[str, Any], user_agent: Optional[str] = None) -> None:
        if self.audit is None:
            return
        try:
            self.audit.emit(operation_type, client_id, details, user_agent=user_agent)
        except Exception:
            self.logger.exception("Audit sink raised", extra={"operation_type": operation_type})

    def _storage_failure(self) -> Outcome:
        return Outcome("storage_error", message=STORAGE_ERROR_MESSAGE)

    # ------------------------------------------------------------------- writes

    def submit_complaint(
        self,
        payload: Mapping[str, Any],
        client_id: str,
        user_agent: Optional[str] = None,
        now: Optional[float] = None,
    ) -> Outcome:
        if self.limiter is not None and not self.limiter.allow(client_id, now):
            retry_after = self.limiter.retry_after(client_id, now)
            self.logger.warning(
                "Complaint rate limit exceeded",
                extra={"client_id": client_id, "limiter": self.limiter.name, "retry_after": retry_after},
            )
            return Outcome(
                "too_many_requests",
                message=f"Complaint limit reached. At most {self.limiter.max_requests} complaints per window are accepted.",
                retry_after=retry_after,
            )

        submission = ComplaintInput.from_payload(payload, self.rules)
        if not submission.is_valid:
            return Outcome("invalid_input", message="Invalid complaint data", errors=submission.errors)

        entity_id = submission.entity_id
        description = submission.description

        try:
            entity = self.store.get_entity_by_id(entity_id)
            if entity is None:
                return Outcome("invalid_entity", message="Invalid entity", errors=[f"Entity {entity_id} does not exist"])
            complaint = self.store.create_complaint(entity_id, description, origin_ip=client_id, user_agent=user_agent)
            data = complaint.to_dict()
        except ReferentialError:
            return Outcome("invalid_entity", message="Invalid entity", errors=[f"Entity {entity_id} does not exist"])
        except StorageError:
            return self._storage_failure()
        except Exception:  # pragma: no cover - safety net
            self.logger.exception("Unexpected error creating complaint", extra={"client_id": client_id})
            return Outcome("internal_error", message="Unexpected error. Please try again shortly.")

        self.logger.info("Complaint created", extra={"complaint_id": data["id"], "entity_id": entity_id, "client_id": client_id})
        self._audit(
            "CREATE_COMPLAINT",
            client_id,
            {"complaint_id": data["id"], "entity_id": entity_id, "entity_name": data["entity_name"]},
            user_agent,
        )
        return Outcome("created", data=data, message="Complaint created successfully")

    def update_status(self, complaint_id: int, new_status: Any, client_id: Optional[str] = None) -> Outcome:
        if not is_valid_status(new_status):
            return Outcome(
                "invalid_status",
                message="Invalid status",
                errors=[f"Status must be one of: {', '.join(COMPLAINT_STATUSES)}"],
                meta={"valid_statuses": list(COMPLAINT_STATUSES)},
            )
        try:
            complaint = self.store.get_complaint_by_id(complaint_id)
            if complaint is None:
                return Outcome("not_found", message="Complaint not found")
            previous_status = complaint.status
            if not self.store.update_status(complaint_id, new_status):
                return Outcome("not_found", message="Complaint not found")
        except StorageError:
            return self._storage_failure()

        self._audit(
            "UPDATE_STATUS",
            client_id,
            {"complaint_id": complaint_id, "previous_status": previous_status, "new_status": new_status},
        )
        return Outcome(
            "updated",
            data={"id": complaint_id, "previous_status": previous_status, "new_status": new_status},
            message="Status updated successfully",
        )

    def delete_complaint(self, complaint_id: int, client_id: Optional[str] = None) -> Outcome:
        try:
            if not self.store.delete_complaint(complaint_id):
                return Outcome("not_found", message="Complaint not found")
        except StorageError:
            return self._storage_failure()
        self._audit("DELETE_COMPLAINT", client_id, {"complaint_id": complaint_id})
        return Outcome("deleted", data={"id": complaint_id}, message="Complaint deleted successfully")

    # -------------------------------------------------------------------- reads

    def list_entities(self, active_only: bool = True) -> Outcome:
        try:
            entities = self.store.list_entities(active_only=active_only)
        except StorageError:
            return self._storage_failure()
        return Outcome("ok", data=[e.to_dict() for e in entities], meta={"count": len(entities)})

    def list_complaints(self, status: Optional[str] = None, client_id: Optional[str] = None) -> Outcome:
        if status and not is_valid_status(status):
            return Outcome(
                "invalid_status",
                message="Invalid status filter",
                errors=[f"Status must be one of: {', '.join(COMPLAINT_STATUSES)}"],
            )
        try:
            complaints = self.store.list_complaints(status=status)
        except StorageError:
            return self._storage_failure()
        self._audit("CONSULT_COMPLAINTS", client_id, {"count": len(complaints), "status": status})
        return Outcome("ok", data=[c.to_dict() for c in complaints], meta={"count": len(complaints)})

    def get_complaint(self, complaint_id: int) -> Outcome:
        try:
            complaint = self.store.get_complaint_by_id(complaint_id)
        except StorageError:
            return self._storage_failure()
        if complaint is None:
            return Outcome("not_found", message="Complaint not found")
        return Outcome("ok", data=complaint.to_dict())

    def resolve_entity(self, reference: str):
        """Map a numeric id or a name to an Entity (or None).

        Names go through the configured lenient lookup; with ``substring``
        the first entity in name order containing the text wins.
        """
        reference = (reference or "").strip()
        try:
            entity_id = parse_entity_id(reference)
        except ValueError:
            return self.store.find_entity_by_name(reference, match=self.entity_match)
        return self.store.get_entity_by_id(entity_id)

    def list_complaints_for_entity(self, reference: str, client_id: Optional[str] = None) -> Outcome:
        try:
            entity = self.resolve_entity(reference)
            if entity is None:
                return Outcome("not_found", message="Entity not found")
            complaints = self.store.list_complaints_by_entity(entity.id)
        except StorageError:
            return self._storage_failure()
        self._audit("CONSULT_BY_ENTITY", client_id, {"entity_id": entity.id, "entity_name": entity.name, "count": len(complaints)})
        return Outcome(
            "ok",
            data=[c.to_dict() for c in complaints],
            meta={"count": len(complaints), "entity": entity.to_dict()},
        )

    def health(self) -> Outcome:
        try:
            healthy = self.store.health_check()
        except Exception:  # pragma: no cover - safety net
            self.logger.exception("Health check raised")
            healthy = False
        if not healthy:
            return Outcome("storage_error", message="Database unavailable", meta={"status": "unhealthy"})
        return Outcome("ok", data={"status": "healthy", "database": "connected"})
