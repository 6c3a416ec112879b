"""Fire-and-forget audit trail: JSON-lines file plus optional SMTP notification."""
from __future__ import annotations

import json
import logging
import os
import smtplib
import ssl
import threading
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Any, Dict, Mapping, Optional

OPERATION_TYPES: tuple[str, ...] = (
    "CREATE_COMPLAINT",
    "UPDATE_STATUS",
    "DELETE_COMPLAINT",
    "CONSULT_COMPLAINTS",
    "CONSULT_BY_ENTITY",
    "GENERAL_REPORT",
)

EMAIL_SUBJECTS: Dict[str, str] = {
    "CREATE_COMPLAINT": "New complaint registered",
    "UPDATE_STATUS": "Complaint status changed",
    "DELETE_COMPLAINT": "Complaint deleted",
    "CONSULT_COMPLAINTS": "Complaint list consulted",
    "CONSULT_BY_ENTITY": "Complaints consulted by entity",
    "GENERAL_REPORT": "General report consulted",
}


class AuditDeliveryError(Exception):
    """Raised when an audit event cannot be written or mailed."""


class AuditSink:
    """Record operational events without ever failing the caller.

    Config values are captured at construction so delivery can run on a
    worker thread outside the application context.
    """

    def __init__(self, config: Mapping[str, Any], logger: Optional[logging.Logger] = None, synchronous: bool = False) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.audit_enabled = bool(config.get("AUDIT_ENABLED"))
        self.audit_path = config.get("AUDIT_LOG_PATH") or os.path.join("logs", "audit.log")
        self.email_enabled = bool(config.get("EMAIL_NOTIFICATIONS_ENABLED"))
        self.mail = {
            "host": config.get("MAIL_SERVER") or "",
            "port": int(config.get("MAIL_PORT") or 587),
            "username": config.get("MAIL_USERNAME") or "",
            "password": config.get("MAIL_PASSWORD") or "",
            "use_tls": bool(config.get("MAIL_USE_TLS")),
            "use_ssl": bool(config.get("MAIL_USE_SSL")),
            "sender": config.get("MAIL_DEFAULT_SENDER") or "",
            "recipient": config.get("MAIL_AUDIT_RECIPIENT") or "",
        }
        self.synchronous = synchronous
        self._file_lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.audit_enabled or self.email_enabled

    def build_event(
        self,
        operation_type: str,
        client_id: Optional[str],
        details: Optional[Mapping[str, Any]] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        return {
            "operation_type": operation_type,
            "client_id": client_id or "unknown",
            "user_agent": (user_agent or "unknown")[:200],
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "details": dict(details or {}),
        }

    def emit(
        self,
        operation_type: str,
        client_id: Optional[str],
        details: Optional[Mapping[str, Any]] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        try:
            event = self.build_event(operation_type, client_id, details, user_agent)
            self.logger.info("[AUDIT] %s from %s", event["operation_type"], event["client_id"])
            if not self.enabled:
                return
            if self.synchronous:
                self._deliver(event)
            else:
                threading.Thread(target=self._deliver, args=(event,), name="audit-sink", daemon=True).start()
        except Exception:
            self.logger.exception("Audit event could not be dispatched", extra={"operation_type": operation_type})

    def _deliver(self, event: Dict[str, Any]) -> None:
        if self.audit_enabled:
            try:
                self.write_event(event)
            except AuditDeliveryError as exc:
                self.logger.error("Audit file write failed", extra={"error": str(exc)})
        if self.email_enabled:
            try:
                self.send_email(event)
            except AuditDeliveryError as exc:
                self.logger.error("Audit email failed", extra={"error": str(exc)})

    def write_event(self, event: Mapping[str, Any]) -> None:
        line = json.dumps(event, ensure_ascii=False, default=str)
        try:
            os.makedirs(os.path.dirname(self.audit_path) or ".", exist_ok=True)
            with self._file_lock, open(self.audit_path, "a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError as exc:
            raise AuditDeliveryError(str(exc)) from exc

    def compose_email(self, event: Mapping[str, Any]) -> EmailMessage:
        subject = EMAIL_SUBJECTS.get(event["operation_type"], "Complaint system activity")
        lines = [
            f"Operation: {event['operation_type']}",
            f"Client: {event['client_id']}",
            f"User agent: {event['user_agent']}",
            f"Timestamp: {event['timestamp']}",
            "",
            "Details:",
        ]
        for key, value in event.get("details", {}).items():
            lines.append(f"  {key}: {value}")

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.mail["sender"]
        msg["To"] = self.mail["recipient"]
        msg["Date"] = formatdate(localtime=True)
        msg["Message-ID"] = make_msgid()
        msg.set_content("\n".join(lines))
        return msg

    def send_email(self, event: Mapping[str, Any]) -> None:
        host = self.mail["host"]
        if not host:
            raise AuditDeliveryError("MAIL_SERVER is not configured")
        if not self.mail["recipient"]:
            raise AuditDeliveryError("MAIL_AUDIT_RECIPIENT is not configured")

        msg = self.compose_email(event)
        username, password = self.mail["username"], self.mail["password"]
        try:
            if self.mail["use_ssl"]:
                context = ssl.create_default_context()
                with smtplib.SMTP_SSL(host, self.mail["port"], context=context, timeout=30) as server:
                    if username and password:
                        server.login(username, password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP(host, self.mail["port"], timeout=30) as server:
                    server.ehlo()
                    if self.mail["use_tls"]:
                        server.starttls(context=ssl.create_default_context())
                    if username and password:
                        server.login(username, password)
                    server.send_message(msg)
        except Exception as exc:  # pragma: no cover - external I/O
            raise AuditDeliveryError(str(exc)) from exc
