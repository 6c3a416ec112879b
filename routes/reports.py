"""Aggregate statistics and downloadable complaint reports."""
from flask import Blueprint, Response, current_app

from utils.complaint_service import Outcome
from utils.complaint_store import StorageError
from utils.reporting import CSV_CONTENT_TYPE, collect_statistics, csv_filename, entity_report, render_entity_csv
from utils.responses import respond
from utils.security import client_ip, user_agent

reports_bp = Blueprint("reports", __name__)


def _store():
    return current_app.extensions["complaint_service"].store


def _audit_report(kind: str, rows: int) -> None:
    audit = current_app.extensions.get("audit_sink")
    if audit is not None:
        audit.emit(
            "GENERAL_REPORT",
            client_ip(bool(current_app.config.get("TRUST_PROXY"))),
            {"report": kind, "rows": rows},
            user_agent=user_agent(),
        )


def _storage_unavailable() -> Response:
    return respond(Outcome("storage_error", message="Could not build the report right now. Please retry."))


@reports_bp.route("/stats", methods=["GET"])
def statistics():
    try:
        stats = collect_statistics(_store(), months=12)
    except StorageError:
        return _storage_unavailable()
    _audit_report("statistics", stats["general"]["total_complaints"])
    return respond(Outcome("ok", data=stats))


@reports_bp.route("/reports", methods=["GET"])
def report_by_entity():
    try:
        rows = entity_report(_store())
    except StorageError:
        return _storage_unavailable()
    _audit_report("by_entity", len(rows))
    return respond(Outcome("ok", data=rows, meta={"count": len(rows)}))


@reports_bp.route("/reports/csv", methods=["GET"])
def report_csv():
    try:
        rows = entity_report(_store())
    except StorageError:
        return _storage_unavailable()
    _audit_report("csv", len(rows))
    response = Response(render_entity_csv(rows), mimetype="text/csv")
    response.headers["Content-Type"] = CSV_CONTENT_TYPE
    response.headers["Content-Disposition"] = f'attachment; filename="{csv_filename()}"'
    return response
