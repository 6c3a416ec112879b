"""Complaint intake, lookup and administrative status management."""
from flask import Blueprint, current_app, request

from utils.complaint_service import Outcome
from utils.responses import respond
from utils.security import client_ip, user_agent

complaints_bp = Blueprint("complaints", __name__, url_prefix="/complaints")


def _service():
    return current_app.extensions["complaint_service"]


def _client_id() -> str:
    return client_ip(bool(current_app.config.get("TRUST_PROXY")))


def _request_payload():
    if request.is_json:
        return request.get_json(silent=True)
    return request.form.to_dict()


@complaints_bp.route("", methods=["GET"])
def list_complaints():
    status_filter = request.args.get("status") or None
    return respond(_service().list_complaints(status=status_filter, client_id=_client_id()))


@complaints_bp.route("", methods=["POST"])
def create_complaint():
    payload = _request_payload()
    if not isinstance(payload, dict):
        return respond(
            Outcome("invalid_input", message="Invalid complaint data", errors=["Request body must be a JSON object"])
        )
    outcome = _service().submit_complaint(payload, client_id=_client_id(), user_agent=user_agent())
    if outcome.status == "invalid_input":
        current_app.logger.info("Complaint rejected by validation", extra={"errors": outcome.errors})
    return respond(outcome)


@complaints_bp.route("/<int:complaint_id>", methods=["GET"])
def get_complaint(complaint_id: int):
    return respond(_service().get_complaint(complaint_id))


@complaints_bp.route("/<int:complaint_id>/status", methods=["PATCH"])
def update_complaint_status(complaint_id: int):
    payload = _request_payload()
    new_status = payload.get("status") if isinstance(payload, dict) else None
    return respond(_service().update_status(complaint_id, new_status, client_id=_client_id()))


@complaints_bp.route("/<int:complaint_id>", methods=["DELETE"])
def delete_complaint(complaint_id: int):
    return respond(_service().delete_complaint(complaint_id, client_id=_client_id()))


@complaints_bp.route("/entity/<path:reference>", methods=["GET"])
def complaints_for_entity(reference: str):
    return respond(_service().list_complaints_for_entity(reference, client_id=_client_id()))
