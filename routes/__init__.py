"""Blueprint registration, API info, health and entity directory routes."""
from flask import Blueprint, current_app, jsonify, request

from utils.complaint_service import Outcome
from utils.responses import respond
from utils.security import client_ip
from .complaints import complaints_bp
from .reports import reports_bp

API_NAME = "Citizen Complaints API"
API_VERSION = "2.0.0"

api_bp = Blueprint("api", __name__, url_prefix="/api")
api_bp.register_blueprint(complaints_bp)
api_bp.register_blueprint(reports_bp)


def complaint_service():
    return current_app.extensions["complaint_service"]


def request_client_id() -> str:
    return client_ip(bool(current_app.config.get("TRUST_PROXY")))


@api_bp.before_request
def _gate_api_request():
    ip = request_client_id()
    current_app.logger.info("API request")

    limiter = current_app.extensions["api_rate_limiter"]
    if not limiter.allow(ip):
        retry_after = limiter.retry_after(ip)
        current_app.logger.warning(
            "API rate limit exceeded",
            extra={"client_id": ip, "request_path": request.path, "retry_after": retry_after},
        )
        return respond(
            Outcome(
                "too_many_requests",
                message="Too many requests from this IP, please try again later.",
                retry_after=retry_after,
            )
        )
    return None


@api_bp.route("/", methods=["GET"])
def api_info():
    return jsonify(
        {
            "success": True,
            "name": API_NAME,
            "version": API_VERSION,
            "description": "Intake and reporting of citizen complaints about government entities",
            "endpoints": {
                "health": "GET /api/health",
                "entities": "GET /api/entities",
                "complaints": {
                    "list": "GET /api/complaints",
                    "get": "GET /api/complaints/<id>",
                    "create": "POST /api/complaints",
                    "update_status": "PATCH /api/complaints/<id>/status",
                    "delete": "DELETE /api/complaints/<id>",
                    "by_entity": "GET /api/complaints/entity/<id-or-name>",
                },
                "reports": {
                    "statistics": "GET /api/stats",
                    "by_entity": "GET /api/reports",
                    "csv": "GET /api/reports/csv",
                },
            },
        }
    )


@api_bp.route("/health", methods=["GET"])
def health():
    return respond(complaint_service().health())


@api_bp.route("/entities", methods=["GET"])
def list_entities():
    include_inactive = request.args.get("all", "").lower() in {"1", "true", "yes"}
    return respond(complaint_service().list_entities(active_only=not include_inactive))
