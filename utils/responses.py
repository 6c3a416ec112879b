"""Serialize handler outcomes into the ``{success, data, message, errors}`` envelope."""
from datetime import datetime, timezone

from flask import jsonify

from utils.complaint_service import Outcome


def envelope(outcome: Outcome) -> dict:
    body = {"success": outcome.success}
    if outcome.data is not None:
        body["data"] = outcome.data
    if outcome.message:
        body["message"] = outcome.message
    if outcome.errors:
        body["errors"] = list(outcome.errors)
    if outcome.retry_after is not None:
        body["retry_after"] = outcome.retry_after
    body.update(outcome.meta)
    body["timestamp"] = datetime.now(timezone.utc).isoformat()
    return body


def respond(outcome: Outcome):
    response = jsonify(envelope(outcome))
    response.status_code = outcome.http_status
    if outcome.retry_after is not None:
        response.headers["Retry-After"] = str(outcome.retry_after)
    return response
