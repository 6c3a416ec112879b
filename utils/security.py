"""Security helpers for headers, client identification and scanner blocking."""
import secrets
from typing import Iterable, Optional

from flask import request


def apply_security_headers(response, force_https: bool = False):
    """Apply security headers suitable for a JSON API."""
    response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    if force_https or request.is_secure:
        response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains; preload")
    return response


def client_ip(trust_proxy: bool = False) -> str:
    """Identify the caller for rate limiting and audit records."""
    if trust_proxy:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.remote_addr or "unknown"


def user_agent(limit: int = 255) -> Optional[str]:
    agent = request.headers.get("User-Agent")
    return agent[:limit] if agent else None


def is_blocked_user_agent(agent: Optional[str], signatures: Iterable[str]) -> bool:
    lowered = (agent or "").lower()
    return any(sig.lower() in lowered for sig in signatures if sig)


def generate_error_id() -> str:
    return secrets.token_hex(6)
