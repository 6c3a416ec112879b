"""Static validation of complaint payloads before they reach storage."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from models import COMPLAINT_STATUSES

DEFAULT_MIN_LENGTH = 20
DEFAULT_MAX_LENGTH = 5000
DEFAULT_SPAM_KEYWORDS: tuple[str, ...] = (
    "viagra",
    "casino",
    "lottery",
    "winner",
    "click here",
    "free money",
)

FORBIDDEN_CONTENT_ERROR = "Description contains forbidden content"

_INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")


@dataclass(frozen=True)
class ValidationRules:
    min_length: int = DEFAULT_MIN_LENGTH
    max_length: int = DEFAULT_MAX_LENGTH
    spam_keywords: tuple[str, ...] = DEFAULT_SPAM_KEYWORDS

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ValidationRules":
        keywords = config.get("SPAM_KEYWORDS") or DEFAULT_SPAM_KEYWORDS
        return cls(
            min_length=int(config.get("DESCRIPTION_MIN_LENGTH", DEFAULT_MIN_LENGTH)),
            max_length=int(config.get("DESCRIPTION_MAX_LENGTH", DEFAULT_MAX_LENGTH)),
            spam_keywords=tuple(k.lower() for k in keywords),
        )


@dataclass
class ComplaintInput:
    """Typed view of a complaint submission body."""

    entity_id: Optional[int]
    description: str
    errors: list[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], rules: Optional[ValidationRules] = None) -> "ComplaintInput":
        errors = validate(payload, rules)
        entity_id = None
        try:
            entity_id = parse_entity_id(payload.get("entity_id"))
        except ValueError:
            pass
        description = payload.get("description")
        description = description.strip() if isinstance(description, str) else ""
        return cls(entity_id=entity_id, description=description, errors=errors)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def parse_entity_id(value: Any) -> int:
    """Coerce an entity reference to a positive integer or raise ValueError.

    Accepts ints and strings of digits. Floats (even integral ones), booleans
    and anything else ambiguous are rejected rather than truncated.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError("An entity must be selected (entity_id is required)")
    if isinstance(value, bool):
        raise ValueError("entity_id must be an integer")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and _INTEGER_PATTERN.match(value.strip()):
        parsed = int(value.strip())
    else:
        raise ValueError("entity_id must be an integer")
    if parsed <= 0:
        raise ValueError("entity_id must be a positive integer")
    return parsed


def contains_forbidden_content(text: str, keywords: Iterable[str] = DEFAULT_SPAM_KEYWORDS) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def validate(payload: Mapping[str, Any], rules: Optional[ValidationRules] = None) -> list[str]:
    """Return the ordered list of problems with a complaint payload; empty means valid.

    Only static rules are checked here. Whether ``entity_id`` refers to an
    existing entity needs a store lookup and is the caller's job.
    """
    rules = rules or ValidationRules()
    errors: list[str] = []

    try:
        parse_entity_id(payload.get("entity_id"))
    except ValueError as exc:
        errors.append(str(exc))

    raw_description = payload.get("description")
    if raw_description is None:
        raw_description = ""
    if not isinstance(raw_description, str):
        errors.append("Description must be text")
        return errors

    description = raw_description.strip()
    if len(description) < rules.min_length:
        errors.append(f"Description must be at least {rules.min_length} characters long")
    if len(description) > rules.max_length:
        errors.append(f"Description cannot exceed {rules.max_length} characters")

    if contains_forbidden_content(description, rules.spam_keywords):
        errors.append(FORBIDDEN_CONTENT_ERROR)

    return errors


def is_valid_status(value: Any) -> bool:
    return isinstance(value, str) and value in COMPLAINT_STATUSES
