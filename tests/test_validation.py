from __future__ import annotations

import pytest

from utils.validation import (
    FORBIDDEN_CONTENT_ERROR,
    ComplaintInput,
    ValidationRules,
    contains_forbidden_content,
    is_valid_status,
    parse_entity_id,
    validate,
)


def _length_errors(errors: list[str]) -> list[str]:
    return [e for e in errors if "characters" in e]


@pytest.mark.parametrize("length", [20, 21, 250, 4999, 5000])
def test_description_within_bounds_passes(length: int) -> None:
    assert validate({"entity_id": 1, "description": "a" * length}) == []


@pytest.mark.parametrize("length", [0, 1, 19])
def test_description_too_short_fails(length: int) -> None:
    errors = validate({"entity_id": 1, "description": "a" * length})
    assert errors == ["Description must be at least 20 characters long"]


@pytest.mark.parametrize("length", [5001, 6000])
def test_description_too_long_fails(length: int) -> None:
    errors = validate({"entity_id": 1, "description": "a" * length})
    assert errors == ["Description cannot exceed 5000 characters"]


def test_whitespace_only_description_trims_to_empty() -> None:
    errors = validate({"entity_id": 1, "description": " \t\n" * 30})
    assert _length_errors(errors) == ["Description must be at least 20 characters long"]


def test_length_is_measured_after_trimming() -> None:
    padded = "   " + "b" * 19 + "   "
    assert _length_errors(validate({"entity_id": 1, "description": padded}))
    assert validate({"entity_id": 1, "description": "   " + "b" * 20 + "\n"}) == []


def test_missing_description_fails_minimum_length() -> None:
    assert validate({"entity_id": 1}) == ["Description must be at least 20 characters long"]


def test_non_text_description_is_rejected() -> None:
    errors = validate({"entity_id": 1, "description": 12345678901234567890123})
    assert errors == ["Description must be text"]


@pytest.mark.parametrize(
    "text",
    [
        "You are the WINNER of our contest, please respond",
        "Visit the casino near the municipal office please",
        "Lottery lottery viagra casino click here free money",
        "please CLICK HERE to read about the broken pipes",
    ],
)
def test_denylisted_tokens_produce_exactly_one_error(text: str) -> None:
    errors = validate({"entity_id": 1, "description": text})
    assert errors.count(FORBIDDEN_CONTENT_ERROR) == 1


def test_content_error_follows_length_error() -> None:
    errors = validate({"entity_id": 1, "description": "casino"})
    assert errors == ["Description must be at least 20 characters long", FORBIDDEN_CONTENT_ERROR]


def test_entity_error_comes_first() -> None:
    errors = validate({"entity_id": "abc", "description": "short"})
    assert errors[0] == "entity_id must be an integer"
    assert len(errors) == 2


@pytest.mark.parametrize("value, expected", [(7, 7), ("7", 7), (" 12 ", 12), ("+3", 3)])
def test_parse_entity_id_accepts_integers(value, expected) -> None:
    assert parse_entity_id(value) == expected


@pytest.mark.parametrize("value", [3.0, 2.5, "3.0", "1e2", "abc", [1], {"id": 1}, True])
def test_parse_entity_id_rejects_non_integers(value) -> None:
    with pytest.raises(ValueError, match="must be an integer"):
        parse_entity_id(value)


@pytest.mark.parametrize("value", [0, -1, "-4", "0"])
def test_parse_entity_id_rejects_non_positive(value) -> None:
    with pytest.raises(ValueError, match="positive"):
        parse_entity_id(value)


@pytest.mark.parametrize("value", [None, "", "   "])
def test_parse_entity_id_requires_value(value) -> None:
    with pytest.raises(ValueError, match="required"):
        parse_entity_id(value)


def test_validate_is_deterministic_and_does_not_mutate_payload() -> None:
    payload = {"entity_id": "2", "description": "  the bridge railing is broken again  "}
    snapshot = dict(payload)
    first = validate(payload)
    assert validate(payload) == first
    assert payload == snapshot


def test_rules_from_config() -> None:
    rules = ValidationRules.from_config(
        {"DESCRIPTION_MIN_LENGTH": 10, "DESCRIPTION_MAX_LENGTH": 250, "SPAM_KEYWORDS": ["Promo"]}
    )
    assert rules == ValidationRules(min_length=10, max_length=250, spam_keywords=("promo",))
    assert validate({"entity_id": 1, "description": "a" * 10}, rules) == []
    assert validate({"entity_id": 1, "description": "a" * 251}, rules) == ["Description cannot exceed 250 characters"]
    assert validate({"entity_id": 1, "description": "big PROMO today!"}, rules) == [FORBIDDEN_CONTENT_ERROR]
    assert validate({"entity_id": 1, "description": "casino casino casino"}, rules) == []


def test_complaint_input_from_payload() -> None:
    parsed = ComplaintInput.from_payload({"entity_id": "4", "description": "  Water outage in the north sector  "})
    assert parsed.is_valid
    assert parsed.entity_id == 4
    assert parsed.description == "Water outage in the north sector"

    rejected = ComplaintInput.from_payload({"entity_id": 4.0, "description": "too short"})
    assert not rejected.is_valid
    assert rejected.entity_id is None
    assert len(rejected.errors) == 2


def test_contains_forbidden_content_is_case_insensitive() -> None:
    assert contains_forbidden_content("FREE Money for everyone")
    assert not contains_forbidden_content("free of charge money transfer")


def test_is_valid_status() -> None:
    assert is_valid_status("pending")
    assert is_valid_status("in_progress")
    assert not is_valid_status("PENDING")
    assert not is_valid_status("closed")
    assert not is_valid_status(None)
