"""Tests for input sanitising and inquiry field rules."""

import pytest

from app.services.validation import (
    contains_malicious_content,
    is_valid_email,
    is_valid_phone,
    normalize_phone,
    sanitize_text,
    validate_inquiry_fields,
)

VALID_MESSAGE = "Is this unit still available for viewing?"


@pytest.mark.unit
@pytest.mark.parametrize(
    "value",
    ["<script>alert(1)</script>", "<img src=x onerror=alert(1)>", "body onload=x", "JavaScript:void(0)"],
)
def test_malicious_content_detected(value):
    """Test script-injection markers are caught regardless of case."""
    assert contains_malicious_content("Juan", value)


@pytest.mark.unit
def test_plain_text_is_not_malicious():
    assert not contains_malicious_content("Maria Clara", "I love the onsite amenities", None)


@pytest.mark.unit
def test_sanitize_trims_and_strips_angle_brackets():
    assert sanitize_text("  <b>Hello</b>  ") == "bHello/b"
    assert sanitize_text(None) is None


@pytest.mark.unit
@pytest.mark.parametrize("phone", ["09171234567", "0917-123-4567", "+639171234567", "0917 123 4567"])
def test_valid_phone_formats(phone):
    assert is_valid_phone(phone)


@pytest.mark.unit
@pytest.mark.parametrize("phone", ["9171234567", "0817123456", "+63917123456", "091712345678", "phone"])
def test_invalid_phone_formats(phone):
    assert not is_valid_phone(phone)


@pytest.mark.unit
def test_normalize_phone_removes_separators():
    assert normalize_phone("0917-123 4567") == "09171234567"


@pytest.mark.unit
@pytest.mark.parametrize("email,expected", [
    ("juan@example.com", True),
    ("juan.dela.cruz@mail.co.ph", True),
    ("juan@example", False),
    ("juan example@mail.com", False),
    ("@example.com", False),
])
def test_email_pattern(email, expected):
    assert is_valid_email(email) is expected


@pytest.mark.unit
def test_validate_inquiry_fields_accepts_valid_submission():
    assert validate_inquiry_fields("Juan", "juan@example.com", "09171234567", VALID_MESSAGE) == {}


@pytest.mark.unit
def test_validate_inquiry_fields_reports_every_bad_field():
    """Test each failing field gets its own message."""
    errors = validate_inquiry_fields("", "not-an-email", "12345", "Too short")

    assert set(errors) == {"name", "email", "phone", "message"}
    assert "20" in errors["message"]


@pytest.mark.unit
def test_message_boundary_is_twenty_characters():
    assert "message" in validate_inquiry_fields("Juan", "juan@example.com", "09171234567", "x" * 19)
    assert validate_inquiry_fields("Juan", "juan@example.com", "09171234567", "x" * 20) == {}
