import pytest

from brevskriver_local.utils.validators import (
    BODY_TOO_SHORT,
    RECIPIENT_REQUIRED,
    SUBJECT_REQUIRED,
    InputValidator,
    first_invalid_field,
    validate_letter_fields,
)


def test_valid_fields_have_no_errors():
    assert validate_letter_fields("Frist", "SKAT", "Jeg har brug for mere tid") == {}


def test_all_fields_invalid_reports_each_field():
    errors = validate_letter_fields("", "   ", "kort")

    assert errors == {
        "subject": SUBJECT_REQUIRED,
        "recipient": RECIPIENT_REQUIRED,
        "body": BODY_TOO_SHORT,
    }
    assert first_invalid_field(errors) == "subject"


def test_body_length_is_measured_after_trimming():
    assert "body" in validate_letter_fields("Frist", "SKAT", "   123456789   ")
    assert "body" not in validate_letter_fields("Frist", "SKAT", "  1234567890  ")


def test_body_accepts_any_script():
    assert validate_letter_fields("Frist", "SKAT", "Прошу продовжити термін") == {}


def test_first_invalid_field_follows_form_order():
    assert first_invalid_field({"body": BODY_TOO_SHORT, "recipient": RECIPIENT_REQUIRED}) == "recipient"
    assert first_invalid_field({}) is None


@pytest.mark.parametrize(
    "url, expected",
    [
        ("http://127.0.0.1:11434/v1", True),
        ("http://localhost:8080/v1", True),
        ("http://[::1]:11434/v1", True),
        ("https://api.openai.com/v1", False),
        ("http://192.168.1.10:11434/v1", False),
        ("ftp://127.0.0.1/v1", False),
        ("", False),
    ],
)
def test_validate_local_url(url, expected):
    assert InputValidator().validate_local_url(url) is expected


def test_validate_profile_warns_about_bad_contacts():
    validator = InputValidator()

    assert validator.validate_profile({"name": "Olena", "email": "", "phone": ""}) == []

    warnings = validator.validate_profile({"email": "not-an-email", "phone": "abc"})
    assert len(warnings) == 2


def test_validate_config_rejects_remote_endpoint_and_bad_numbers():
    errors = InputValidator().validate_config({
        "llm_model": "phi3.5",
        "llm_base_url": "https://example.com/v1",
        "temperature": 3.5,
        "history_limit": 0,
        "autosave_delay": -1,
        "status_poll_interval": 0.3,
    })

    assert any("llm_base_url" in err for err in errors)
    assert any("Temperature" in err for err in errors)
    assert any("history_limit" in err for err in errors)
    assert any("autosave_delay" in err for err in errors)
    assert not any("status_poll_interval" in err for err in errors)
