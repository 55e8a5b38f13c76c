"""
Input validation utilities for Brevskriver Local
"""

import ipaddress
import re
import urllib.parse
from typing import Any, Dict, List, Mapping, Optional
import logging


MIN_BODY_LENGTH = 10

# Field order decides which invalid field receives focus
LETTER_FIELDS = ("subject", "recipient", "body")

SUBJECT_REQUIRED = "subject required"
RECIPIENT_REQUIRED = "recipient required"
BODY_TOO_SHORT = "description too short"


def validate_letter_fields(subject: Optional[str], recipient: Optional[str], body: Optional[str]) -> Dict[str, str]:
    """
    Compute field-level errors for the letter form.

    A field without an error is absent from the result.

    Args:
        subject: Letter subject
        recipient: Letter recipient
        body: Free-text description, any language

    Returns:
        Mapping of field name to error message, in form order
    """
    errors: Dict[str, str] = {}

    if not (subject or "").strip():
        errors["subject"] = SUBJECT_REQUIRED

    if not (recipient or "").strip():
        errors["recipient"] = RECIPIENT_REQUIRED

    if len((body or "").strip()) < MIN_BODY_LENGTH:
        errors["body"] = BODY_TOO_SHORT

    return errors


def first_invalid_field(errors: Mapping[str, str]) -> Optional[str]:
    """Return the first field in form order that has an error."""
    for field in LETTER_FIELDS:
        if field in errors:
            return field
    return None


class InputValidator:
    """
    Validates configuration and profile input for Brevskriver.
    Provides validation methods for local endpoints, emails and phone numbers.
    """

    LOOPBACK_HOSTS = {"localhost"}

    def __init__(self):
        """Initialize validator with regex patterns."""
        self.logger = logging.getLogger("brevskriver.validator")

        self.email_pattern = re.compile(
            r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        )

        self.phone_pattern = re.compile(
            r'^[\+]?[1-9][\d]{0,15}$|^[\(]?[\d\s\-\(\)\+]{7,}$'
        )

    def validate_local_url(self, url: str) -> bool:
        """
        Validate that a URL points at the local machine.

        Letter text must never leave the device, so only loopback hosts are
        accepted for the model endpoint.

        Args:
            url: URL string to validate

        Returns:
            True if URL is an http(s) loopback URL, False otherwise
        """
        if not url or not isinstance(url, str):
            return False

        try:
            parsed = urllib.parse.urlparse(url)
        except ValueError as e:
            self.logger.debug(f"URL validation failed for {url}: {str(e)}")
            return False

        if parsed.scheme not in ['http', 'https'] or not parsed.hostname:
            return False

        host = parsed.hostname.lower()
        if host in self.LOOPBACK_HOSTS:
            return True

        try:
            return ipaddress.ip_address(host).is_loopback
        except ValueError:
            return False

    def validate_email(self, email: str) -> bool:
        """
        Validate email address format.

        Args:
            email: Email address to validate

        Returns:
            True if email is valid, False otherwise
        """
        if not email or not isinstance(email, str):
            return False

        return bool(self.email_pattern.match(email.strip()))

    def validate_phone(self, phone: str) -> bool:
        """
        Validate phone number format.

        Args:
            phone: Phone number to validate

        Returns:
            True if phone is valid, False otherwise
        """
        if not phone or not isinstance(phone, str):
            return False

        cleaned = re.sub(r'[^\d\+\(\)\-\s]', '', phone.strip())

        return bool(self.phone_pattern.match(cleaned))

    def validate_profile(self, profile: Mapping[str, Any]) -> List[str]:
        """
        Advisory checks for profile contact details.

        Empty fields are fine; they are left out of the signature.

        Returns:
            List of warnings (empty if everything looks right)
        """
        warnings = []

        email = (profile.get('email') or '').strip()
        if email and not self.validate_email(email):
            warnings.append(f"Email address looks invalid: {email}")

        phone = (profile.get('phone') or '').strip()
        if phone and not self.validate_phone(phone):
            warnings.append(f"Phone number looks invalid: {phone}")

        return warnings

    def validate_config(self, config: Mapping[str, Any]) -> List[str]:
        """
        Validate session configuration.

        Args:
            config: Configuration dictionary

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not config.get('llm_model'):
            errors.append("Missing required configuration: llm_model")

        base_url = config.get('llm_base_url')
        if not base_url:
            errors.append("Missing required configuration: llm_base_url")
        elif not self.validate_local_url(base_url):
            errors.append(f"llm_base_url must point at this machine (localhost), got: {base_url}")

        temperature = config.get('temperature', 0.3)
        if not isinstance(temperature, (int, float)) or not (0.0 <= temperature <= 2.0):
            errors.append(f"Temperature must be between 0.0 and 2.0, got: {temperature}")

        history_limit = config.get('history_limit', 1)
        if not isinstance(history_limit, int) or history_limit < 1:
            errors.append(f"history_limit must be a positive integer, got: {history_limit}")

        for key in ('autosave_delay', 'status_poll_interval'):
            value = config.get(key, 0)
            if not isinstance(value, (int, float)) or value < 0:
                errors.append(f"{key} must be a non-negative number, got: {value}")

        return errors
