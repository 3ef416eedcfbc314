"""
Input Validation Utilities

Validation and normalization for user inputs:
- Phone numbers (WhatsApp wa_id and Indian 10-digit format)
- EPIC (voter-roll) numbers
- Submission reference codes
- Free text coming from chat messages
"""
import re


class ValidationPatterns:
    """Regex patterns for validation"""

    # Indian mobile: 10 digits starting 6-9, optionally prefixed with 91 / +91 / 0
    PHONE_INDIA = re.compile(r"^(?:\+?91|0)?[6-9]\d{9}$")

    # WhatsApp wa_id / E.164 without the plus sign
    PHONE_INTERNATIONAL = re.compile(r"^\+?[1-9]\d{6,14}$")

    # EPIC number after uppercasing
    EPIC_NUMBER = re.compile(r"^[A-Z0-9]{6,15}$")

    REFERENCE_CODE = re.compile(r"^(GRV|SUG|VOL|SUB)[0-9]{5}$")


class PhoneNumberValidator:
    """Phone number validation and normalization"""

    @staticmethod
    def validate(phone: str, allow_international: bool = True) -> bool:
        if not phone:
            return False

        cleaned = re.sub(r"[\s\-]", "", phone)

        if ValidationPatterns.PHONE_INDIA.match(cleaned):
            return True

        if allow_international and ValidationPatterns.PHONE_INTERNATIONAL.match(cleaned):
            return True

        return False

    @staticmethod
    def normalize(phone: str) -> str:
        """
        Normalize a phone number to the digits-only form WhatsApp uses as wa_id.

        A bare 10-digit Indian number gets the 91 country code; a leading 0
        trunk prefix is dropped first.

        Examples:
            "98765 43210"    -> "919876543210"
            "+91-9876543210" -> "919876543210"
            "09876543210"    -> "919876543210"
        """
        digits = re.sub(r"\D", "", phone or "")

        if len(digits) == 11 and digits.startswith("0"):
            digits = digits[1:]

        if len(digits) == 10:
            digits = "91" + digits

        return digits

    @staticmethod
    def mask(phone: str) -> str:
        """Mask phone number for logging (e.g. 91987654**** )"""
        if not phone or len(phone) < 4:
            return "****"
        return phone[:-4] + "****"


class EpicNumberValidator:
    """Voter-roll (EPIC) number validation"""

    MIN_LENGTH = 6
    MAX_LENGTH = 15

    @staticmethod
    def normalize(value: str) -> str:
        return (value or "").strip().upper()

    @staticmethod
    def validate(value: str) -> bool:
        """True when ``value`` matches the EPIC shape after uppercasing"""
        return bool(ValidationPatterns.EPIC_NUMBER.match(EpicNumberValidator.normalize(value)))


class ReferenceCodeValidator:
    """Submission reference code validation (GRV12345 and friends)"""

    @staticmethod
    def normalize(value: str) -> str:
        return (value or "").strip().upper()

    @staticmethod
    def validate(value: str) -> bool:
        return bool(ValidationPatterns.REFERENCE_CODE.match(ReferenceCodeValidator.normalize(value)))


class TextSanitizer:
    """Text sanitization for chat input"""

    @staticmethod
    def sanitize(text: str, max_length: int = 4096) -> str:
        """
        Sanitize text input for safe storage.

        Note: this does NOT HTML escape; the admin dashboard escapes at display
        time. This function only:
        - Removes control characters (keeps newlines and tabs)
        - Trims whitespace
        - Collapses runs of spaces
        - Enforces max length
        """
        if not text:
            return ""

        sanitized = TextSanitizer.remove_control_characters(text).strip()
        sanitized = re.sub(r" +", " ", sanitized)
        return sanitized[:max_length]

    @staticmethod
    def remove_control_characters(text: str) -> str:
        if not text:
            return ""

        return "".join(
            char for char in text
            if char >= " " or char in "\n\r\t"
        )


# Pydantic field validators for reuse
def phone_validator(v: str | None) -> str | None:
    """Pydantic field validator for phone numbers"""
    if v is None:
        return None
    if not PhoneNumberValidator.validate(v):
        raise ValueError("Invalid phone number format")
    return PhoneNumberValidator.normalize(v)
