"""
Tests for Input Validation Utilities
"""
import pytest
from constituent_bot.core.validation import (
    EpicNumberValidator,
    PhoneNumberValidator,
    ReferenceCodeValidator,
    TextSanitizer,
    phone_validator,
)


class TestPhoneNumberValidator:
    """Tests for phone number validation"""

    @pytest.mark.unit
    @pytest.mark.parametrize("phone,expected", [
        # Indian mobiles
        ("9876543210", True),
        ("98765 43210", True),
        ("+91-9876543210", True),
        ("919876543210", True),
        ("09876543210", True),
        # WhatsApp wa_id from another country
        ("447911123456", True),
        # Invalid numbers
        ("123", False),
        ("abcdefghij", False),
        ("", False),
        ("+0123456789", False),
        ("1234567890123456", False),  # Too long
    ])
    def test_validate_phone(self, phone: str, expected: bool):
        assert PhoneNumberValidator.validate(phone) == expected

    @pytest.mark.unit
    def test_local_only(self):
        assert PhoneNumberValidator.validate("9876543210", allow_international=False)
        assert not PhoneNumberValidator.validate("447911123456", allow_international=False)

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["9876543210", "98765 43210", "+91-9876543210", "09876543210", "919876543210"])
    def test_normalize_phone(self, raw: str):
        """Every accepted spelling becomes the digits-only wa_id"""
        assert PhoneNumberValidator.normalize(raw) == "919876543210"

    @pytest.mark.unit
    def test_normalize_keeps_foreign_numbers(self):
        assert PhoneNumberValidator.normalize("+44 7911 123456") == "447911123456"

    @pytest.mark.unit
    def test_mask_phone(self):
        assert PhoneNumberValidator.mask("919876543210") == "91987654****"
        assert PhoneNumberValidator.mask("12") == "****"
        assert PhoneNumberValidator.mask("") == "****"


class TestEpicNumberValidator:

    @pytest.mark.unit
    @pytest.mark.parametrize("value,valid", [
        ("ABC1234567", True),
        ("abc1234567", True),
        ("  TN/01  ", False),
        ("ABC12", False),
        ("A" * 16, False),
        ("ABC 1234567", False),
        ("", False),
    ])
    def test_validate(self, value: str, valid: bool):
        assert EpicNumberValidator.validate(value) == valid

    @pytest.mark.unit
    def test_normalize(self):
        assert EpicNumberValidator.normalize("  abc1234567 ") == "ABC1234567"
        assert EpicNumberValidator.normalize(None) == ""


class TestReferenceCodeValidator:

    @pytest.mark.unit
    @pytest.mark.parametrize("code,valid", [
        ("GRV12345", True),
        ("sug54321", True),
        (" VOL10000 ", True),
        ("SUB99999", True),
        ("ABC12345", False),
        ("GRV1234", False),
        ("GRV123456", False),
        ("GRVABCDE", False),
    ])
    def test_validate(self, code: str, valid: bool):
        assert ReferenceCodeValidator.validate(code) == valid


class TestTextSanitizer:
    """Tests for chat text sanitization"""

    @pytest.mark.unit
    def test_sanitize_preserves_special_chars(self):
        text = "Drain <blocked> & overflowing near \"Anna\" nagar"
        assert TextSanitizer.sanitize(text) == text

    @pytest.mark.unit
    def test_sanitize_collapses_spaces_and_trims(self):
        assert TextSanitizer.sanitize("  no    water   supply  ") == "no water supply"

    @pytest.mark.unit
    def test_sanitize_enforces_max_length(self):
        assert len(TextSanitizer.sanitize("a" * 500, max_length=250)) == 250

    @pytest.mark.unit
    def test_remove_control_characters(self):
        text = "Line1\nLine2\tTabbed\x00Null\x1bEscape"
        result = TextSanitizer.remove_control_characters(text)

        assert "\n" in result
        assert "\t" in result
        assert "\x00" not in result
        assert "\x1b" not in result

    @pytest.mark.unit
    def test_empty(self):
        assert TextSanitizer.sanitize("") == ""


class TestPhoneFieldValidator:

    @pytest.mark.unit
    def test_normalizes(self):
        assert phone_validator("98765 43210") == "919876543210"

    @pytest.mark.unit
    def test_none_passes_through(self):
        assert phone_validator(None) is None

    @pytest.mark.unit
    def test_invalid_raises(self):
        with pytest.raises(ValueError):
            phone_validator("not-a-phone")
