"""
Unit tests for user extraction.
"""

import json
import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_webapp_auth.app.validation.identity import TelegramIdentity, extract_identity
from shared.errors import MalformedUserJson, MissingUserField


def fields_with_user(user) -> dict:
    raw = user if isinstance(user, str) else json.dumps(user)
    return {"auth_date": "1700000000", "user": raw}


class TestExtractIdentity:
    """Test cases for extract_identity."""

    def test_full_user(self):
        """All known fields are read."""
        identity = extract_identity(fields_with_user({
            "id": 279058397,
            "first_name": "Vladislav",
            "last_name": "Kibenko",
            "username": "vdkfrost",
            "photo_url": "https://t.me/i/userpic/320/vdkfrost.svg",
            "language_code": "ru",
            "is_premium": True,
        }))

        assert identity.external_id == 279058397
        assert identity.first_name == "Vladislav"
        assert identity.last_name == "Kibenko"
        assert identity.username == "vdkfrost"
        assert identity.photo_url == "https://t.me/i/userpic/320/vdkfrost.svg"
        assert identity.display_name == "Vladislav Kibenko"

    def test_optional_fields_default_to_empty_string(self):
        """Absent and null optional fields become empty strings."""
        identity = extract_identity(fields_with_user({"id": 1, "first_name": "Ann", "last_name": None}))

        assert identity.last_name == ""
        assert identity.username == ""
        assert identity.photo_url == ""
        assert identity.display_name == "Ann"

    def test_display_claims(self):
        """Display claims carry only profile data."""
        identity = extract_identity(fields_with_user({"id": 5, "first_name": "Ann", "username": "ann"}))

        assert identity.display_claims() == {
            "telegramId": 5,
            "first_name": "Ann",
            "last_name": "",
            "username": "ann",
            "photo_url": "",
        }

    def test_identity_is_immutable(self):
        """TelegramIdentity cannot be mutated."""
        identity = TelegramIdentity(id=1, first_name="Ann")

        with pytest.raises(Exception):
            identity.first_name = "Bob"

    @pytest.mark.parametrize("fields", [{}, {"user": ""}, {"auth_date": "1"}])
    def test_missing_user(self, fields):
        """No user field is MissingUserField."""
        with pytest.raises(MissingUserField):
            extract_identity(fields)

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]", "42", '"text"', "null"])
    def test_user_not_an_object(self, raw):
        """Invalid JSON or a non-object is MalformedUserJson."""
        with pytest.raises(MalformedUserJson):
            extract_identity(fields_with_user(raw))

    @pytest.mark.parametrize("user,bad_field", [
        ({"first_name": "Ann"}, "id"),
        ({"id": "42", "first_name": "Ann"}, "id"),
        ({"id": True, "first_name": "Ann"}, "id"),
        ({"id": 42}, "first_name"),
        ({"id": 42, "first_name": 7}, "first_name"),
        ({"id": 42, "first_name": ""}, "first_name"),
    ])
    def test_required_fields_validated(self, user, bad_field):
        """id must be an integer and first_name a non-empty string."""
        with pytest.raises(MalformedUserJson) as exc_info:
            extract_identity(fields_with_user(user))

        assert exc_info.value.details == {"fields": [bad_field]}

    def test_error_does_not_echo_user_data(self):
        """Error messages never include the submitted values."""
        with pytest.raises(MalformedUserJson) as exc_info:
            extract_identity(fields_with_user({"id": "secret-value", "first_name": "Ann"}))

        assert "secret-value" not in exc_info.value.message
        assert "secret-value" not in json.dumps(exc_info.value.details)
