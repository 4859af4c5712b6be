"""
Tests for user profile loading.
"""

import json

import pytest
from pydantic import ValidationError

from shadow_user.profile import UserProfile, load_user_profile


class TestLoadUserProfile:
    """Tests for load_user_profile."""

    def test_missing_file(self, tmp_path):
        """A missing file gives the empty default profile."""
        profile = load_user_profile(tmp_path / "nope.json")

        assert profile == UserProfile()
        assert profile.identity.phone == ""
        assert profile.preferences.food.budget_max == 0

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "user-profile.json"
        path.write_text("{ not json", encoding="utf-8")

        assert load_user_profile(path) == UserProfile()

    def test_wrong_shape(self, tmp_path):
        """A structurally invalid profile is treated like a missing one."""
        path = tmp_path / "user-profile.json"
        path.write_text(json.dumps({"identity": "Ivan"}), encoding="utf-8")

        assert load_user_profile(path) == UserProfile()

    def test_valid_profile(self, tmp_path):
        path = tmp_path / "user-profile.json"
        path.write_text(json.dumps({
            "identity": {"name": "Иван", "phone": "+79990000000", "email": "ivan@example.com"},
            "locations": {"home": {"address": "ул. Ленина, 1", "city": "Москва", "apartment": "12"}},
            "preferences": {"food": {"likes": ["бананы"], "budget_max": 2000}},
            "payment": {"preferred_method": "card"},
        }, ensure_ascii=False), encoding="utf-8")

        profile = load_user_profile(path)

        assert profile.identity.name == "Иван"
        assert profile.locations.home.apartment == "12"
        assert profile.preferences.food.likes == ["бананы"]
        assert profile.preferences.food.budget_max == 2000
        assert profile.payment.preferred_method == "card"
        assert profile.locations.work.address == ""

    def test_profile_is_read_only(self):
        profile = UserProfile()
        with pytest.raises(ValidationError):
            profile.identity = None
