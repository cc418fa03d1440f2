"""Tests for credential matching."""

import pytest

from conftest import ROSTER_TABLE, SATO, SUZUKI
from schedulecheck.core.authenticator import authenticate, load_roster
from schedulecheck.core.records import StudentProfile, StudentRecord


@pytest.fixture
def roster():
    return [StudentRecord.from_fields(SATO), StudentRecord.from_fields(SUZUKI)]


class TestAuthenticate:
    """Tests for authenticate()."""

    def test_exact_match_returns_profile(self, roster):
        profile = authenticate(roster, "1001", "abcd")
        assert isinstance(profile, StudentProfile)
        assert profile.to_dict() == {
            "examNumber": "1001",
            "lastName": "Sato",
            "firstName": "Yui",
            "examDate": "2025-04-01",
            "meetingTime": "09:00",
            "examPeriod": "AM",
        }

    def test_profile_never_carries_password(self, roster):
        profile = authenticate(roster, "1001", "abcd")
        assert not hasattr(profile, "password")
        assert "abcd" not in repr(profile)

    def test_wrong_password(self, roster):
        assert authenticate(roster, "1001", "wrong") is None

    def test_unknown_exam_number(self, roster):
        assert authenticate(roster, "9999", "abcd") is None

    def test_exam_number_whitespace_is_ignored(self, roster):
        assert authenticate(roster, "  1001\n", "abcd") is not None

    def test_numeric_stored_exam_number(self):
        roster = [StudentRecord.from_fields({**SATO, "examNumber": 1001.0})]
        profile = authenticate(roster, "1001", "abcd")
        assert profile is not None
        assert profile.exam_number == "1001"

    def test_numeric_submitted_exam_number(self, roster):
        assert authenticate(roster, 1001, "abcd") is not None

    def test_password_is_not_trimmed(self, roster):
        assert authenticate(roster, "1001", " abcd") is None
        assert authenticate(roster, "1001", "abcd ") is None

    def test_password_is_case_sensitive(self, roster):
        assert authenticate(roster, "1001", "ABCD") is None

    def test_no_partial_match(self, roster):
        assert authenticate(roster, "100", "abcd") is None
        assert authenticate(roster, "10011", "abcd") is None

    def test_empty_exam_number_never_matches(self):
        roster = [StudentRecord.from_fields({**SATO, "examNumber": ""})]
        assert authenticate(roster, "", "abcd") is None

    def test_first_match_wins(self):
        first = {**SATO, "lastName": "First"}
        second = {**SATO, "lastName": "Second"}
        roster = [StudentRecord.from_fields(first), StudentRecord.from_fields(second)]
        assert authenticate(roster, "1001", "abcd").last_name == "First"

    def test_empty_roster(self):
        assert authenticate([], "1001", "abcd") is None


class TestLoadRoster:
    """Tests for load_roster()."""

    def test_loads_in_order(self, memory_store):
        roster = load_roster(memory_store, ROSTER_TABLE)
        assert [r.exam_number for r in roster] == ["1001", "1002"]
        assert memory_store.calls == [("list_records", ROSTER_TABLE)]
