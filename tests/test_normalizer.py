"""Tests for legacy record normalization."""

import pytest

from db_snapshot.backup.normalizer import normalize_record, normalize_role, normalize_status


class TestNormalizeRole:
    @pytest.mark.parametrize(
        "legacy, canonical",
        [
            ("Employee", "employee"),
            ("employee", "employee"),
            ("Tech Lead", "tech_lead"),
            ("tech_lead", "tech_lead"),
            ("Management", "management"),
            ("Admin", "admin"),
        ],
    )
    def test_known_roles(self, legacy: str, canonical: str) -> None:
        assert normalize_role(legacy) == canonical

    @pytest.mark.parametrize("value", ["Intern", "ADMIN", "", 3])
    def test_unknown_roles_become_employee(self, value) -> None:
        assert normalize_role(value) == "employee"

    def test_null_role_stays_null(self) -> None:
        assert normalize_role(None) is None


class TestNormalizeStatus:
    @pytest.mark.parametrize("value", ["Active", "ACTIVE", "Inactive", "pending"])
    def test_known_statuses_lowercased(self, value: str) -> None:
        assert normalize_status(value) == value.lower()

    @pytest.mark.parametrize("value", ["Archived", "", None, 1])
    def test_other_values_unchanged(self, value) -> None:
        assert normalize_status(value) == value


class TestNormalizeRecord:
    def test_role_only_rewritten_for_profiles(self) -> None:
        record = {"id": "1", "role": "Tech Lead"}
        assert normalize_record("profiles", record)["role"] == "tech_lead"
        assert normalize_record("user_roles", record)["role"] == "Tech Lead"

    def test_status_rewritten_for_any_table(self) -> None:
        assert normalize_record("projects", {"status": "Active"})["status"] == "active"

    def test_input_not_mutated(self) -> None:
        record = {"id": "1", "role": "Admin", "status": "Pending"}
        normalize_record("profiles", record)
        assert record == {"id": "1", "role": "Admin", "status": "Pending"}

    def test_unrelated_fields_pass_through(self) -> None:
        record = {"id": "1", "name": "Ada", "meta": {"k": [1, 2]}}
        assert normalize_record("profiles", record) == record

    @pytest.mark.parametrize(
        "record",
        [
            {"role": "Tech Lead", "status": "Active"},
            {"role": "Intern", "status": "Archived"},
            {"role": None},
            {},
        ],
    )
    def test_idempotent(self, record: dict) -> None:
        once = normalize_record("profiles", record)
        assert normalize_record("profiles", once) == once
