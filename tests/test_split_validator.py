"""Tests for split request validation."""

import pytest

from quickcode.split.validator import validate_split_payload


class TestValidateSplitPayload:
    def test_valid_request(self):
        result = validate_split_payload(
            {
                "parentId": "7",
                "splits": [
                    {"amount": "60.00", "notes": "Lunch", "jobId": "J-100", "costCode": 5100},
                    {"amount": 40, "glAccount": "6200", "division": None},
                ],
            }
        )
        assert result.ok
        assert result.errors == []

    def test_numeric_parent_id(self):
        assert validate_split_payload({"parentId": 7, "splits": [{"amount": 1}]}).ok

    @pytest.mark.parametrize("body", [None, [], "text", 5])
    def test_body_must_be_object(self, body):
        result = validate_split_payload(body)
        assert not result.ok
        assert result.errors == ["Request body must be a JSON object."]

    def test_reports_every_problem(self):
        result = validate_split_payload(
            {
                "splits": [
                    {"amount": "abc"},
                    {"amount": 10, "notes": {"text": "x"}},
                ]
            }
        )
        assert not result.ok
        assert result.errors == [
            "parentId is required (string or number).",
            "splits[0].amount is required and must be a number or money string.",
            "splits[1].notes must be string/number if provided.",
        ]

    def test_missing_parent_and_splits_not_a_list(self):
        result = validate_split_payload({"splits": "60"})
        assert result.errors == [
            "parentId is required (string or number).",
            "splits must be a non-empty array.",
        ]

    @pytest.mark.parametrize("parent_id", [0, "", None, True, ["7"]])
    def test_rejected_parent_ids(self, parent_id):
        result = validate_split_payload({"parentId": parent_id, "splits": [{"amount": 1}]})
        assert result.errors == ["parentId is required (string or number)."]

    def test_empty_splits(self):
        result = validate_split_payload({"parentId": "7", "splits": []})
        assert result.errors == ["splits must be a non-empty array."]

    def test_split_line_must_be_object(self):
        result = validate_split_payload({"parentId": "7", "splits": [60, {"amount": 1}]})
        assert result.errors == ["splits[0] must be an object."]

    def test_missing_amount(self):
        result = validate_split_payload({"parentId": "7", "splits": [{"notes": "x"}]})
        assert result.errors == [
            "splits[0].amount is required and must be a number or money string."
        ]

    @pytest.mark.parametrize("amount", [10**400, "9" * 400])
    def test_out_of_range_amount(self, amount):
        result = validate_split_payload({"parentId": "7", "splits": [{"amount": amount}]})
        assert result.errors == [
            "splits[0].amount is required and must be a number or money string."
        ]

    def test_each_bad_optional_field_reported(self):
        result = validate_split_payload(
            {"parentId": "7", "splits": [{"amount": 1, "jobId": [], "glAccount": False}]}
        )
        assert result.errors == [
            "splits[0].jobId must be string/number if provided.",
            "splits[0].glAccount must be string/number if provided.",
        ]
