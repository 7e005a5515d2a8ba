"""Tests for the purchaser and approver queues and batch updates."""

import pytest

from quickcode.exceptions import MissingColumnError, NotFoundError, ValidationError
from quickcode.models import BatchItem
from quickcode.review.service import (
    ReviewService,
    apply_coding_edits,
    is_coding_valid,
    parse_approve_request,
    parse_submit_request,
)
from quickcode.table import build_index

from .conftest import HEADERS
from .fakes import LOG_TITLE, InMemoryLedger


@pytest.fixture
def service(settings, ledger):
    return ReviewService(settings, ledger)


class TestIsCodingValid:
    def test_job_path(self):
        assert is_coding_valid("Lunch", "J-100", "5100", "")

    def test_gl_path(self):
        assert is_coding_valid("Lunch", "", "", "6200")

    def test_notes_required(self):
        assert not is_coding_valid("  ", "J-100", "5100", "")

    def test_job_without_cost_code(self):
        assert not is_coding_valid("Lunch", "J-100", "", "")

    def test_gl_with_cost_code(self):
        assert not is_coding_valid("Lunch", "", "5100", "6200")

    def test_job_path_ignores_gl(self):
        assert is_coding_valid("Lunch", "J-100", "5100", "1300")

    def test_nothing_coded(self):
        assert not is_coding_valid("Lunch", None, None, None)


class TestTransactionsForUser:
    def test_new_rows_for_user_sorted_by_description(self, service):
        result = service.transactions_for_user("Jane")

        assert result.headers == HEADERS
        assert [r["ID"] for r in result.rows] == ["1", "9", "2", "7"]
        assert [r["Transaction Description"] for r in result.rows] == [
            "Home Depot",
            "Menards",
            "shell gas",
            "Staples",
        ]

    def test_no_rows(self, settings):
        service = ReviewService(settings, InMemoryLedger({LOG_TITLE: [HEADERS]}))
        result = service.transactions_for_user("jane")
        assert result.headers == HEADERS
        assert result.rows == []

    def test_missing_columns(self, settings):
        ledger = InMemoryLedger({LOG_TITLE: [["ID", "Status"], ["1", "New"]]})
        with pytest.raises(MissingColumnError):
            ReviewService(settings, ledger).transactions_for_user("jane")

    def test_misspelled_description_header(self, settings):
        rows = [
            ["ID", "Transcation Description", "Status", "User Name"],
            ["1", "zeta", "New", "jane"],
            ["2", "Alpha", "New", "jane"],
        ]
        result = ReviewService(settings, InMemoryLedger({LOG_TITLE: rows})).transactions_for_user("jane")
        assert [r["ID"] for r in result.rows] == ["2", "1"]


class TestApprovalQueues:
    def test_groups_by_purchaser(self, service):
        result = service.approval_queues("boss")

        assert result.total_rows == 3
        assert [g.purchaser for g in result.groups] == ["(unknown)", "bob", "jane"]
        assert [r["ID"] for r in result.groups[1].rows] == ["5"]
        assert [r["ID"] for r in result.groups[2].rows] == ["4"]

    def test_other_approver(self, service):
        result = service.approval_queues("nobody")
        assert result.groups == []
        assert result.total_rows == 0

    def test_missing_approver_column(self, settings):
        rows = [["ID", "Status", "User Name"], ["1", "Submitted", "jane"]]
        with pytest.raises(MissingColumnError):
            ReviewService(settings, InMemoryLedger({LOG_TITLE: rows})).approval_queues("boss")


class TestApplyCodingEdits:
    def test_only_supplied_fields_written(self):
        index = build_index(HEADERS)
        row = ["1", "d", "x", "10", "old", "", "", "OPS", "6100", "New"]
        item = BatchItem.model_validate({"id": "1", "notes": "new"})

        updated = apply_coding_edits(row, index, item)

        assert updated[4] == "new"
        assert updated[7] == "OPS"
        assert updated[8] == "6100"
        assert row[4] == "old"

    def test_job_forces_gl_1300(self):
        index = build_index(HEADERS)
        item = BatchItem.model_validate(
            {"id": "1", "jobId": "J-1", "costCodeCode": "5100", "glAccountCode": "6200"}
        )
        updated = apply_coding_edits(["1"], index, item)
        assert updated[5] == "J-1"
        assert updated[6] == "5100"
        assert updated[8] == "1300"

    def test_gl_written_without_job(self):
        index = build_index(HEADERS)
        item = BatchItem.model_validate({"id": "1", "glAccountCode": 6200})
        assert apply_coding_edits(["1"], index, item)[8] == 6200


class TestBatches:
    def test_parse_submit_requires_items(self):
        for body in (None, {}, {"items": []}, {"items": "1"}):
            with pytest.raises(ValidationError) as exc_info:
                parse_submit_request(body)
            assert exc_info.value.errors == ["items array required"]

    def test_parse_approve_requires_ids_or_items(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_approve_request({"ids": "1"})
        assert exc_info.value.errors == ["ids or items required"]

    def test_submit_writes_edits_and_status(self, service, ledger):
        request = parse_submit_request(
            {
                "items": [
                    {"id": "1", "notes": "Drywall", "jobId": "J-200", "costCodeCode": "5200"},
                    {"id": 9, "notes": "Screws", "glAccountCode": "6300"},
                ]
            }
        )
        result = service.submit_batch(request)

        assert result.ok
        assert result.updated == 2
        first = ledger.tables[LOG_TITLE][1]
        assert first[4:10] == ["Drywall", "J-200", "5200", "", "1300", "Submitted"]
        last = ledger.tables[LOG_TITLE][9]
        assert last[8] == "6300"
        assert last[9] == "Submitted"

    def test_unknown_ids_skipped(self, service, ledger):
        request = parse_submit_request({"items": [{"id": "404"}, {"id": "2"}]})
        result = service.submit_batch(request)

        assert result.updated == 1
        assert [position for _, position, _ in ledger.updates] == [2]

    def test_approve_by_ids(self, service, ledger):
        result = service.approve_batch(parse_approve_request({"ids": ["4", 5]}))

        assert result.updated == 2
        assert ledger.tables[LOG_TITLE][4][9] == "Approved"
        assert ledger.tables[LOG_TITLE][5][9] == "Approved"
        assert ledger.tables[LOG_TITLE][4][4] == "Lumber"

    def test_approve_items_carry_edits(self, service, ledger):
        request = parse_approve_request({"items": [{"id": "5", "notes": "Team snacks"}]})
        service.approve_batch(request)
        assert ledger.tables[LOG_TITLE][5][4] == "Team snacks"
        assert ledger.tables[LOG_TITLE][5][9] == "Approved"

    def test_no_data(self, settings):
        service = ReviewService(settings, InMemoryLedger({LOG_TITLE: [HEADERS]}))
        with pytest.raises(NotFoundError, match="No data"):
            service.approve_batch(parse_approve_request({"ids": ["1"]}))

    def test_missing_status_column(self, settings):
        service = ReviewService(settings, InMemoryLedger({LOG_TITLE: [["ID"], ["1"]]}))
        with pytest.raises(MissingColumnError, match="Missing ID/Status"):
            service.approve_batch(parse_approve_request({"ids": ["1"]}))

    def test_short_rows_padded_to_status(self, settings):
        ledger = InMemoryLedger({LOG_TITLE: [["ID", "Notes", "Status"], ["1"]]})
        ReviewService(settings, ledger).approve_batch(parse_approve_request({"ids": ["1"]}))
        assert ledger.tables[LOG_TITLE][1] == ["1", "", "Approved"]
