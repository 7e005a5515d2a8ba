"""Tests for the split orchestrator."""

import copy
from unittest.mock import MagicMock

import pytest

from quickcode.clients.sheets import GoogleSheetsClient
from quickcode.exceptions import (
    ConservationError,
    MissingColumnError,
    PartialCommitError,
    RecordNotFoundError,
    SheetsAPIError,
    ValidationError,
)
from quickcode.models import SplitLine
from quickcode.split.service import (
    SplitService,
    check_conservation,
    format_record_id,
    resolve_mode_flags,
)
from quickcode.split.validator import ValidationResult

from .fakes import LOG_TITLE, InMemoryLedger

TWO_LINES = {
    "parentId": "7",
    "splits": [
        {"amount": "60.00", "notes": "Lunch", "jobId": "J-100", "costCode": "5100"},
        {"amount": 40, "notes": "Paper", "glAccount": "6200"},
    ],
}


@pytest.fixture
def service(settings, ledger):
    return SplitService(settings, ledger)


class TestResolveModeFlags:
    def test_defaults(self):
        assert resolve_mode_flags({}) == (True, False)
        assert resolve_mode_flags(None) == (True, False)

    @pytest.mark.parametrize("value", ["0", "false", "No", "FALSE"])
    def test_query_disables_dry_run(self, value):
        assert resolve_mode_flags({}, dry_run_param=value)[0] is False

    @pytest.mark.parametrize("value", ["1", "true", "off", ""])
    def test_other_query_values_keep_dry_run(self, value):
        assert resolve_mode_flags({}, dry_run_param=value)[0] is True

    @pytest.mark.parametrize("value,expected", [("1", True), ("YES", True), ("on", False), ("0", False)])
    def test_assign_ids_query(self, value, expected):
        assert resolve_mode_flags({}, assign_ids_param=value)[1] is expected

    def test_query_wins_over_body(self):
        body = {"dryRun": False, "assignIds": True}
        assert resolve_mode_flags(body, dry_run_param="true", assign_ids_param="no") == (True, False)

    def test_body_flags(self):
        assert resolve_mode_flags({"dryRun": False, "assignIds": True}) == (False, True)
        assert resolve_mode_flags({"dryRun": 0}) == (False, False)


class TestHelpers:
    def test_format_record_id(self):
        assert format_record_id(7) == "7"
        assert format_record_id(7.0) == "7"
        assert format_record_id("A-7") == "A-7"

    def test_conservation_allows_under_split(self):
        total = check_conservation(100.0, [SplitLine(amount="70.00")])
        assert total == pytest.approx(70.0)

    def test_conservation_tolerance(self):
        check_conservation(100.0, [SplitLine(amount=100.00005)])

    def test_conservation_skipped_for_unparseable_parent(self):
        check_conservation(float("nan"), [SplitLine(amount=1_000_000)])


class TestDryRun:
    def test_preview_returns_children_without_writing(self, service, ledger):
        result = service.split(TWO_LINES)

        assert result.ok
        assert result.dry_run
        assert result.appended == 0
        assert ledger.writes == 0

        assert result.parent_summary["ID"] == "7"
        assert result.parent_summary["Amount"] == "100.00"
        assert [c["Amount"] for c in result.children_preview] == [60.0, 40.0]
        assert [c["ID"] for c in result.children_preview] == ["7", "7"]

    def test_preview_lines(self, service):
        result = service.split(TWO_LINES)

        first, second = result.preview
        assert first.parent_id == "7"
        assert first.amount == 60.0
        assert first.job_id == "J-100"
        assert second.gl_account == "6200"
        assert second.job_id == ""

    def test_job_line_gets_gl_1300(self, service):
        body = {
            "parentId": "7",
            "splits": [{"amount": 100, "jobId": "J-100", "costCode": "5100", "glAccount": "6200"}],
        }
        [child] = service.split(body).children_preview
        assert child["GL Account"] == "1300"

    def test_preview_is_repeatable(self, service, ledger):
        before = copy.deepcopy(ledger.tables)
        first = service.split(TWO_LINES)
        second = service.split(TWO_LINES)
        assert first == second
        assert ledger.tables == before

    def test_under_split_is_accepted(self, service):
        result = service.split({"parentId": "7", "splits": [{"amount": "70.00"}]})
        assert [c["Amount"] for c in result.children_preview] == [70.0]

    def test_numeric_parent_id(self, service):
        assert service.split({"parentId": 7, "splits": [{"amount": 1}]}).parent_summary["ID"] == "7"

    def test_uses_total_column_when_no_amount(self, settings):
        ledger = InMemoryLedger({LOG_TITLE: [["ID", "Total", "Status"], ["1", "50", "New"]]})
        with pytest.raises(ConservationError):
            SplitService(settings, ledger).split({"parentId": "1", "splits": [{"amount": 51}]})


class TestRejections:
    def test_over_split_rejected_before_any_write(self, service, ledger):
        body = {"parentId": "7", "splits": [{"amount": 100}, {"amount": "50"}]}
        with pytest.raises(ConservationError) as exc_info:
            service.split(body, dry_run=False)

        assert exc_info.value.errors == [
            "Split total (150.00) exceeds parent Amount (100.00)."
        ]
        assert ledger.writes == 0

    def test_invalid_body(self, service, ledger):
        with pytest.raises(ValidationError) as exc_info:
            service.split({"splits": []}, dry_run=False)

        assert exc_info.value.errors == [
            "parentId is required (string or number).",
            "splits must be a non-empty array.",
        ]
        assert ledger.reads == []

    def test_snake_case_keys_are_ignored(self, service):
        result = service.split(
            {"parentId": "7", "splits": [{"amount": 1, "job_id": ["x"], "gl_account": "6200"}]}
        )
        [line] = result.preview
        assert line.job_id == ""
        assert line.gl_account == ""

    def test_model_errors_become_validation_errors(self, service, ledger, monkeypatch):
        monkeypatch.setattr(
            "quickcode.split.service.validate_split_payload",
            lambda body: ValidationResult(ok=True),
        )
        with pytest.raises(ValidationError) as exc_info:
            service.split({"parentId": "7", "splits": [{"amount": 1, "jobId": ["x"]}]})

        assert any(message.startswith("splits.0.jobId") for message in exc_info.value.errors)
        assert ledger.reads == []

    def test_unknown_parent(self, service, ledger):
        with pytest.raises(RecordNotFoundError, match="Parent ID 404 not found") as exc_info:
            service.split({"parentId": "404", "splits": [{"amount": 1}]}, dry_run=False)
        assert exc_info.value.record_id == "404"
        assert ledger.writes == 0

    def test_empty_ledger(self, settings):
        ledger = InMemoryLedger({LOG_TITLE: [["ID", "Amount"]]})
        with pytest.raises(RecordNotFoundError):
            SplitService(settings, ledger).split({"parentId": "1", "splits": [{"amount": 1}]})

    def test_missing_id_column(self, settings):
        ledger = InMemoryLedger({LOG_TITLE: [["Amount"], ["5"]]})
        with pytest.raises(MissingColumnError):
            SplitService(settings, ledger).split({"parentId": "1", "splits": [{"amount": 1}]})


class TestCommit:
    def test_assign_ids_continues_sequence(self, service, ledger):
        result = service.split(TWO_LINES, dry_run=False, assign_ids=True)

        assert result.ok
        assert not result.dry_run
        assert result.appended == 2

        [(title, rows)] = ledger.appends
        assert title == LOG_TITLE
        assert [row[0] for row in rows] == ["10", "11"]
        assert [c["ID"] for c in result.children_preview] == ["10", "11"]

    def test_children_written_in_header_order(self, service, ledger):
        service.split(TWO_LINES, dry_run=False)

        [(_, rows)] = ledger.appends
        lunch, paper = rows
        assert lunch == [
            "", "2025-01-08", "Staples", 60.0, "Lunch", "J-100", "5100", "OPS", "1300",
            "New", "jane", "boss",
        ]
        assert paper[3] == 40.0
        assert paper[4] == "Paper"
        assert paper[8] == "6200"

    def test_without_assign_ids_children_get_blank_ids(self, service, ledger):
        result = service.split(TWO_LINES, dry_run=False)
        [(_, rows)] = ledger.appends
        assert [row[0] for row in rows] == ["", ""]
        assert [c["ID"] for c in result.children_preview] == ["", ""]

    def test_parent_marked_split(self, service, ledger):
        service.split(TWO_LINES, dry_run=False)

        [(title, position, values)] = ledger.updates
        assert title == LOG_TITLE
        assert position == 7
        assert values[9] == "Split"
        assert values[3] == "100.00"
        assert ledger.tables[LOG_TITLE][7][9] == "Split"

    def test_append_happens_before_parent_update(self, service, ledger):
        ledger.fail_append = SheetsAPIError("append failed")
        with pytest.raises(SheetsAPIError):
            service.split(TWO_LINES, dry_run=False)
        assert ledger.updates == []

    def test_parent_update_failure_is_partial_commit(self, service, ledger):
        ledger.fail_update = SheetsAPIError("update failed")
        with pytest.raises(PartialCommitError) as exc_info:
            service.split(TWO_LINES, dry_run=False)

        assert exc_info.value.appended == 2
        assert exc_info.value.parent_id == "7"
        assert len(ledger.appends) == 1

    def test_timeout_on_parent_update_is_partial_commit(self, settings):
        service = MagicMock()
        values = service.spreadsheets.return_value.values.return_value
        values.get.return_value.execute.return_value = {
            "values": [["ID", "Amount", "Status"], ["1", "10", "New"]]
        }
        values.update.return_value.execute.side_effect = TimeoutError("socket timed out")
        store = GoogleSheetsClient("sheet-123", service=service)

        with pytest.raises(PartialCommitError) as exc_info:
            SplitService(settings, store).split(
                {"parentId": "1", "splits": [{"amount": 4}]}, dry_run=False
            )

        assert exc_info.value.appended == 1
        values.append.return_value.execute.assert_called_once()

    def test_no_status_column_skips_parent_update(self, settings):
        ledger = InMemoryLedger({LOG_TITLE: [["ID", "Amount"], ["1", "10"]]})
        result = SplitService(settings, ledger).split(
            {"parentId": "1", "splits": [{"amount": 4}, {"amount": 6}]}, dry_run=False
        )
        assert result.appended == 2
        assert ledger.updates == []


class TestParentRecord:
    def test_reads_record(self, service, ledger):
        record = service.parent_record(7.0)
        assert record["ID"] == "7"
        assert record["Amount"] == "100.00"
        assert ledger.writes == 0

    def test_unknown_id(self, service):
        with pytest.raises(RecordNotFoundError):
            service.parent_record("404")


class TestSampleParents:
    def test_lists_rows_with_ids(self, service):
        items = service.sample_parents()
        assert [i.id for i in items] == [str(n) for n in range(1, 10)]
        assert items[0].description == "Home Depot"
        assert items[0].status == "New"
        assert items[0].user == "jane"
        assert items[2].amount == "$1,234.56"

    def test_limit_and_blank_ids(self, settings):
        rows = [["ID", "Amount"], ["", "1"], ["a", "2"], ["b", "3"], ["c", "4"]]
        service = SplitService(settings, InMemoryLedger({LOG_TITLE: rows}))
        assert [i.id for i in service.sample_parents(limit=2)] == ["a", "b"]

    def test_empty_ledger(self, settings):
        assert SplitService(settings, InMemoryLedger()).sample_parents() == []


class TestLedgerScenarios:
    """End-to-end splits against a ledger whose largest ID is 9."""

    @pytest.fixture
    def ledger(self):
        rows = [["ID", "Amount", "Notes", "Status"]]
        rows += [[str(n), "$10.00", "", "New"] for n in range(1, 10)]
        rows[5] = ["5", "$100.00", "Parent", "New"]
        return InMemoryLedger({LOG_TITLE: rows})

    def test_even_split_with_assigned_ids(self, settings, ledger):
        body = {"parentId": "5", "splits": [{"amount": "$60.00"}, {"amount": "$40.00"}]}

        result = SplitService(settings, ledger).split(body, dry_run=False, assign_ids=True)

        assert result.appended == 2
        [(_, rows)] = ledger.appends
        assert rows == [["10", 60.0, "Parent", "New"], ["11", 40.0, "Parent", "New"]]
        assert ledger.tables[LOG_TITLE][5] == ["5", "$100.00", "Parent", "Split"]

    def test_over_split_writes_nothing(self, settings, ledger):
        body = {"parentId": "5", "splits": [{"amount": "$100.00"}, {"amount": "$50.00"}]}

        with pytest.raises(ConservationError) as exc_info:
            SplitService(settings, ledger).split(body, dry_run=False, assign_ids=True)

        assert exc_info.value.errors == [
            "Split total (150.00) exceeds parent Amount (100.00)."
        ]
        assert ledger.writes == 0

    def test_under_split_is_committed(self, settings, ledger):
        body = {"parentId": "5", "splits": [{"amount": "$50.00"}, {"amount": "$20.00"}]}

        result = SplitService(settings, ledger).split(body, dry_run=False)

        assert result.appended == 2
        [(_, rows)] = ledger.appends
        assert sum(row[1] for row in rows) == pytest.approx(70.0)
        assert ledger.tables[LOG_TITLE][5][3] == "Split"
