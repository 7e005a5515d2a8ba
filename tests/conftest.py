"""Shared fixtures: settings and an in-memory ledger."""

import pytest

from quickcode.config import Settings

from .fakes import LOG_TITLE, InMemoryLedger

HEADERS = [
    "ID",
    "Date",
    "Transaction Description",
    "Amount",
    "Notes",
    "Job ID",
    "Cost Code",
    "Division",
    "GL Account",
    "Status",
    "User Name",
    "Approver",
]


@pytest.fixture
def settings():
    """Settings that never read a local .env file."""
    return Settings(_env_file=None, sheets_spreadsheet_id="test-sheet")


@pytest.fixture
def ledger_rows():
    """A small ledger, IDs 1 through 9."""
    return [
        HEADERS,
        ["1", "2025-01-02", "Home Depot", "250.00", "", "", "", "", "", "New", "jane", "boss"],
        ["2", "2025-01-03", "shell gas", "45.10", "Fuel", "", "", "", "6200", "New", "jane", "boss"],
        ["3", "2025-01-04", "Amazon", "$1,234.56", "", "", "", "", "", "New", "bob", "boss"],
        ["4", "2025-01-05", "Lowes", "80.00", "Lumber", "J-100", "5100", "", "1300", "Submitted", "jane", "boss"],
        ["5", "2025-01-06", "Costco", "30.00", "Snacks", "", "", "", "6400", "Submitted", "bob", "boss"],
        ["6", "2025-01-07", "Ace Hardware", "12.00", "Nails", "J-100", "5100", "", "1300", "Submitted", "", "Boss"],
        ["7", "2025-01-08", "Staples", "100.00", "Office", "", "", "OPS", "6100", "New", "jane", "boss"],
        ["8", "2025-01-09", "Chevron", "60.00", "", "", "", "", "", "Approved", "bob", "other"],
        ["9", "2025-01-10", "Menards", "19.99", "", "", "", "", "", "New", "jane", "other"],
    ]


@pytest.fixture
def ledger(ledger_rows):
    return InMemoryLedger({LOG_TITLE: ledger_rows})
