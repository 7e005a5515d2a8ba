"""Header indexing and row lookup over raw ledger tables.

A table is what the store returns for a tab: a list of rows, each a list of
cell values, with the header row first. Column order is never assumed; every
column is found through a ``HeaderIndex`` built from the live header row.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any

from .exceptions import MissingColumnError

logger = logging.getLogger(__name__)

Row = list[Any]
Record = dict[str, Any]

# Alias lists, tried in order. The first alias is the canonical column name.
ID_COLUMN = ("ID",)
AMOUNT_COLUMN = ("Amount", "Total")
NOTES_COLUMN = ("Notes", "Memo")
JOB_ID_COLUMN = ("Job ID", "Job")
COST_CODE_COLUMN = ("Cost Code", "CostCode")
DIVISION_COLUMN = ("Division", "Dept")
GL_ACCOUNT_COLUMN = ("GL Account", "GL", "Account")
STATUS_COLUMN = ("Status",)
USER_NAME_COLUMN = ("User Name", "Username", "User", "UserID")
APPROVER_COLUMN = ("Approver", "Approved By", "Manager")
# "Transcation" is a misspelling still present in older ledgers
DESCRIPTION_COLUMN = (
    "Transaction Description",
    "Transcation Description",
    "Description",
    "Vendor",
    "Merchant",
)

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_header(name: object) -> str:
    """Lower-case a header and drop everything but letters and digits."""
    return _NON_ALNUM.sub("", str(name or "").lower())


@dataclass(frozen=True)
class HeaderIndex:
    """Normalized header name -> zero-based column position."""

    headers: list[str]
    positions: dict[str, int] = field(default_factory=dict)

    @staticmethod
    def normalize(name: object) -> str:
        return normalize_header(name)

    def position(self, *names: str) -> int | None:
        """Return the position of the first alias present, or None."""
        for name in names:
            pos = self.positions.get(normalize_header(name))
            if pos is not None:
                return pos
        return None

    def require(self, *names: str) -> int:
        """Like ``position`` but raise MissingColumnError when absent."""
        pos = self.position(*names)
        if pos is None:
            raise MissingColumnError(f"Missing {names[0]} column in sheet")
        return pos

    def __contains__(self, name: object) -> bool:
        return normalize_header(name) in self.positions


def build_index(headers: list[str]) -> HeaderIndex:
    """
    Build a header index for a live header row.

    Duplicate normalized names resolve to the last occurrence.
    """
    positions = {normalize_header(h): i for i, h in enumerate(headers)}
    return HeaderIndex(headers=list(headers), positions=positions)


def cell(row: Row, pos: int | None) -> Any:
    """Return the value at ``pos`` or "" when the row is short or pos is None."""
    if pos is None or pos >= len(row):
        return ""
    value = row[pos]
    return "" if value is None else value


def cell_text(row: Row, pos: int | None) -> str:
    return str(cell(row, pos)).strip()


def pad_row(row: Row, length: int) -> Row:
    """Copy a row, extending it with blanks up to ``length`` cells."""
    padded = list(row)
    while len(padded) < length:
        padded.append("")
    return padded


def row_to_record(headers: list[str], row: Row) -> Record:
    """Key a positional row by header name. Missing cells become ""."""
    return {h: cell(row, i) for i, h in enumerate(headers)}


def record_to_row(headers: list[str], record: Record) -> Row:
    """Align a header-keyed record to header order. Missing keys become ""."""
    row = []
    for h in headers:
        value = record.get(h, "")
        row.append("" if value is None else value)
    return row


@dataclass(frozen=True)
class RowMatch:
    """A located ledger row."""

    position: int  # index into the table, header row is 0
    row: Row
    index: HeaderIndex

    @property
    def headers(self) -> list[str]:
        return self.index.headers

    @property
    def sheet_row(self) -> int:
        """1-based row number as shown in the spreadsheet."""
        return self.position + 1

    @property
    def record(self) -> Record:
        return row_to_record(self.index.headers, self.row)


def find_by_key(
    rows: list[Row], key: object, key_column: tuple[str, ...] = ID_COLUMN
) -> RowMatch | None:
    """
    Find the first row whose key cell equals ``key`` after trimming.

    Duplicate keys are not detected; the topmost row wins.

    Args:
        rows: Full table, header row first
        key: Identifier to look for
        key_column: Alias list for the key column

    Returns:
        The matching row, or None if no data row matches

    Raises:
        MissingColumnError: If the header row has no key column
    """
    if not rows:
        return None

    index = build_index(rows[0])
    key_pos = index.require(*key_column)
    wanted = str(key).strip()

    for position in range(1, len(rows)):
        row = rows[position] or []
        if cell_text(row, key_pos) == wanted:
            return RowMatch(position=position, row=list(row), index=index)

    return None


def positions_by_key(
    rows: list[Row], index: HeaderIndex, key_column: tuple[str, ...] = ID_COLUMN
) -> dict[str, int]:
    """Map every non-blank key to its first row position."""
    key_pos = index.require(*key_column)
    positions: dict[str, int] = {}
    for position in range(1, len(rows)):
        key = cell_text(rows[position] or [], key_pos)
        if key and key not in positions:
            positions[key] = position
    return positions


@dataclass(frozen=True)
class NextIdInfo:
    """Result of scanning the ID column.

    ``column`` is None when the table has no ID column. ``next_id`` is None
    when there is nothing to number from (no ID column, or no data rows).
    """

    column: int | None
    next_id: int | None


_NON_NUMERIC = re.compile(r"[^0-9.-]")


def next_sequential_id(
    rows: list[Row], key_column: tuple[str, ...] = ID_COLUMN
) -> NextIdInfo:
    """
    Compute the next numeric identifier for a table.

    Non-numeric characters are stripped from each ID before parsing, and the
    floor of the largest value seen plus one is returned.
    """
    if not rows:
        return NextIdInfo(column=None, next_id=None)

    index = build_index(rows[0])
    column = index.position(*key_column)
    if column is None:
        return NextIdInfo(column=None, next_id=None)
    if len(rows) < 2:
        return NextIdInfo(column=column, next_id=None)

    max_id = 0
    for row in rows[1:]:
        raw = cell_text(row or [], column)
        if not raw:
            continue
        cleaned = _NON_NUMERIC.sub("", raw)
        try:
            number = float(cleaned) if cleaned else 0.0
        except ValueError:
            logger.debug(f"Ignoring non-numeric ID {raw!r}")
            continue
        if math.isfinite(number):
            max_id = max(max_id, math.floor(number))

    return NextIdInfo(column=column, next_id=max_id + 1)
