"""Build child ledger rows from a parent row and split lines."""

from ..models import SplitLine
from ..money import parse_money_to_number
from ..table import (
    AMOUNT_COLUMN,
    COST_CODE_COLUMN,
    DIVISION_COLUMN,
    GL_ACCOUNT_COLUMN,
    JOB_ID_COLUMN,
    NOTES_COLUMN,
    HeaderIndex,
    Record,
    Row,
    build_index,
    pad_row,
    row_to_record,
)

# GL account every job-coded line is booked to
JOB_GL_ACCOUNT = "1300"


def has_job(job_id: object) -> bool:
    """True when a job ID is present and not just whitespace."""
    return bool(job_id) and bool(str(job_id).strip())


def synthesize_children(
    headers: list[str],
    parent_row: Row,
    splits: list[SplitLine],
    index: HeaderIndex | None = None,
) -> list[Record]:
    """
    Create one child record per split line.

    Each child starts as a copy of the parent row. Only the amount and the
    fields a line actually supplies are overlaid; every other column keeps the
    parent's value. A line with a job ID is always booked to GL 1300, whatever
    GL account it also names.

    Args:
        headers: Live header row
        parent_row: The parent's positional values
        splits: Split lines, in output order
        index: Header index for ``headers`` (built if not given)

    Returns:
        Header-keyed child records, one per split line
    """
    index = index or build_index(headers)
    amount_pos = index.position(*AMOUNT_COLUMN)
    overlays = {
        "notes": index.position(*NOTES_COLUMN),
        "job_id": index.position(*JOB_ID_COLUMN),
        "cost_code": index.position(*COST_CODE_COLUMN),
        "division": index.position(*DIVISION_COLUMN),
    }
    gl_pos = index.position(*GL_ACCOUNT_COLUMN)

    children = []
    for line in splits:
        values = pad_row(parent_row, len(headers))

        if amount_pos is not None:
            values[amount_pos] = parse_money_to_number(line.amount)

        for name, pos in overlays.items():
            if pos is not None and line.supplied(name):
                value = getattr(line, name)
                values[pos] = "" if value is None else value

        if gl_pos is not None:
            if has_job(line.job_id):
                values[gl_pos] = JOB_GL_ACCOUNT
            elif line.supplied("gl_account"):
                values[gl_pos] = "" if line.gl_account is None else line.gl_account

        children.append(row_to_record(headers, values))

    return children
