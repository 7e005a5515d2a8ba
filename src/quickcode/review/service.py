"""Submission and approval of coded ledger rows.

Batches are written one row at a time. A failure partway through leaves the
earlier rows updated and the later ones untouched.
"""

import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..clients.sheets import LedgerStore
from ..config import Settings
from ..exceptions import MissingColumnError, NotFoundError, ValidationError
from ..models import (
    ApprovalQueues,
    ApproveBatchRequest,
    BatchItem,
    BatchResult,
    PurchaserGroup,
    SubmitBatchRequest,
    TransactionList,
)
from ..split.service import format_record_id
from ..split.synthesizer import JOB_GL_ACCOUNT, has_job
from ..split.validator import pydantic_messages
from ..table import (
    APPROVER_COLUMN,
    DESCRIPTION_COLUMN,
    ID_COLUMN,
    STATUS_COLUMN,
    USER_NAME_COLUMN,
    HeaderIndex,
    Row,
    build_index,
    cell,
    cell_text,
    pad_row,
    positions_by_key,
    row_to_record,
)

logger = logging.getLogger(__name__)

STATUS_NEW = "New"
STATUS_SUBMITTED = "Submitted"
STATUS_APPROVED = "Approved"

UNKNOWN_PURCHASER = "(unknown)"

# Edit field -> canonical column it writes
_EDIT_COLUMNS = {
    "notes": "Notes",
    "job_id": "Job ID",
    "cost_code_code": "Cost Code",
    "division": "Division",
}


def is_coding_valid(
    notes: object = "",
    job_id: object = "",
    cost_code: object = "",
    gl_account: object = "",
) -> bool:
    """
    Check a row's coding before it is submitted.

    Notes are required, plus exactly one coding path: a job with a cost code,
    or a GL account with neither job nor cost code.
    """

    def filled(value: object) -> bool:
        return value is not None and bool(str(value).strip())

    job_path = filled(job_id) and filled(cost_code)
    gl_path = filled(gl_account) and not filled(job_id) and not filled(cost_code)
    return filled(notes) and (job_path or gl_path)


def apply_coding_edits(row: Row, index: HeaderIndex, item: BatchItem) -> Row:
    """
    Write the supplied coding fields of ``item`` into ``row``.

    Columns are matched by exact (normalized) name. A job ID forces the GL
    account to 1300; otherwise a supplied GL account is written as given.
    """
    row = list(row)

    def set_if(column: str, supplied: bool, value: Any):
        pos = index.position(column)
        if pos is None or not supplied:
            return
        row.extend([""] * (pos + 1 - len(row)))
        row[pos] = "" if value is None else value

    for name, column in _EDIT_COLUMNS.items():
        set_if(column, item.supplied(name), getattr(item, name))

    if has_job(item.job_id):
        set_if("GL Account", True, JOB_GL_ACCOUNT)
    else:
        set_if("GL Account", item.supplied("gl_account_code"), item.gl_account_code)

    return row


def parse_submit_request(body: Any) -> SubmitBatchRequest:
    """Validate a submit-batch body."""
    if not isinstance(body, dict) or not isinstance(body.get("items"), list) or not body["items"]:
        raise ValidationError(["items array required"])
    try:
        return SubmitBatchRequest.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError(pydantic_messages(e)) from e


def parse_approve_request(body: Any) -> ApproveBatchRequest:
    """Validate an approve-batch body (``items`` or ``ids``)."""
    body = body if isinstance(body, dict) else {}
    if not isinstance(body.get("items"), list) and not isinstance(body.get("ids"), list):
        raise ValidationError(["ids or items required"])
    try:
        return ApproveBatchRequest.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError(pydantic_messages(e)) from e


class ReviewService:
    """Service for the purchaser and approver queues."""

    def __init__(self, settings: Settings, store: LedgerStore):
        """Initialize the review service."""
        self.settings = settings
        self.store = store

    @property
    def ledger_title(self) -> str:
        return self.settings.sheets_log_title

    def _sorted_records(
        self, headers: list[str], index: HeaderIndex, rows: list[Row]
    ) -> list[dict[str, Any]]:
        desc_pos = index.position(*DESCRIPTION_COLUMN[:2])
        ordered = sorted(rows, key=lambda r: str(cell(r, desc_pos)).casefold())
        return [row_to_record(headers, r) for r in ordered]

    def transactions_for_user(self, username: str) -> TransactionList:
        """
        List a purchaser's rows that are still New.

        Args:
            username: Ledger user name (e-mail local part)

        Raises:
            MissingColumnError: If Status or User Name is missing
        """
        rows = self.store.read_all_rows(self.ledger_title)
        if len(rows) < 2:
            return TransactionList(headers=list(rows[0]) if rows else [], rows=[])

        headers = list(rows[0])
        index = build_index(headers)
        status_pos = index.position(*STATUS_COLUMN)
        user_pos = index.position(*USER_NAME_COLUMN)
        if status_pos is None or user_pos is None:
            raise MissingColumnError("Missing Status/User Name columns")

        me = username.strip().lower()
        mine = [
            row or []
            for row in rows[1:]
            if cell_text(row or [], status_pos).lower() == STATUS_NEW.lower()
            and cell_text(row or [], user_pos).lower() == me
        ]

        logger.info(f"Found {len(mine)} new transaction(s) for {me}")
        return TransactionList(
            headers=headers, rows=self._sorted_records(headers, index, mine)
        )

    def approval_queues(self, approver: str) -> ApprovalQueues:
        """
        List Submitted rows awaiting ``approver``, grouped by purchaser.

        Groups are sorted by purchaser user name.

        Raises:
            MissingColumnError: If Status, Approver or User Name is missing
        """
        rows = self.store.read_all_rows(self.ledger_title)
        if len(rows) < 2:
            return ApprovalQueues(
                headers=list(rows[0]) if rows else [], groups=[], total_rows=0
            )

        headers = list(rows[0])
        index = build_index(headers)
        status_pos = index.position(*STATUS_COLUMN)
        approver_pos = index.position(*APPROVER_COLUMN)
        user_pos = index.position(*USER_NAME_COLUMN)
        if status_pos is None or approver_pos is None or user_pos is None:
            raise MissingColumnError("Missing Status/Approver/User Name columns")

        me = approver.strip().lower()
        queued = [
            row or []
            for row in rows[1:]
            if cell_text(row or [], status_pos).lower() == STATUS_SUBMITTED.lower()
            and cell_text(row or [], approver_pos).lower() == me
        ]

        by_purchaser: dict[str, list[Row]] = {}
        for row in queued:
            purchaser = cell_text(row, user_pos).lower() or UNKNOWN_PURCHASER
            by_purchaser.setdefault(purchaser, []).append(row)

        groups = [
            PurchaserGroup(
                purchaser=purchaser,
                rows=self._sorted_records(headers, index, by_purchaser[purchaser]),
            )
            for purchaser in sorted(by_purchaser, key=str.casefold)
        ]

        logger.info(
            f"Found {len(queued)} submitted row(s) in {len(groups)} group(s) for {me}"
        )
        return ApprovalQueues(headers=headers, groups=groups, total_rows=len(queued))

    def _update_statuses(
        self, work: list[tuple[str, BatchItem | None]], status: str
    ) -> BatchResult:
        rows = self.store.read_all_rows(self.ledger_title)
        if len(rows) < 2:
            raise NotFoundError("No data")

        headers = list(rows[0])
        index = build_index(headers)
        status_pos = index.position(*STATUS_COLUMN)
        if index.position(*ID_COLUMN) is None or status_pos is None:
            raise MissingColumnError("Missing ID/Status")

        positions = positions_by_key(rows, index)

        updated = 0
        for record_id, edits in work:
            position = positions.get(record_id.strip())
            if position is None:
                logger.warning(f"Skipping unknown ID {record_id}")
                continue

            row = list(rows[position] or [])
            if edits is not None:
                row = apply_coding_edits(row, index, edits)
            row = pad_row(row, max(len(headers), status_pos + 1))
            row[status_pos] = status

            self.store.update_row(self.ledger_title, position, row)
            updated += 1

        logger.info(f"Marked {updated} of {len(work)} row(s) {status}")
        return BatchResult(updated=updated)

    def submit_batch(self, request: SubmitBatchRequest) -> BatchResult:
        """Mark rows Submitted, writing any coding edits first."""
        work = [(format_record_id(item.id), item) for item in request.items]
        return self._update_statuses(work, STATUS_SUBMITTED)

    def approve_batch(self, request: ApproveBatchRequest) -> BatchResult:
        """Mark rows Approved. Full items also carry coding edits."""
        if request.items is not None:
            work = [(format_record_id(item.id), item) for item in request.items]
        else:
            work = [(format_record_id(record_id), None) for record_id in request.ids or []]
        return self._update_statuses(work, STATUS_APPROVED)

