"""Split orchestration: validate, locate the parent, preview, then commit.

The ledger is read and written through a ``LedgerStore``. Nothing is locked
between reading the parent and writing the children, and nothing is rolled
back if a later write fails.
"""

import logging
import math
import re
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..clients.sheets import LedgerStore
from ..config import Settings
from ..exceptions import (
    ConservationError,
    PartialCommitError,
    RecordNotFoundError,
    UpstreamError,
    ValidationError,
)
from ..models import SampleParent, SplitLine, SplitPreviewLine, SplitRequest, SplitResult
from ..money import parse_money_to_number
from ..table import (
    AMOUNT_COLUMN,
    DESCRIPTION_COLUMN,
    ID_COLUMN,
    STATUS_COLUMN,
    USER_NAME_COLUMN,
    build_index,
    cell,
    cell_text,
    find_by_key,
    next_sequential_id,
    pad_row,
    record_to_row,
)
from .synthesizer import synthesize_children
from .validator import pydantic_messages, validate_split_payload

logger = logging.getLogger(__name__)

# Split totals may exceed the parent amount by at most this much
CONSERVATION_TOLERANCE = 0.0001

SPLIT_STATUS = "Split"

_FALSE_FLAG = re.compile(r"^(0|false|no)$", re.IGNORECASE)
_TRUE_FLAG = re.compile(r"^(1|true|yes)$", re.IGNORECASE)


def resolve_mode_flags(
    body: Any,
    dry_run_param: str | None = None,
    assign_ids_param: str | None = None,
) -> tuple[bool, bool]:
    """
    Resolve the dry-run and assign-ids flags for a split call.

    Query parameters take precedence over body fields. Dry run stays on
    unless explicitly disabled; identifier assignment stays off unless
    explicitly enabled.

    Returns:
        Tuple of (dry_run, assign_ids)
    """
    body = body if isinstance(body, dict) else {}

    if dry_run_param is not None:
        dry_run = not _FALSE_FLAG.match(str(dry_run_param))
    else:
        dry_run = True if body.get("dryRun") is None else bool(body.get("dryRun"))

    if assign_ids_param is not None:
        assign_ids = bool(_TRUE_FLAG.match(str(assign_ids_param)))
    else:
        assign_ids = bool(body.get("assignIds"))

    return dry_run, assign_ids


def format_record_id(value: object) -> str:
    """Render an identifier the way it appears in the ledger."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def build_preview(parent_id: str, splits: list[SplitLine]) -> list[SplitPreviewLine]:
    """Echo each split line with its amount parsed and blanks filled in."""

    def _or_blank(value):
        return "" if value is None else value

    return [
        SplitPreviewLine(
            parent_id=parent_id,
            amount=parse_money_to_number(line.amount),
            notes=_or_blank(line.notes),
            job_id=_or_blank(line.job_id),
            cost_code=_or_blank(line.cost_code),
            division=_or_blank(line.division),
            gl_account=_or_blank(line.gl_account),
        )
        for line in splits
    ]


def check_conservation(parent_amount: float, splits: list[SplitLine]) -> float:
    """
    Reject split lines that add up to more than the parent.

    Adding up to less is allowed, so a row can be split off partially.

    Returns:
        The split total

    Raises:
        ConservationError: If the total exceeds the parent beyond tolerance
    """
    total = 0.0
    for line in splits:
        amount = parse_money_to_number(line.amount)
        if not math.isnan(amount):
            total += amount

    if not math.isnan(parent_amount) and total > parent_amount + CONSERVATION_TOLERANCE:
        raise ConservationError(
            [f"Split total ({total:.2f}) exceeds parent Amount ({parent_amount:.2f})."]
        )

    return total


class SplitService:
    """Service for splitting one ledger row into several."""

    def __init__(self, settings: Settings, store: LedgerStore):
        """Initialize the split service."""
        self.settings = settings
        self.store = store

    @property
    def ledger_title(self) -> str:
        return self.settings.sheets_log_title

    def _locate(self, parent_id: str):
        rows = self.store.read_all_rows(self.ledger_title)
        parent = find_by_key(rows, parent_id) if len(rows) >= 2 else None
        if parent is None:
            raise RecordNotFoundError(parent_id, f"Parent ID {parent_id} not found")
        return parent

    def parent_record(self, parent_id: Any) -> dict[str, Any]:
        """
        Read one ledger row as a header-keyed record.

        Raises:
            RecordNotFoundError: If no row has the ID
            MissingColumnError: If the ledger has no ID column
        """
        return self._locate(format_record_id(parent_id)).record

    def split(
        self, body: Any, dry_run: bool = True, assign_ids: bool = False
    ) -> SplitResult:
        """
        Split a parent row, or preview the split when ``dry_run`` is set.

        Validation, parent lookup and the conservation check all happen
        before any write.

        Args:
            body: Raw request body with ``parentId`` and ``splits``
            dry_run: Only compute the preview
            assign_ids: Give children sequential IDs instead of blank ones

        Returns:
            The preview, plus the number of rows appended when committed

        Raises:
            ValidationError: If the body is malformed
            RecordNotFoundError: If no row has the parent ID
            MissingColumnError: If the ledger has no ID column
            ConservationError: If the split total exceeds the parent amount
            UpstreamError: If the ledger cannot be read or written
        """
        check = validate_split_payload(body)
        if not check.ok:
            raise ValidationError(check.errors)

        try:
            request = SplitRequest.model_validate(body)
        except PydanticValidationError as e:
            raise ValidationError(pydantic_messages(e)) from e
        parent_id = format_record_id(request.parent_id)

        parent = self._locate(parent_id)
        logger.info(f"Located parent {parent_id} at row {parent.sheet_row}")

        headers = parent.headers
        parent_summary = parent.record
        parent_amount = parse_money_to_number(
            cell(parent.row, parent.index.position(*AMOUNT_COLUMN))
        )

        try:
            check_conservation(parent_amount, request.splits)
        except ConservationError as e:
            logger.warning(f"Rejected split of {parent_id}: {e}")
            raise

        preview = build_preview(parent_id, request.splits)
        children = synthesize_children(
            headers, parent.row, request.splits, index=parent.index
        )

        if dry_run:
            logger.info(
                f"Dry run: {len(children)} child row(s) previewed for {parent_id}"
            )
            return SplitResult(
                dry_run=True,
                assign_ids=assign_ids,
                parent_summary=parent_summary,
                preview=preview,
                children_preview=children,
                appended=0,
            )

        to_write = [dict(child) for child in children]
        id_pos = parent.index.position(*ID_COLUMN)

        info = None
        if assign_ids:
            info = next_sequential_id(self.store.read_all_rows(self.ledger_title))

        if info is not None and info.column is not None and info.next_id is not None:
            for offset, child in enumerate(to_write):
                child[headers[info.column]] = str(info.next_id + offset)
        elif id_pos is not None:
            # Children never keep the parent's ID
            for child in to_write:
                child[headers[id_pos]] = ""

        values = [record_to_row(headers, child) for child in to_write]
        self.store.append_rows(self.ledger_title, values)
        appended = len(values)
        logger.info(f"Appended {appended} child row(s) for parent {parent_id}")

        status_pos = parent.index.position(*STATUS_COLUMN)
        if status_pos is not None:
            updated = pad_row(parent.row, max(len(headers), status_pos + 1))
            updated[status_pos] = SPLIT_STATUS
            try:
                self.store.update_row(self.ledger_title, parent.position, updated)
            except UpstreamError as e:
                logger.error(
                    f"Partial commit: {appended} child row(s) appended but parent "
                    f"{parent_id} was not marked {SPLIT_STATUS}: {e}"
                )
                raise PartialCommitError(parent_id, appended) from e
            logger.info(f"Marked parent {parent_id} as {SPLIT_STATUS}")

        return SplitResult(
            dry_run=False,
            assign_ids=assign_ids,
            parent_summary=parent_summary,
            preview=preview,
            children_preview=to_write,
            appended=appended,
        )

    def sample_parents(self, limit: int = 15) -> list[SampleParent]:
        """
        List the first rows with an ID, as candidates for trying a split.

        Raises:
            MissingColumnError: If the ledger has no ID column
        """
        rows = self.store.read_all_rows(self.ledger_title)
        if len(rows) < 2:
            return []

        index = build_index(rows[0])
        id_pos = index.require(*ID_COLUMN)
        status_pos = index.position(*STATUS_COLUMN)
        amount_pos = index.position(*AMOUNT_COLUMN)
        desc_pos = index.position(*DESCRIPTION_COLUMN)
        user_pos = index.position(*USER_NAME_COLUMN)

        items = []
        for row in rows[1:]:
            if len(items) >= limit:
                break
            row = row or []
            record_id = cell_text(row, id_pos)
            if not record_id:
                continue
            items.append(
                SampleParent(
                    id=record_id,
                    status=str(cell(row, status_pos)),
                    amount=cell(row, amount_pos),
                    description=str(cell(row, desc_pos)),
                    user=str(cell(row, user_pos)),
                )
            )
        return items
