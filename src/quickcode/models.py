"""Pydantic domain models for QuickCode.

Ledger rows themselves stay as plain header-keyed dicts because their columns
come from the live sheet. The models here describe requests and responses
around them. JSON uses camelCase keys.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Scalar = str | int | float


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RequestModel(BaseModel):
    """Base model for request bodies: only the camelCase keys are read."""

    model_config = ConfigDict(alias_generator=to_camel)


# ============================================================================
# Identity
# ============================================================================


class Identity(BaseModel):
    """A verified caller."""

    uid: str
    email: str

    @property
    def username(self) -> str:
        """Ledger user name: the lower-cased local part of the e-mail."""
        return self.email.strip().lower().split("@")[0]


# ============================================================================
# Split Models
# ============================================================================


class SplitLine(RequestModel):
    """One requested child of a split.

    Optional fields distinguish "not supplied" (the child inherits the
    parent's value) from "supplied as null" (the child gets a blank).
    """

    amount: Scalar
    notes: Scalar | None = None
    job_id: Scalar | None = None
    cost_code: Scalar | None = None
    division: Scalar | None = None
    gl_account: Scalar | None = None

    def supplied(self, name: str) -> bool:
        """True if ``name`` was present in the request."""
        return name in self.model_fields_set


class SplitRequest(RequestModel):
    """A validated request to split one ledger row."""

    parent_id: Scalar
    splits: list[SplitLine] = Field(min_length=1)


class SplitPreviewLine(CamelModel):
    """Flat echo of a split line with its amount parsed."""

    parent_id: str
    amount: float
    notes: Scalar = ""
    job_id: Scalar = ""
    cost_code: Scalar = ""
    division: Scalar = ""
    gl_account: Scalar = ""


class SplitResult(CamelModel):
    """Outcome of a split, dry run or committed."""

    ok: bool = True
    dry_run: bool
    assign_ids: bool
    parent_summary: dict[str, Any]
    preview: list[SplitPreviewLine]
    children_preview: list[dict[str, Any]]
    appended: int = 0


# ============================================================================
# Submission / Approval Models
# ============================================================================


class BatchItem(RequestModel):
    """One row to submit or approve, with optional coding edits."""

    id: Scalar
    notes: Scalar | None = None
    job_id: Scalar | None = None
    cost_code_code: Scalar | None = None
    division: Scalar | None = None
    gl_account_code: Scalar | None = None

    def supplied(self, name: str) -> bool:
        return name in self.model_fields_set


class SubmitBatchRequest(RequestModel):
    items: list[BatchItem] = Field(min_length=1)


class ApproveBatchRequest(RequestModel):
    """Either full items (with edits) or bare ids."""

    items: list[BatchItem] | None = None
    ids: list[Scalar] | None = None


class BatchResult(CamelModel):
    ok: bool = True
    updated: int


class TransactionList(CamelModel):
    headers: list[str]
    rows: list[dict[str, Any]]


class PurchaserGroup(CamelModel):
    purchaser: str
    rows: list[dict[str, Any]]


class ApprovalQueues(CamelModel):
    headers: list[str]
    groups: list[PurchaserGroup]
    total_rows: int = 0


class SampleParent(CamelModel):
    id: str
    status: str = ""
    amount: Scalar = ""
    description: str = ""
    user: str = ""


# ============================================================================
# Lookup Models
# ============================================================================


class LookupOption(CamelModel):
    """A code with its description, as offered in pickers."""

    code: str
    desc: str = ""
    label: str


class UserRecord(CamelModel):
    username: str = ""
    first: str = ""
    last: str = ""
    full: str = ""
    email: str = ""


class Lookups(CamelModel):
    job_ids: list[str] = Field(default_factory=list)
    cost_codes: list[LookupOption] = Field(default_factory=list)
    gl_accounts: list[LookupOption] = Field(default_factory=list)
    users_by_email: dict[str, UserRecord] = Field(default_factory=dict)
    users_by_username: dict[str, UserRecord] = Field(default_factory=dict)
