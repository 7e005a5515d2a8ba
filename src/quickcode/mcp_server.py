"""MCP server for QuickCode: exposes the coding and split workflow as tools."""

import logging
from dataclasses import dataclass
from typing import Any

from mcp.server.fastmcp import FastMCP

from .clients.sheets import GoogleSheetsClient
from .config import Settings, load_settings
from .exceptions import QuickCodeError
from .models import SplitResult
from .money import format_currency
from .review.lookups import LookupService
from .review.service import ReviewService, parse_approve_request, parse_submit_request
from .split.service import SplitService

logger = logging.getLogger(__name__)

mcp_app = FastMCP("quickcode")

WORKFLOW_INSTRUCTIONS = """\
You are helping code credit card transactions in the ledger sheet. Follow this workflow:

1. FIND: Call list_new_transactions with the purchaser's user name to see rows
   still marked New. Use list_sample_parents if no user is known yet.

2. PREVIEW: To split a row, call preview_split with the row ID and the split
   lines. Each line needs an amount, notes, and either a job ID with a cost
   code or a GL account alone. Call get_lookups to see valid codes.
   Show the user the preview. Lines may add up to less than the row amount,
   never more.

3. APPLY: Once the user confirms, call apply_split. It writes exactly the
   last preview. Report how many rows were appended.

4. SUBMIT / APPROVE: Call submit_rows or approve_rows with row IDs when the
   user asks.

Always show amounts as dollars, e.g. $1,234.56.\
"""


@dataclass
class SessionState:
    """Holds state between MCP tool calls within a single conversation."""

    settings: Settings | None = None
    store: GoogleSheetsClient | None = None
    last_split: dict[str, Any] | None = None


_state = SessionState()


def _ensure_store() -> tuple[Settings, GoogleSheetsClient]:
    """Lazily load settings and open the ledger store."""
    if _state.settings is None or _state.store is None:
        _state.settings = load_settings()
        _state.store = GoogleSheetsClient.from_settings(_state.settings)
    return _state.settings, _state.store


def _format_rows(rows: list[dict[str, Any]]) -> list[str]:
    lines = []
    for row in rows:
        description = (
            row.get("Transaction Description")
            or row.get("Transcation Description")
            or row.get("Description")
            or ""
        )
        amount = format_currency(row.get("Amount", row.get("Total", "")))
        lines.append(f"  - [{row.get('ID', '')}] {description} | {amount}")
    return lines


def _format_split(result: SplitResult) -> str:
    parent = result.parent_summary
    amount = parent.get("Amount", parent.get("Total", ""))
    heading = "Split Preview" if result.dry_run else "Split Applied"
    lines = [
        f"{heading}:",
        f"  Parent: {parent.get('ID', '')} | {format_currency(amount)}",
        "",
        "Child Rows:",
    ]
    for i, child in enumerate(result.children_preview):
        coding = (
            f"job {child.get('Job ID')} / cost {child.get('Cost Code')}"
            if child.get("Job ID")
            else f"GL {child.get('GL Account', '')}"
        )
        lines.append(
            f"  [{i}] {format_currency(child.get('Amount', ''))} | "
            f"{child.get('Notes', '')} | {coding}"
        )
    if not result.dry_run:
        lines.append("")
        lines.append(f"Appended {result.appended} row(s); parent marked Split.")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# MCP Tools
# ---------------------------------------------------------------------------


@mcp_app.tool()
def list_sample_parents() -> str:
    """List the first ledger rows that have an ID, as split candidates."""
    try:
        settings, store = _ensure_store()
        items = SplitService(settings, store).sample_parents()
        if not items:
            return "No rows with an ID found."

        lines = ["Sample rows:"]
        for item in items:
            lines.append(
                f"  - [{item.id}] {item.description} | {format_currency(item.amount)} | "
                f"{item.status} | {item.user}"
            )
        return "\n".join(lines)
    except QuickCodeError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to list rows: {e}"


@mcp_app.tool()
def list_new_transactions(username: str) -> str:
    """List a purchaser's rows that are still New.

    Args:
        username: Ledger user name (the part of the e-mail before @).
    """
    try:
        settings, store = _ensure_store()
        result = ReviewService(settings, store).transactions_for_user(username)
        if not result.rows:
            return f"No new transactions for {username}."
        return "\n".join(
            [f"New transactions for {username} ({len(result.rows)}):"]
            + _format_rows(result.rows)
        )
    except QuickCodeError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to list transactions: {e}"


@mcp_app.tool()
def list_approval_queue(approver: str) -> str:
    """List Submitted rows waiting for an approver, grouped by purchaser.

    Args:
        approver: Approver user name.
    """
    try:
        settings, store = _ensure_store()
        result = ReviewService(settings, store).approval_queues(approver)
        if not result.groups:
            return f"Nothing waiting for {approver}."

        lines = [f"Waiting for {approver} ({result.total_rows} rows):"]
        for group in result.groups:
            lines.append(f"\n  {group.purchaser}:")
            lines.extend("  " + line for line in _format_rows(group.rows))
        return "\n".join(lines)
    except QuickCodeError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to list approval queue: {e}"


@mcp_app.tool()
def get_lookups() -> str:
    """List active job IDs, cost codes and GL accounts."""
    try:
        settings, store = _ensure_store()
        result = LookupService(settings, store).fetch()

        lines = [f"Jobs ({len(result.job_ids)}): {', '.join(result.job_ids) or 'none'}"]
        lines.append("\nCost codes:")
        lines.extend(f"  - {o.code}: {o.label}" for o in result.cost_codes)
        lines.append("\nGL accounts:")
        lines.extend(f"  - {o.code}: {o.label}" for o in result.gl_accounts)
        return "\n".join(lines)
    except QuickCodeError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to load lookups: {e}"


@mcp_app.tool()
def preview_split(parent_id: str, splits: list[dict[str, Any]]) -> str:
    """Preview splitting a row without writing anything.

    Args:
        parent_id: ID of the row to split.
        splits: Lines with amount and optional notes, jobId, costCode,
            division, glAccount.
    """
    try:
        settings, store = _ensure_store()
        body = {"parentId": parent_id, "splits": splits}
        result = SplitService(settings, store).split(body)

        _state.last_split = body
        return _format_split(result)
    except QuickCodeError as e:
        _state.last_split = None
        errors = getattr(e, "errors", None)
        if errors:
            return "Error:\n" + "\n".join(f"  - {message}" for message in errors)
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to preview split: {e}"


@mcp_app.tool()
def apply_split(assign_ids: bool = False) -> str:
    """Write the last previewed split to the ledger.

    Args:
        assign_ids: Give the child rows sequential IDs instead of blanks.
    """
    try:
        settings, store = _ensure_store()

        if _state.last_split is None:
            return "Error: No split previewed. Call preview_split first."

        result = SplitService(settings, store).split(
            _state.last_split, dry_run=False, assign_ids=assign_ids
        )
        _state.last_split = None
        return _format_split(result)
    except QuickCodeError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to apply split: {e}"


@mcp_app.tool()
def submit_rows(ids: list[str]) -> str:
    """Mark rows Submitted for approval.

    Args:
        ids: Row IDs to submit.
    """
    try:
        settings, store = _ensure_store()
        request = parse_submit_request({"items": [{"id": i} for i in ids]})
        result = ReviewService(settings, store).submit_batch(request)
        return f"Submitted {result.updated} of {len(ids)} row(s)."
    except QuickCodeError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to submit rows: {e}"


@mcp_app.tool()
def approve_rows(ids: list[str]) -> str:
    """Mark rows Approved.

    Args:
        ids: Row IDs to approve.
    """
    try:
        settings, store = _ensure_store()
        request = parse_approve_request({"ids": ids})
        result = ReviewService(settings, store).approve_batch(request)
        return f"Approved {result.updated} of {len(ids)} row(s)."
    except QuickCodeError as e:
        return f"Error: {e}"
    except Exception as e:
        return f"Failed to approve rows: {e}"


# ---------------------------------------------------------------------------
# MCP Prompt
# ---------------------------------------------------------------------------


@mcp_app.prompt()
def coding_workflow() -> str:
    """Orchestration instructions for coding and splitting transactions."""
    return WORKFLOW_INSTRUCTIONS


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def run_server():
    """Start the MCP server (stdio transport)."""
    mcp_app.run(transport="stdio")
