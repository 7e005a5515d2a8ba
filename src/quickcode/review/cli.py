"""CLI commands for the purchaser and approver queues."""

from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from ..clients.sheets import GoogleSheetsClient
from ..config import load_settings
from ..money import format_currency
from ..split.cli import report_error, setup_logging
from ..split.ui import confirm
from .lookups import LookupService
from .service import (
    ReviewService,
    is_coding_valid,
    parse_approve_request,
    parse_submit_request,
)

app = typer.Typer(
    name="review",
    help="Review, submit and approve coded ledger rows",
)

console = Console()


def _username(user: str) -> str:
    """Accept either a ledger user name or an e-mail address."""
    return user.strip().lower().split("@")[0]


def _rows_table(title: str, rows: list[dict[str, Any]]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Date")
    table.add_column("Description", style="cyan", no_wrap=False)
    table.add_column("Amount", justify="right")
    table.add_column("Notes", no_wrap=False)
    table.add_column("Job / Cost", style="yellow")
    table.add_column("GL", style="yellow")
    table.add_column("", width=2)

    for row in rows:
        description = (
            row.get("Transaction Description")
            or row.get("Transcation Description")
            or row.get("Description")
            or ""
        )
        job = row.get("Job ID", "")
        cost = row.get("Cost Code", "")
        valid = is_coding_valid(row.get("Notes", ""), job, cost, row.get("GL Account", ""))
        table.add_row(
            str(row.get("ID", "")),
            str(row.get("Date", "")),
            str(description),
            format_currency(row.get("Amount", row.get("Total", ""))),
            str(row.get("Notes", "")),
            f"{job} / {cost}" if job or cost else "",
            str(row.get("GL Account", "")),
            "[green]✓[/green]" if valid else "[red]✗[/red]",
        )
    return table


@app.command()
def new(
    user: str = typer.Argument(..., help="Purchaser user name or e-mail"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List a purchaser's transactions that are still New."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        with GoogleSheetsClient.from_settings(settings) as store:
            result = ReviewService(settings, store).transactions_for_user(_username(user))

        if not result.rows:
            console.print("[yellow]No new transactions.[/yellow]")
            return

        console.print(_rows_table(f"New transactions for {_username(user)}", result.rows))

    except Exception as e:
        report_error(e, verbose)


@app.command()
def queue(
    approver: str = typer.Argument(..., help="Approver user name or e-mail"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List Submitted rows waiting for an approver, grouped by purchaser."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        with GoogleSheetsClient.from_settings(settings) as store:
            result = ReviewService(settings, store).approval_queues(_username(approver))

        if not result.groups:
            console.print("[yellow]Nothing waiting for approval.[/yellow]")
            return

        for group in result.groups:
            console.print(_rows_table(group.purchaser, group.rows))
            console.print()
        console.print(f"[bold]Total rows:[/bold] {result.total_rows}")

    except Exception as e:
        report_error(e, verbose)


@app.command()
def submit(
    ids: list[str] = typer.Argument(..., help="Row IDs to submit"),
    notes: str | None = typer.Option(None, "--notes", help="Notes to write"),
    job_id: str | None = typer.Option(None, "--job-id", help="Job ID to write"),
    cost_code: str | None = typer.Option(None, "--cost-code", help="Cost code to write"),
    division: str | None = typer.Option(None, "--division", help="Division to write"),
    gl_account: str | None = typer.Option(None, "--gl-account", help="GL account to write"),
    force: bool = typer.Option(
        False, "--force", help="Submit even if the coding looks incomplete"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Mark rows Submitted, writing the given coding fields to each first.

    Unless --force is given, the supplied coding must have notes and
    either a job with a cost code or a GL account alone.
    """
    setup_logging(verbose)

    edits = {
        "notes": notes,
        "jobId": job_id,
        "costCodeCode": cost_code,
        "division": division,
        "glAccountCode": gl_account,
    }
    edits = {key: value for key, value in edits.items() if value is not None}

    try:
        request = parse_submit_request({"items": [{"id": i, **edits} for i in ids]})

        settings = load_settings()
        with GoogleSheetsClient.from_settings(settings) as store:
            service = ReviewService(settings, store)

            if edits and not force and not is_coding_valid(
                notes, job_id, cost_code, gl_account
            ):
                console.print(
                    "[yellow]Coding needs notes plus either a job and cost code "
                    "or a GL account alone. Use --force to submit anyway.[/yellow]"
                )
                raise typer.Exit(1)

            result = service.submit_batch(request)

        console.print(f"[bold green]✓ Submitted {result.updated} of {len(ids)} row(s)[/bold green]")

    except typer.Exit:
        raise
    except Exception as e:
        report_error(e, verbose)


@app.command()
def approve(
    ids: list[str] = typer.Argument(..., help="Row IDs to approve"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Mark rows Approved."""
    setup_logging(verbose)

    try:
        request = parse_approve_request({"ids": ids})

        if not yes and not confirm(f"Approve {len(ids)} row(s)?"):
            console.print("[yellow]Cancelled.[/yellow]")
            return

        settings = load_settings()
        with GoogleSheetsClient.from_settings(settings) as store:
            result = ReviewService(settings, store).approve_batch(request)

        console.print(f"[bold green]✓ Approved {result.updated} of {len(ids)} row(s)[/bold green]")

    except Exception as e:
        report_error(e, verbose)


@app.command()
def lookups(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show the jobs, cost codes and GL accounts offered while coding."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        with GoogleSheetsClient.from_settings(settings) as store:
            result = LookupService(settings, store).fetch()

        console.print(f"\n[bold]Active jobs ({len(result.job_ids)}):[/bold]")
        console.print("  " + ", ".join(result.job_ids) if result.job_ids else "  [dim]none[/dim]")

        for title, options in (
            ("Cost Codes", result.cost_codes),
            ("GL Accounts", result.gl_accounts),
        ):
            table = Table(title=title, show_header=True, header_style="bold magenta")
            table.add_column("Code", style="dim")
            table.add_column("Description", style="cyan")
            for option in options:
                table.add_row(option.code, option.desc)
            console.print(table)

        console.print(f"[bold]Users:[/bold] {len(result.users_by_username)}")

    except Exception as e:
        report_error(e, verbose)
