"""CLI commands for splitting ledger transactions."""

import json
import logging
import math
import sys
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from ..clients.sheets import GoogleSheetsClient
from ..config import load_settings
from ..models import SplitResult
from ..money import format_currency, parse_money_to_number
from ..review.lookups import LookupService
from .service import SplitService
from .ui import confirm, prompt_split_lines

app = typer.Typer(
    name="split",
    help="Split one ledger transaction into several coded rows",
)

console = Console()

# --line keys -> request field names
_LINE_KEYS = {
    "amount": "amount",
    "notes": "notes",
    "job": "jobId",
    "jobid": "jobId",
    "cost": "costCode",
    "costcode": "costCode",
    "division": "division",
    "gl": "glAccount",
    "glaccount": "glAccount",
}


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Discovery and HTTP plumbing are too noisy at INFO
    for noisy in ("googleapiclient", "google.auth", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.DEBUG if verbose else logging.WARNING)


def parse_line_option(text: str) -> dict[str, Any]:
    """
    Parse a ``--line`` value into a split line.

    The value is ``;``-separated. A part without ``=`` is the amount, so
    ``"60;notes=Lunch;job=J-100;cost=5100"`` and ``"amount=60;gl=6200"``
    are both accepted.

    Raises:
        typer.BadParameter: On an unknown key
    """
    line: dict[str, Any] = {}
    for part in text.split(";"):
        part = part.strip()
        if not part:
            continue
        if "=" not in part:
            line["amount"] = part
            continue
        key, value = part.split("=", 1)
        field = _LINE_KEYS.get(key.strip().lower().replace("_", "").replace("-", ""))
        if field is None:
            raise typer.BadParameter(f"Unknown split line key '{key.strip()}'")
        line[field] = value.strip()
    return line


def load_split_file(path: Path) -> list[dict[str, Any]]:
    """Read split lines from a JSON file (a list, or an object with ``splits``)."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("splits")
    if not isinstance(data, list):
        raise typer.BadParameter(f"{path} must hold a list of split lines")
    return data


def _collect_splits(
    service: SplitService,
    settings,
    store,
    parent_id: str,
    lines: list[str] | None,
    from_file: Path | None,
    interactive: bool,
) -> list[Any]:
    splits: list[Any] = []
    if from_file is not None:
        splits.extend(load_split_file(from_file))
    splits.extend(parse_line_option(text) for text in lines or [])

    if interactive:
        console.print("[bold blue]Loading lookups...[/bold blue]")
        lookups = LookupService(settings, store).fetch()
        parent_amount = _parent_amount(service.parent_record(parent_id))
        splits.extend(prompt_split_lines(parent_amount, lookups))

    return splits


def _parent_amount(record: dict[str, Any]) -> object:
    for key in ("Amount", "Total"):
        if key in record:
            return record[key]
    return ""


def display_split_result(result: SplitResult):
    """Display a split preview or commit in a table."""
    parent = result.parent_summary
    parent_amount = _parent_amount(parent)

    console.print("\n[bold]Parent Transaction:[/bold]")
    for key in ("ID", "Transaction Description", "User Name", "Status"):
        if parent.get(key) not in (None, ""):
            console.print(f"  {key}: {parent[key]}")
    console.print(f"  Amount: {format_currency(parent_amount)}")
    console.print()

    title = "Child Rows (preview)" if result.dry_run else "Child Rows (written)"
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim", width=3)
    table.add_column("ID", style="dim", width=8)
    table.add_column("Amount", justify="right", width=12)
    table.add_column("Notes", style="cyan", no_wrap=False)
    table.add_column("Job ID", style="yellow")
    table.add_column("Cost Code", style="yellow")
    table.add_column("GL Account", style="yellow")

    for i, child in enumerate(result.children_preview, start=1):
        table.add_row(
            str(i),
            str(child.get("ID", "")),
            format_currency(child.get("Amount", "")),
            str(child.get("Notes", "")),
            str(child.get("Job ID", "")),
            str(child.get("Cost Code", "")),
            str(child.get("GL Account", "")),
        )

    console.print(table)

    total = sum(
        amount
        for amount in (parse_money_to_number(line.amount) for line in result.preview)
        if not math.isnan(amount)
    )
    parent_number = parse_money_to_number(parent_amount)

    console.print()
    console.print("[bold]Summary:[/bold]")
    console.print(f"  Split lines: {len(result.preview)}")
    console.print(f"  Split total: {format_currency(total)}")
    if not math.isnan(parent_number):
        remaining = round(parent_number - total, 2)
        if remaining == 0:
            console.print("  [green]✓ Split total matches the parent amount[/green]")
        else:
            console.print(
                f"  [yellow]{format_currency(remaining)} stays unassigned "
                f"(partial split)[/yellow]"
            )


@app.command()
def preview(
    parent_id: str = typer.Argument(..., help="ID of the ledger row to split"),
    line: list[str] | None = typer.Option(
        None, "--line", "-l", help='Split line, e.g. "60;notes=Lunch;job=J-100;cost=5100"'
    ),
    from_file: Path | None = typer.Option(
        None, "--from-file", "-f", help="JSON file with split lines", exists=True
    ),
    interactive: bool = typer.Option(
        False, "--interactive", "-i", help="Enter split lines with lookup pickers"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Preview a split without writing anything (dry-run mode).
    """
    setup_logging(verbose)

    try:
        settings = load_settings()
        with GoogleSheetsClient.from_settings(settings) as store:
            service = SplitService(settings, store)
            splits = _collect_splits(
                service, settings, store, parent_id, line, from_file, interactive
            )

            console.print(f"\n[bold blue]Previewing split of {parent_id}...[/bold blue]")
            result = service.split({"parentId": parent_id, "splits": splits})

        display_split_result(result)
        console.print(
            f"\n[bold]To write these rows, run:[/bold]\n"
            f"  [cyan]quickcode split apply {parent_id} ...[/cyan]\n"
        )

    except Exception as e:
        report_error(e, verbose)


@app.command()
def apply(
    parent_id: str = typer.Argument(..., help="ID of the ledger row to split"),
    line: list[str] | None = typer.Option(
        None, "--line", "-l", help='Split line, e.g. "60;notes=Lunch;gl=6200"'
    ),
    from_file: Path | None = typer.Option(
        None, "--from-file", "-f", help="JSON file with split lines", exists=True
    ),
    interactive: bool = typer.Option(
        False, "--interactive", "-i", help="Enter split lines with lookup pickers"
    ),
    assign_ids: bool = typer.Option(
        False, "--assign-ids", help="Give child rows sequential IDs instead of blanks"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Split a ledger row: append the child rows and mark the parent Split.

    Shows the preview first and asks for confirmation unless --yes is given.
    """
    setup_logging(verbose)

    try:
        settings = load_settings()
        with GoogleSheetsClient.from_settings(settings) as store:
            service = SplitService(settings, store)
            splits = _collect_splits(
                service, settings, store, parent_id, line, from_file, interactive
            )
            body = {"parentId": parent_id, "splits": splits}

            console.print(f"\n[bold blue]Previewing split of {parent_id}...[/bold blue]")
            display_split_result(service.split(body, assign_ids=assign_ids))

            if not yes and not confirm("\nWrite these rows to the ledger?"):
                console.print("[yellow]Cancelled.[/yellow]")
                return

            console.print("\n[bold blue]Writing child rows...[/bold blue]")
            result = service.split(body, dry_run=False, assign_ids=assign_ids)

        display_split_result(result)
        console.print(
            f"\n[bold green]✓ Appended {result.appended} row(s); "
            f"parent {parent_id} marked Split.[/bold green]\n"
        )

    except Exception as e:
        report_error(e, verbose)


@app.command()
def samples(
    limit: int = typer.Option(15, "--limit", "-n", help="Number of rows to list"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """List ledger rows that can be tried as split parents."""
    setup_logging(verbose)

    try:
        settings = load_settings()
        with GoogleSheetsClient.from_settings(settings) as store:
            items = SplitService(settings, store).sample_parents(limit=limit)

        if not items:
            console.print("[yellow]No rows with an ID found.[/yellow]")
            return

        table = Table(title="Sample Parents", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim")
        table.add_column("Status")
        table.add_column("Amount", justify="right")
        table.add_column("Description", style="cyan")
        table.add_column("User")
        for item in items:
            table.add_row(
                item.id,
                item.status,
                format_currency(item.amount),
                item.description,
                item.user,
            )
        console.print(table)

    except Exception as e:
        report_error(e, verbose)


def report_error(error: Exception, verbose: bool):
    messages = getattr(error, "errors", None) or []
    if len(messages) > 1:
        console.print("\n[bold red]Error:[/bold red]")
        for message in messages:
            console.print(f"  - {message}")
    else:
        console.print(f"\n[bold red]Error:[/bold red] {error}")
    if verbose:
        raise error
    sys.exit(1)
