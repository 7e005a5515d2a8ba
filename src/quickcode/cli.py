"""CLI for QuickCode."""

import typer
import uvicorn

from .api import create_app
from .config import load_settings
from .mcp_server import run_server
from .review.cli import app as review_app
from .split.cli import app as split_app
from .split.cli import setup_logging

app = typer.Typer(
    name="quickcode",
    help="Code, split and approve credit card transactions in the ledger sheet",
)

app.add_typer(split_app, name="split", help="Split a transaction into coded rows")
app.add_typer(review_app, name="review", help="Purchaser and approver queues")


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address (default from settings)"),
    port: int | None = typer.Option(None, "--port", help="Port (default from settings)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Start the HTTP API."""
    setup_logging(verbose)
    settings = load_settings()
    uvicorn.run(
        create_app(settings),
        host=host or settings.host,
        port=port or settings.port,
        log_level="debug" if verbose else "info",
    )


@app.command()
def mcp():
    """Start the MCP server for assistant integration."""
    run_server()


if __name__ == "__main__":
    app()
