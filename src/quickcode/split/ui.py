"""Interactive UI components for coding split lines."""

import logging
import math
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from ..models import LookupOption, Lookups
from ..money import format_currency, parse_money_to_number

logger = logging.getLogger(__name__)


class LookupCompleter(Completer):
    """Fuzzy search completer for lookup codes."""

    def __init__(self, options: list[LookupOption]):
        """Initialize the completer with available options."""
        self.options = options

        # Build display strings and display-to-code mapping
        self.displays = []
        self.display_to_code = {}
        for option in options:
            display = option.code if option.label == option.code else f"{option.code} - {option.label}"
            self.displays.append(display)
            self.display_to_code[display] = option.code
            # Typing the bare code is also accepted
            self.display_to_code.setdefault(option.code, option.code)

    def get_completions(self, document: Document, complete_event: Any):
        """Get fuzzy-matched completions."""
        query = document.text.lower()

        for display in self.displays:
            if not query or self._fuzzy_match(query, display.lower()):
                yield Completion(
                    text=display,
                    start_position=-len(document.text),
                    display=display,
                )

    def _fuzzy_match(self, query: str, text: str) -> bool:
        """
        Fuzzy match: all characters in query must appear in order in text.

        Example:
            query="mat" matches "5100 - Materials"
        """
        query_idx = 0
        for char in text:
            if query_idx < len(query) and char == query[query_idx]:
                query_idx += 1
        return query_idx == len(query)


def select_code_interactive(options: list[LookupOption], prompt: str) -> str | None:
    """
    Interactive code selection with fuzzy search.

    Args:
        options: Codes to choose from
        prompt: Field name shown in the prompt

    Returns:
        Selected code, or None to leave the field blank
    """
    completer = LookupCompleter(options)
    session: PromptSession[str] = PromptSession(completer=completer)

    try:
        while True:
            result = session.prompt(f"   {prompt}: ", complete_while_typing=True).strip()

            if not result:
                return None

            code = completer.display_to_code.get(result)
            if code:
                logger.debug(f"Selected {prompt} {code}")
                return code

            print(f"   Unknown {prompt}. Pick from the list or press Tab to complete.")

    except KeyboardInterrupt:
        print("\n   Skipped")
        return None
    except EOFError:
        return None


def prompt_split_lines(parent_amount: object, lookups: Lookups) -> list[dict[str, Any]]:
    """
    Ask for split lines until a blank amount is entered.

    Each line takes either the job path (job + cost code, GL is forced to
    1300 on write) or the GL path (GL account only).

    Returns:
        Split lines as request dicts
    """
    jobs = [LookupOption(code=j, label=j) for j in lookups.job_ids]
    lines: list[dict[str, Any]] = []
    remaining = parse_money_to_number(parent_amount)

    print(f"\nSplitting {format_currency(parent_amount)}. Leave the amount blank to finish.\n")

    while True:
        try:
            hint = "" if math.isnan(remaining) else f" (remaining {format_currency(remaining)})"
            amount = input(f"Line {len(lines) + 1} amount{hint}: ").strip()
        except (KeyboardInterrupt, EOFError):
            print()
            break
        if not amount:
            break

        line: dict[str, Any] = {"amount": amount}
        try:
            line["notes"] = input("   Notes: ").strip()
        except (KeyboardInterrupt, EOFError):
            print()
            break

        job_id = select_code_interactive(jobs, "Job ID") if jobs else None
        if job_id:
            line["jobId"] = job_id
            line["costCode"] = select_code_interactive(lookups.cost_codes, "Cost Code") or ""
        else:
            line["glAccount"] = select_code_interactive(lookups.gl_accounts, "GL Account") or ""

        lines.append(line)
        parsed = parse_money_to_number(amount)
        if not math.isnan(parsed):
            remaining -= parsed

    return lines


def confirm(message: str) -> bool:
    """Simple yes/no confirmation, defaulting to no."""
    response = input(f"{message} [y/N] ").strip().lower()
    return response in ("y", "yes")
