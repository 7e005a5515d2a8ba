"""Lookup tables offered while coding transactions."""

import logging
from datetime import date, datetime, timedelta

from ..clients.sheets import LedgerStore
from ..config import Settings
from ..models import LookupOption, Lookups, UserRecord
from ..table import Row, build_index, cell_text

logger = logging.getLogger(__name__)

SHEET_EPOCH = date(1899, 12, 30)

# Job feed columns
JOB_ID_POS = 0
JOB_DATE_POS = 12

_DATE_FORMATS = (
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%Y/%m/%d %H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
)


def parse_sheet_date(value: object) -> date | None:
    """
    Parse a date cell, either as text or as a sheet serial day number.

    Returns:
        The date, or None when the cell is blank or unparseable
    """
    text = str(value if value is not None else "").strip()
    if not text:
        return None

    normalized = text.replace("-", "/")
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(normalized, fmt).date()
        except ValueError:
            continue

    try:
        return SHEET_EPOCH + timedelta(days=float(text))
    except (ValueError, OverflowError):
        return None


def years_before(day: date, years: int) -> date:
    """Same calendar day ``years`` earlier (Feb 29 falls back to Feb 28)."""
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        return day.replace(year=day.year - years, day=28)


def parse_code_options(rows: list[Row]) -> list[LookupOption]:
    """Read a two-column code/description tab, sorted by code."""
    options = []
    for row in rows[1:]:
        code = cell_text(row or [], 0)
        if not code:
            continue
        desc = cell_text(row or [], 1)
        options.append(LookupOption(code=code, desc=desc, label=desc or code))
    return sorted(options, key=lambda o: o.code)


def parse_users(rows: list[Row]) -> tuple[dict[str, UserRecord], dict[str, UserRecord]]:
    """
    Read the users tab with flexible headers.

    Returns:
        Tuple of (users_by_email, users_by_username), keys lower-cased
    """
    if not rows:
        return {}, {}

    index = build_index(rows[0])
    username_pos = index.position("username", "user", "userid")
    first_pos = index.position("firstname", "first")
    last_pos = index.position("lastname", "last")
    full_pos = index.position("fullname", "name", "employee")
    email_pos = index.position("email", "mail")

    by_email: dict[str, UserRecord] = {}
    by_username: dict[str, UserRecord] = {}

    for row in rows[1:]:
        row = row or []
        username = cell_text(row, username_pos).lower() if username_pos is not None else ""
        email = cell_text(row, email_pos).lower() if email_pos is not None else ""
        if not username and not email:
            continue

        first = last = full = ""
        if first_pos is not None or last_pos is not None:
            first = cell_text(row, first_pos)
            last = cell_text(row, last_pos)
            full = " ".join(p for p in (first, last) if p)
        elif full_pos is not None:
            full = cell_text(row, full_pos)
            parts = full.split()
            first = parts[0] if parts else ""
            last = " ".join(parts[1:])

        user = UserRecord(username=username, first=first, last=last, full=full, email=email)
        if username:
            by_username[username] = user
        if email:
            by_email[email] = user

    return by_email, by_username


class LookupService:
    """Reads the job, cost code, GL account and user tabs."""

    def __init__(self, settings: Settings, store: LedgerStore):
        """Initialize the lookup service."""
        self.settings = settings
        self.store = store

    def job_ids(self, today: date | None = None) -> list[str]:
        """Job IDs whose feed date is within the lookback window, sorted."""
        cutoff = years_before(today or date.today(), self.settings.job_lookback_years)
        rows = self.store.read_all_rows(self.settings.jobs_title)

        jobs = []
        for row in rows[1:]:
            row = row or []
            job_date = parse_sheet_date(cell_text(row, JOB_DATE_POS))
            job_id = cell_text(row, JOB_ID_POS)
            if job_id and job_date is not None and job_date >= cutoff:
                jobs.append(job_id)
        return sorted(jobs)

    def fetch(self, today: date | None = None) -> Lookups:
        """Read every lookup table."""
        cost_codes = parse_code_options(
            self.store.read_all_rows(self.settings.cost_codes_title)
        )
        gl_accounts = parse_code_options(
            self.store.read_all_rows(self.settings.gl_accounts_title)
        )
        users_by_email, users_by_username = parse_users(
            self.store.read_all_rows(self.settings.users_title)
        )
        lookups = Lookups(
            job_ids=self.job_ids(today),
            cost_codes=cost_codes,
            gl_accounts=gl_accounts,
            users_by_email=users_by_email,
            users_by_username=users_by_username,
        )

        logger.info(
            f"Loaded {len(lookups.job_ids)} jobs, {len(cost_codes)} cost codes, "
            f"{len(gl_accounts)} GL accounts, {len(users_by_username)} users"
        )
        return lookups
