"""QuickCode - Split and code credit card transactions kept in a Google Sheet."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .models import Identity, SplitLine, SplitRequest, SplitResult
from .money import cents_to_usd, format_currency, parse_money_to_number, to_cents
from .review.lookups import LookupService
from .review.service import ReviewService, is_coding_valid
from .split.service import SplitService

__all__ = [
    "Settings",
    "load_settings",
    "Identity",
    "SplitLine",
    "SplitRequest",
    "SplitResult",
    "cents_to_usd",
    "format_currency",
    "parse_money_to_number",
    "to_cents",
    "LookupService",
    "ReviewService",
    "is_coding_valid",
    "SplitService",
]
