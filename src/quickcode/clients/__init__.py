"""External collaborators: the Sheets ledger store and identity verification."""

from .identity import FirebaseTokenVerifier, TokenVerifier, check_domain
from .sheets import GoogleSheetsClient, LedgerStore, column_letter

__all__ = [
    "FirebaseTokenVerifier",
    "TokenVerifier",
    "check_domain",
    "GoogleSheetsClient",
    "LedgerStore",
    "column_letter",
]
