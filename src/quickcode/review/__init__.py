"""Purchaser and approver queues, batch status updates and lookups."""

from .lookups import LookupService
from .service import ReviewService, is_coding_valid

__all__ = ["LookupService", "ReviewService", "is_coding_valid"]
