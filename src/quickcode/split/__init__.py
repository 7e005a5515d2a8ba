"""Splitting one ledger transaction into several coded child rows."""

from .service import SplitService, resolve_mode_flags
from .synthesizer import JOB_GL_ACCOUNT, synthesize_children
from .validator import ValidationResult, validate_split_payload

__all__ = [
    "SplitService",
    "resolve_mode_flags",
    "JOB_GL_ACCOUNT",
    "synthesize_children",
    "ValidationResult",
    "validate_split_payload",
]
