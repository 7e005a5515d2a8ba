"""Structural validation of split requests.

Works on the raw decoded JSON body so that every problem can be reported in
one response instead of stopping at the first type error.
"""

import math
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..money import parse_money_to_number

OPTIONAL_FIELDS = ("notes", "jobId", "costCode", "division", "glAccount")


@dataclass
class ValidationResult:
    ok: bool
    errors: list[str] = field(default_factory=list)


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def pydantic_messages(error: PydanticValidationError) -> list[str]:
    """Flatten a pydantic error into ``"loc: message"`` strings."""
    return [
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors()
    ]


def validate_split_payload(body: Any) -> ValidationResult:
    """
    Check a split request body, collecting all violations.

    Args:
        body: Decoded JSON request body

    Returns:
        ValidationResult with ``ok`` False and every error message when invalid
    """
    if not isinstance(body, dict):
        return ValidationResult(ok=False, errors=["Request body must be a JSON object."])

    errors: list[str] = []
    parent_id = body.get("parentId")
    splits = body.get("splits")

    if not parent_id or not _is_scalar(parent_id):
        errors.append("parentId is required (string or number).")

    if not isinstance(splits, list) or not splits:
        errors.append("splits must be a non-empty array.")
    else:
        for i, line in enumerate(splits):
            if not isinstance(line, dict):
                errors.append(f"splits[{i}] must be an object.")
                continue

            amount = parse_money_to_number(line.get("amount"))
            if not math.isfinite(amount):
                errors.append(
                    f"splits[{i}].amount is required and must be a number or money string."
                )

            for key in OPTIONAL_FIELDS:
                value = line.get(key)
                if value is not None and not _is_scalar(value):
                    errors.append(f"splits[{i}].{key} must be string/number if provided.")

    return ValidationResult(ok=not errors, errors=errors)
