"""
Input validation utilities.

Validates data before database save to catch errors early
and provide clear feedback.
"""

import re
import logging
from typing import Optional, List
from datetime import datetime
from dataclasses import dataclass

from ..database.models import TaskStatusEnum, EntrySourceEnum

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a validation check."""
    is_valid: bool
    errors: List[str]
    warnings: List[str]

    @classmethod
    def success(cls, warnings: Optional[List[str]] = None) -> "ValidationResult":
        """Create a successful validation result."""
        return cls(is_valid=True, errors=[], warnings=warnings or [])

    @classmethod
    def failure(cls, errors: List[str], warnings: Optional[List[str]] = None) -> "ValidationResult":
        """Create a failed validation result."""
        return cls(is_valid=False, errors=errors, warnings=warnings or [])


def validate_email(email: str) -> bool:
    """
    Validate email format.

    Args:
        email: Email address to validate

    Returns:
        True if valid email format
    """
    if not email:
        return False

    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def validate_hex_color(color: str) -> bool:
    """Validate a '#rrggbb' or '#rgb' display color."""
    if not color:
        return False
    return bool(re.match(r'^#(?:[0-9a-fA-F]{3}){1,2}$', color))


def validate_task_status(status: str) -> bool:
    """Validate task status value (case-insensitive)."""
    valid_statuses = {s.value for s in TaskStatusEnum}
    return status.lower() in valid_statuses if status else False


def validate_entry_source(source: str) -> bool:
    """Validate time entry provenance value."""
    valid_sources = {s.value for s in EntrySourceEnum}
    return source in valid_sources if source else False


def validate_time_bounds(start_time: Optional[datetime], end_time: Optional[datetime]) -> ValidationResult:
    """
    Validate the bounds of a time entry.

    Both bounds are required and end must be strictly after start.

    Args:
        start_time: Entry start
        end_time: Entry end

    Returns:
        ValidationResult with errors if the bounds are unusable
    """
    errors = []
    if start_time is None:
        errors.append("start_time is required")
    if end_time is None:
        errors.append("end_time is required")
    if errors:
        return ValidationResult.failure(errors)

    if end_time <= start_time:
        return ValidationResult.failure(["end before start"])

    warnings = []
    if (end_time - start_time).total_seconds() > 24 * 3600:
        warnings.append("entry spans more than 24 hours")
        logger.debug(f"Long time entry: {start_time} -> {end_time}")

    return ValidationResult.success(warnings)
