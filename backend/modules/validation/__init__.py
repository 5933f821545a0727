"""
modules/validation package: raw itinerary records → ScheduledActivity.
"""
from modules.validation.activity_validator import (
    ValidationResult,
    validate_activity_record,
    parse_activity,
    parse_activities,
    filter_valid,
)

__all__ = [
    "ValidationResult",
    "validate_activity_record",
    "parse_activity",
    "parse_activities",
    "filter_valid",
]
