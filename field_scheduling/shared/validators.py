"""Shared validation utilities"""

import re
from datetime import date, time
from typing import Optional

MAX_DAYS_PER_REQUEST = 366


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_time_range(start_time: time, end_time: time) -> None:
    """Raise ValueError unless end_time is strictly after start_time"""
    if end_time <= start_time:
        raise ValueError("End time must be after start time")


def validate_date_range(start_date: Optional[date], end_date: Optional[date]) -> None:
    """Raise ValueError when both dates are present and out of order"""
    if start_date and end_date and end_date < start_date:
        raise ValueError("End date must be after start date")
