"""Shared validation utilities"""

import re
from typing import Optional

TIME_SLOT_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a phone number.

    Accepts 10-digit Indian mobile numbers or international numbers with a
    leading '+'. Stored as '+' followed by digits.

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)

    if len(digits) == 10:
        return f"+91{digits}"
    if 11 <= len(digits) <= 15:
        return f"+{digits}"

    raise ValueError("Phone number must have 10 digits or include a country code")


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

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


def validate_time_slot(value: Optional[str]) -> Optional[str]:
    """Validate HH:MM (24h) time strings"""
    if value is None:
        return value
    if not TIME_SLOT_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM format")
    return value


def validate_pincode(value: Optional[str]) -> Optional[str]:
    """Indian postal codes are 6 digits and never start with 0"""
    if value is None:
        return value
    value = value.strip()
    if not re.match(r"^[1-9]\d{5}$", value):
        raise ValueError("Pincode must be a valid 6-digit number")
    return value


def parse_time(value: str) -> tuple[int, int]:
    hour, minute = value.split(":")
    return int(hour), int(minute)


def to_minutes(value: str) -> int:
    hour, minute = parse_time(value)
    return hour * 60 + minute


WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def weekday_name(value) -> str:
    """Lowercase weekday name ('monday'...) for a date or datetime"""
    return WEEKDAYS[value.weekday()]
