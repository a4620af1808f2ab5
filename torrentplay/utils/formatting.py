"""
Helper functions for formatting data into human-readable strings.
"""

import math

# Average month length in days over the 400-year Gregorian cycle.
_DAYS_PER_MONTH = 146097 / 4800


def format_size(bytes_size: float) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while bytes_size >= 1024 and i < len(units) - 1:
        bytes_size /= 1024
        i += 1
    if i == 0:
        return f"{int(bytes_size)} B"
    return f"{bytes_size:.1f} {units[i]}"


def format_speed(bytes_per_second: float) -> str:
    """Formats a transfer rate (e.g., '1.2 MB/s')."""
    return f"{format_size(bytes_per_second)}/s"


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def humanize_duration(seconds: float) -> str:
    """
    Describes a duration in coarse words ('a few seconds', '3 hours', '2 years').

    The sign is ignored, so a negative estimate reads the same as its magnitude.
    """
    secs = _round_half_up(abs(seconds))
    minutes = _round_half_up(abs(seconds) / 60)
    hours = _round_half_up(abs(seconds) / 3600)
    days = _round_half_up(abs(seconds) / 86400)
    months = _round_half_up(abs(seconds) / 86400 / _DAYS_PER_MONTH)
    years = _round_half_up(abs(seconds) / 86400 / _DAYS_PER_MONTH / 12)

    if secs < 45:
        return "a few seconds"
    if minutes <= 1:
        return "a minute"
    if minutes < 45:
        return f"{minutes} minutes"
    if hours <= 1:
        return "an hour"
    if hours < 22:
        return f"{hours} hours"
    if days <= 1:
        return "a day"
    if days < 26:
        return f"{days} days"
    if months <= 1:
        return "a month"
    if months < 11:
        return f"{months} months"
    if years <= 1:
        return "a year"
    return f"{years} years"
