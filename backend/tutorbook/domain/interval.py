"""
Half-open time intervals on a single calendar date.

Times are compared as minute offsets from midnight, never as strings.
An interval ending at 10:00 and one starting at 10:00 do not overlap,
so back-to-back lessons are legal.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import re

HHMM_REGEX = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")

MINUTES_PER_DAY = 24 * 60


def parse_hhmm(value: str) -> int:
    """Parse a 24-hour ``HH:MM`` string into minutes after midnight."""
    if not isinstance(value, str) or not HHMM_REGEX.fullmatch(value.strip()):
        raise ValueError(f"Invalid time format: {value!r}. Expected HH:MM (24-hour clock).")
    hour, minute = value.strip().split(":")
    return int(hour) * 60 + int(minute)


def format_hhmm(minutes: int) -> str:
    """Format minutes after midnight as zero-padded ``HH:MM``."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"Minute offset {minutes} is outside a single day")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_hhmm(value: str) -> str:
    """Return the canonical zero-padded form of an ``HH:MM`` string ("9:05" -> "09:05")."""
    return format_hhmm(parse_hhmm(value))


@dataclass(frozen=True, order=True)
class TimeInterval:
    """
    Immutable ``[start, end)`` interval in minutes after midnight.

    Invariant: 0 <= start_minutes < end_minutes <= 1440.
    """

    start_minutes: int
    end_minutes: int

    def __post_init__(self) -> None:
        if not 0 <= self.start_minutes < MINUTES_PER_DAY:
            raise ValueError(f"Start offset {self.start_minutes} is outside a single day")
        if self.end_minutes > MINUTES_PER_DAY:
            raise ValueError("Interval must end by midnight")
        if self.start_minutes >= self.end_minutes:
            raise ValueError(
                f"Start {self.start_minutes} must be strictly before end {self.end_minutes}"
            )

    @classmethod
    def from_hhmm(cls, start: str, end: str) -> "TimeInterval":
        return cls(parse_hhmm(start), parse_hhmm(end))

    @classmethod
    def from_start_and_duration(cls, start: str, duration_minutes: int) -> "TimeInterval":
        start_minutes = parse_hhmm(start)
        return cls(start_minutes, start_minutes + duration_minutes)

    @property
    def duration_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    @property
    def start_hhmm(self) -> str:
        return format_hhmm(self.start_minutes)

    @property
    def end_hhmm(self) -> str:
        """End as ``HH:MM``. An interval ending exactly at midnight has no HH:MM end."""
        return format_hhmm(self.end_minutes)

    def overlaps(self, other: "TimeInterval") -> bool:
        """Check if this interval overlaps another under the half-open rule."""
        return self.start_minutes < other.end_minutes and other.start_minutes < self.end_minutes

    def __str__(self) -> str:
        return f"{format_hhmm(self.start_minutes)}-{format_hhmm(self.end_minutes % MINUTES_PER_DAY)}"


@dataclass(frozen=True)
class AvailabilitySlot:
    """One bookable slot of a teacher's day. Derived on demand, never stored."""

    date: date
    interval: TimeInterval

    @property
    def start(self) -> str:
        return self.interval.start_hhmm

    @property
    def end(self) -> str:
        return self.interval.end_hhmm
