from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List

from pydantic import BaseModel, ConfigDict, field_validator

_DATE_FORMATS = ("%Y/%m/%d", "%Y-%m-%d")


def parse_instant(value) -> datetime:
    """Parse a range boundary into an aware datetime. Naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        parsed = None
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
        if parsed is None:
            # fromisoformat does not take a trailing Z before 3.11
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Unsupported date value: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class DateRange(BaseModel):
    """Half-open range [start, end)."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end", mode="before")
    @classmethod
    def _coerce_instant(cls, v):
        return parse_instant(v)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def is_valid(self) -> bool:
        return self.start < self.end

    def __str__(self) -> str:
        return f"{self.start.isoformat()} - {self.end.isoformat()}"


def overlaps(a: DateRange, b: DateRange) -> bool:
    # Adjacent ranges (a.end == b.start) do not overlap
    return a.start < b.end and b.start < a.end


def contains(outer: DateRange, inner: DateRange) -> bool:
    return outer.start <= inner.start and inner.end <= outer.end


def merge(ranges: Iterable[DateRange]) -> List[DateRange]:
    """Merge overlapping and adjacent ranges into a sorted, non-overlapping list."""
    ordered = sorted(ranges, key=lambda r: (r.start, r.end))
    merged: List[DateRange] = []
    for rng in ordered:
        if merged and rng.start <= merged[-1].end:
            last = merged[-1]
            if rng.end > last.end:
                merged[-1] = DateRange(start=last.start, end=rng.end)
            continue
        merged.append(rng)
    return merged
