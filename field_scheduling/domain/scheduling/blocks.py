"""Compaction of scheduled days into contiguous blocks for timeline display"""

from dataclasses import dataclass, field
from datetime import date, time, timedelta
from typing import Iterable


@dataclass(frozen=True)
class ScheduledDay:
    work_date: date
    start_time: time
    end_time: time


@dataclass
class Block:
    start_date: date
    end_date: date
    days: list[ScheduledDay] = field(default_factory=list)


def group_days_into_blocks(days: Iterable[ScheduledDay]) -> list[Block]:
    """
    Group days into maximal runs of consecutive calendar dates.

    A run is extended only when the next date is exactly one day after the
    previous one. Weekends are not special: a Friday and the following Monday
    land in separate blocks unless Saturday and Sunday are present too.
    """
    ordered = sorted(days, key=lambda d: d.work_date)
    if not ordered:
        return []

    blocks: list[Block] = []
    current = Block(start_date=ordered[0].work_date, end_date=ordered[0].work_date, days=[ordered[0]])

    for day in ordered[1:]:
        if day.work_date - current.end_date == timedelta(days=1):
            current.end_date = day.work_date
            current.days.append(day)
        else:
            blocks.append(current)
            current = Block(start_date=day.work_date, end_date=day.work_date, days=[day])

    blocks.append(current)
    return blocks


def weekdays_between(start_date: date, end_date: date) -> list[date]:
    """All Monday-Friday dates in the inclusive range"""
    result = []
    current = start_date
    while current <= end_date:
        if current.weekday() < 5:
            result.append(current)
        current += timedelta(days=1)
    return result
