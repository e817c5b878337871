"""Tests for grouping assignment days into contiguous blocks"""

import random
from datetime import date, time, timedelta

from field_scheduling.domain.scheduling.blocks import (
    ScheduledDay,
    group_days_into_blocks,
    weekdays_between,
)


def day(d: date) -> ScheduledDay:
    return ScheduledDay(work_date=d, start_time=time(7, 0), end_time=time(16, 0))


class TestGroupDaysIntoBlocks:
    def test_empty_input(self):
        assert group_days_into_blocks([]) == []

    def test_single_day(self):
        blocks = group_days_into_blocks([day(date(2025, 3, 3))])

        assert len(blocks) == 1
        assert blocks[0].start_date == blocks[0].end_date == date(2025, 3, 3)

    def test_consecutive_days_form_one_block(self):
        days = [day(date(2025, 3, 3) + timedelta(days=i)) for i in range(5)]

        blocks = group_days_into_blocks(days)

        assert len(blocks) == 1
        assert blocks[0].start_date == date(2025, 3, 3)
        assert blocks[0].end_date == date(2025, 3, 7)
        assert blocks[0].days == days

    def test_weekend_gap_splits_blocks(self):
        """Friday and the following Monday are not contiguous"""
        days = [day(date(2025, 3, 6)), day(date(2025, 3, 7)), day(date(2025, 3, 10))]

        blocks = group_days_into_blocks(days)

        assert [(b.start_date, b.end_date) for b in blocks] == [
            (date(2025, 3, 6), date(2025, 3, 7)),
            (date(2025, 3, 10), date(2025, 3, 10)),
        ]

    def test_weekend_days_present_are_joined(self):
        days = [day(date(2025, 3, 7) + timedelta(days=i)) for i in range(4)]

        assert len(group_days_into_blocks(days)) == 1

    def test_unsorted_input_matches_sorted(self):
        dates = [date(2025, 3, 3), date(2025, 3, 4), date(2025, 3, 8), date(2025, 3, 12), date(2025, 3, 13)]
        days = [day(d) for d in dates]
        shuffled = days[:]
        random.Random(7).shuffle(shuffled)

        assert group_days_into_blocks(shuffled) == group_days_into_blocks(days)

    def test_blocks_partition_input(self):
        dates = [date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 5), date(2025, 1, 9), date(2025, 1, 10)]
        blocks = group_days_into_blocks([day(d) for d in dates])

        members = [d.work_date for b in blocks for d in b.days]
        assert members == dates
        for block in blocks:
            for prev, nxt in zip(block.days, block.days[1:]):
                assert (nxt.work_date - prev.work_date).days == 1
        for prev, nxt in zip(blocks, blocks[1:]):
            assert (nxt.start_date - prev.end_date).days >= 2


class TestWeekdaysBetween:
    def test_skips_weekends(self):
        # Thursday to the following Tuesday
        result = weekdays_between(date(2025, 3, 6), date(2025, 3, 11))

        assert result == [
            date(2025, 3, 6),
            date(2025, 3, 7),
            date(2025, 3, 10),
            date(2025, 3, 11),
        ]

    def test_inverted_range_is_empty(self):
        assert weekdays_between(date(2025, 3, 11), date(2025, 3, 6)) == []
