"""Tests for the inclusive DateRange value object."""

from __future__ import annotations

from datetime import date

from django.test import SimpleTestCase

from shared.domain.value_objects import DateRange


class DateRangeTests(SimpleTestCase):
    def test_single_day_range_covers_one_day(self) -> None:
        day = date(2025, 3, 1)
        self.assertEqual(DateRange(day, day).days, 1)
        self.assertEqual(len(DateRange(date(2025, 3, 1), date(2025, 3, 7))), 7)

    def test_end_before_start_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            DateRange(date(2025, 3, 2), date(2025, 3, 1))

    def test_shared_day_overlaps_but_touching_ranges_do_not(self) -> None:
        first = DateRange(date(2025, 3, 1), date(2025, 3, 5))
        self.assertTrue(first.overlaps_with(DateRange(date(2025, 3, 5), date(2025, 3, 9))))
        self.assertFalse(first.overlaps_with(DateRange(date(2025, 3, 6), date(2025, 3, 9))))
        self.assertTrue(first.is_adjacent_to(DateRange(date(2025, 3, 6), date(2025, 3, 9))))
        self.assertTrue(first.is_adjacent_to(DateRange(date(2025, 2, 20), date(2025, 2, 28))))
        self.assertFalse(first.is_adjacent_to(DateRange(date(2025, 3, 7), date(2025, 3, 9))))

    def test_iter_days_and_widened_back(self) -> None:
        dates = DateRange(date(2025, 2, 27), date(2025, 3, 2))
        self.assertEqual(
            list(dates.iter_days()),
            [date(2025, 2, 27), date(2025, 2, 28), date(2025, 3, 1), date(2025, 3, 2)],
        )
        self.assertEqual(dates.widened_back(30).start_date, date(2025, 1, 28))
        self.assertEqual(dates.widened_back(30).end_date, date(2025, 3, 2))

    def test_quarter_of(self) -> None:
        self.assertEqual(
            DateRange.quarter_of(date(2024, 2, 29)),
            DateRange(date(2024, 1, 1), date(2024, 3, 31)),
        )
        q4 = DateRange.quarter_of(date(2025, 11, 15))
        self.assertEqual(q4, DateRange(date(2025, 10, 1), date(2025, 12, 31)))
        self.assertEqual(q4.days, 92)
