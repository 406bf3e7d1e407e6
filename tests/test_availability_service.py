"""Tests for open slot discovery: working hours, breaks, buffers and blocked time."""

from datetime import date, datetime, time
from unittest.mock import MagicMock

import pytest

from practice_app.domain.scheduling.availability_service import AvailabilityFinder, parse_clock
from practice_app.domain.scheduling.conflict_service import ConflictDetector
from practice_app.domain.scheduling.errors import (
    InvalidConfiguration,
    InvalidDuration,
    StoreUnavailable,
)

DAY = date(2024, 3, 4)


def at(hour, minute=0):
    return datetime(2024, 3, 4, hour, minute)


@pytest.fixture
def finder(repo):
    return AvailabilityFinder(
        ConflictDetector(repo),
        start_hour=9,
        end_hour=17,
        granularity_minutes=60,
        buffer_minutes=0,
        break_start=None,
        break_end=None,
    )


class TestFindOpenSlots:
    def test_empty_day_offers_every_hour(self, finder):
        slots = finder.find_open_slots(DAY, 60)
        assert [s.start.hour for s in slots] == [9, 10, 11, 12, 13, 14, 15, 16]
        assert slots[-1].end == at(17)

    def test_booked_hour_is_removed(self, finder, repo, make_draft):
        repo.insert(make_draft(at(10), at(11)))
        slots = finder.find_open_slots(DAY, 60)
        assert at(10) not in [s.start for s in slots]
        assert len(slots) == 7

    def test_longer_duration_excludes_overlaps_and_overflow(self, finder, repo, make_draft):
        repo.insert(make_draft(at(10), at(11)))
        slots = finder.find_open_slots(DAY, 90)
        assert [s.start for s in slots] == [at(11), at(12), at(13), at(14), at(15)]

    def test_slot_ending_at_closing_is_offered(self, finder):
        slots = finder.find_open_slots(DAY, 120)
        assert slots[-1].start == at(15)
        assert slots[-1].end == at(17)

    def test_cancelled_appointments_free_their_slot(self, finder, repo, make_draft):
        appointment = repo.insert(make_draft(at(13), at(14)))
        repo.update_by_id(appointment.id, {"status": "cancelled"})
        assert at(13) in [s.start for s in finder.find_open_slots(DAY, 60)]

    def test_provider_scoping(self, finder, repo, make_draft):
        repo.insert(make_draft(at(9), at(10), provider_id="dr-lee"))
        assert at(9) in [s.start for s in finder.find_open_slots(DAY, 60, provider_id="dr-patel")]
        assert at(9) not in [s.start for s in finder.find_open_slots(DAY, 60, provider_id="dr-lee")]

    def test_repeated_calls_return_same_slots(self, finder, repo, make_draft):
        repo.insert(make_draft(at(12), at(13)))
        assert finder.find_open_slots(DAY, 60) == finder.find_open_slots(DAY, 60)

    def test_accepts_datetime(self, finder):
        assert finder.find_open_slots(at(15, 30), 60) == finder.find_open_slots(DAY, 60)

    def test_duration_longer_than_business_day(self, finder):
        assert finder.find_open_slots(DAY, 9 * 60) == []

    @pytest.mark.parametrize("duration", [0, -30])
    def test_non_positive_duration_rejected(self, finder, duration):
        with pytest.raises(InvalidDuration):
            finder.find_open_slots(DAY, duration)

    def test_store_failure_propagates(self):
        store = MagicMock()
        store.find_overlapping.side_effect = StoreUnavailable("Could not check for overlapping appointments")
        finder = AvailabilityFinder(ConflictDetector(store))
        with pytest.raises(StoreUnavailable):
            finder.find_open_slots(DAY, 60)


class TestConfiguration:
    @pytest.mark.parametrize("start_hour,end_hour", [(17, 9), (9, 9), (-1, 17), (9, 25)])
    def test_invalid_business_hours(self, start_hour, end_hour):
        with pytest.raises(InvalidConfiguration):
            AvailabilityFinder(MagicMock(), start_hour=start_hour, end_hour=end_hour)

    def test_invalid_granularity(self):
        with pytest.raises(InvalidConfiguration):
            AvailabilityFinder(MagicMock(), granularity_minutes=0)

    def test_half_hour_granularity(self):
        finder = AvailabilityFinder(MagicMock(), start_hour=9, end_hour=11, granularity_minutes=30)
        slots = list(finder.candidate_slots(DAY, 60))
        assert [s.start for s in slots] == [at(9), at(9, 30), at(10)]

    def test_invalid_buffer(self):
        with pytest.raises(InvalidConfiguration):
            AvailabilityFinder(MagicMock(), buffer_minutes=-5)

    @pytest.mark.parametrize(
        "break_start,break_end",
        [("12:00", None), (None, "13:00"), ("13:00", "12:00"), ("noon", "13:00")],
    )
    def test_invalid_lunch_break(self, break_start, break_end):
        with pytest.raises(InvalidConfiguration):
            AvailabilityFinder(MagicMock(), break_start=break_start, break_end=break_end)

    def test_clock_strings_from_environment(self):
        assert parse_clock("12:30") == time(12, 30)
        assert parse_clock(None) is None


class TestBreaksAndBuffers:
    def test_lunch_break_skips_to_break_end(self, repo):
        finder = AvailabilityFinder(
            ConflictDetector(repo),
            start_hour=9,
            end_hour=17,
            granularity_minutes=60,
            buffer_minutes=0,
            break_start="12:00",
            break_end="13:00",
        )
        starts = [s.start.hour for s in finder.find_open_slots(DAY, 60)]
        assert starts == [9, 10, 11, 13, 14, 15, 16]

    def test_slot_straddling_break_is_not_offered(self, repo):
        finder = AvailabilityFinder(
            ConflictDetector(repo),
            start_hour=9,
            end_hour=17,
            granularity_minutes=30,
            buffer_minutes=0,
            break_start="12:00",
            break_end="13:00",
        )
        starts = [s.start for s in finder.find_open_slots(DAY, 60)]
        assert at(11, 30) not in starts
        assert at(11) in starts
        assert at(13) in starts

    def test_buffer_must_fit_before_closing(self, repo):
        finder = AvailabilityFinder(
            ConflictDetector(repo),
            start_hour=9,
            end_hour=17,
            granularity_minutes=60,
            buffer_minutes=15,
            break_start=None,
            break_end=None,
        )
        slots = finder.find_open_slots(DAY, 60)
        assert slots[-1].start == at(15)
        assert slots[-1].end == at(16)

    def test_buffer_keeps_gap_before_next_appointment(self, finder, repo, make_draft):
        repo.insert(make_draft(at(11), at(12)))
        starts = [s.start for s in finder.find_open_slots(DAY, 60, buffer_minutes=15)]
        assert at(10) not in starts
        assert at(9) in starts
        assert at(12) in starts

    def test_negative_buffer_override_rejected(self, finder):
        with pytest.raises(InvalidDuration):
            finder.find_open_slots(DAY, 60, buffer_minutes=-1)


class TestBlockedTime:
    def test_blocked_slot_removes_overlapping_candidates(self, finder, repo):
        repo.insert_blocked_slot(title="Staff meeting", start_time=at(14), end_time=at(15, 30))
        starts = [s.start.hour for s in finder.find_open_slots(DAY, 60)]
        assert starts == [9, 10, 11, 12, 13, 16]

    def test_practice_wide_block_applies_to_every_provider(self, finder, repo):
        repo.insert_blocked_slot(title="Fire drill", start_time=at(9), end_time=at(10))
        assert at(9) not in [s.start for s in finder.find_open_slots(DAY, 60, provider_id="dr-lee")]

    def test_provider_block_leaves_other_providers_free(self, finder, repo):
        repo.insert_blocked_slot(
            title="Leave", start_time=at(9), end_time=at(17), provider_id="dr-lee"
        )
        assert finder.find_open_slots(DAY, 60, provider_id="dr-lee") == []
        assert len(finder.find_open_slots(DAY, 60, provider_id="dr-patel")) == 8

    def test_block_lookup_failure_propagates(self):
        store = MagicMock()
        store.find_overlapping.return_value = []
        store.find_blocked_overlapping.side_effect = StoreUnavailable("Could not check blocked time")
        finder = AvailabilityFinder(ConflictDetector(store), buffer_minutes=0)
        with pytest.raises(StoreUnavailable):
            finder.find_open_slots(DAY, 60)


class TestProviderWorkingHours:
    def test_provider_hours_replace_business_hours(self, finder, repo):
        # 2024-03-04 is a Monday
        repo.save_working_hours(
            "dr-lee", 1, {"start_time": time(13), "end_time": time(16), "is_available": True}
        )
        starts = [s.start.hour for s in finder.find_open_slots(DAY, 60, provider_id="dr-lee")]
        assert starts == [13, 14, 15]

    def test_provider_break_is_respected(self, finder, repo):
        repo.save_working_hours(
            "dr-lee",
            1,
            {
                "start_time": time(8),
                "end_time": time(12),
                "break_start_time": time(10),
                "break_end_time": time(10, 30),
                "is_available": True,
            },
        )
        starts = [s.start for s in finder.find_open_slots(DAY, 60, provider_id="dr-lee")]
        assert starts == [at(8), at(9), at(10, 30)]

    def test_unavailable_weekday_has_no_slots(self, finder, repo):
        repo.save_working_hours(
            "dr-lee", 1, {"start_time": time(9), "end_time": time(17), "is_available": False}
        )
        assert finder.find_open_slots(DAY, 60, provider_id="dr-lee") == []

    def test_hours_for_another_weekday_fall_back_to_business_hours(self, finder, repo):
        repo.save_working_hours(
            "dr-lee", 2, {"start_time": time(13), "end_time": time(16), "is_available": True}
        )
        assert len(finder.find_open_slots(DAY, 60, provider_id="dr-lee")) == 8
