"""
Unit tests for grouping announcements into train service instances.
"""

from datetime import date, datetime, timezone

from conftest import arrival, at, departure

from trafik_monitor.grouping import (
    TrainKey,
    complete_journeys,
    group_announcements,
    is_fast_train,
    within_window,
)
from trafik_monitor.models import DEPARTURE, Announcement


class TestGroupAnnouncements:
    """Composite key grouping."""

    def test_groups_by_train_operational_number_and_day(self):
        """Same ident on another day or without an operational number is a separate instance."""
        rows = [
            departure("100", "08:00", "G", operational="100"),
            arrival("100", "08:30", "G", operational="100"),
            departure("100", "08:00", "G", operational="100", day=16),
            departure("101", "09:00", "G"),
        ]
        groups = group_announcements(rows)

        assert list(groups) == [
            TrainKey("100", "100", date(2024, 1, 15)),
            TrainKey("100", "100", date(2024, 1, 16)),
            TrainKey("101", None, date(2024, 1, 15)),
        ]
        assert len(groups[TrainKey("100", "100", date(2024, 1, 15))].announcements) == 2

    def test_separator_characters_do_not_collide(self):
        """'1-2' + '3' and '1' + '2-3' would clash as a dash-joined string key."""
        rows = [
            departure("1-2", "08:00", "G", operational="3"),
            departure("1", "08:00", "G", operational="2-3"),
        ]
        assert len(group_announcements(rows)) == 2

    def test_service_date_uses_local_calendar_day(self):
        """23:30 UTC on the 15th is already the 16th in Stockholm."""
        late = Announcement(
            train_ident="200",
            activity_type=DEPARTURE,
            advertised_time=datetime(2024, 1, 15, 23, 30, tzinfo=timezone.utc),
            location_signature="G",
        )
        key = next(iter(group_announcements([late], "Europe/Stockholm")))
        assert key.service_date == date(2024, 1, 16)

    def test_grouping_is_order_independent(self):
        """Input order does not change which announcements share a group."""
        rows = [
            departure("300", "08:00", "G"),
            arrival("300", "08:30", "G"),
            departure("301", "09:00", "G"),
        ]
        forward = group_announcements(rows)
        backward = group_announcements(list(reversed(rows)))
        assert set(forward) == set(backward)
        for key in forward:
            assert sorted(a.advertised_time for a in forward[key].announcements) == sorted(
                a.advertised_time for a in backward[key].announcements
            )


class TestJourneySelection:
    """Earliest departure / latest arrival rule."""

    def test_earliest_departure_latest_arrival(self):
        """The earliest departure and latest arrival describe the journey."""
        rows = [
            departure("400", "08:20", "G"),
            departure("400", "08:00", "G"),
            arrival("400", "08:10", "G"),
            arrival("400", "09:40", "G"),
        ]
        instance = next(iter(group_announcements(rows).values()))
        dep, arr = instance.journey()
        assert dep.advertised_time == at("08:00")
        assert arr.advertised_time == at("09:40")

    def test_incomplete_instances_are_dropped(self):
        """Instances missing a departure or an arrival are left out."""
        rows = [
            departure("500", "08:00", "G"),
            arrival("501", "08:30", "G"),
            departure("502", "08:00", "G"),
            arrival("502", "08:30", "G"),
        ]
        journeys = complete_journeys(group_announcements(rows))
        assert [instance.key.train_ident for instance, _, _ in journeys] == ["502"]

    def test_location_specific_selection(self):
        """Departures and arrivals can be narrowed to one location."""
        rows = [
            departure("600", "08:00", "A"),
            departure("600", "08:40", "B"),
            arrival("600", "08:35", "B"),
            arrival("600", "09:30", "C"),
        ]
        instance = next(iter(group_announcements(rows).values()))
        assert instance.first_departure("B").advertised_time == at("08:40")
        assert instance.last_arrival("B").advertised_time == at("08:35")
        assert instance.last_arrival("A") is None
        assert instance.stops_at("C")
        assert not instance.stops_at("D")


class TestHelpers:
    """Fast-train marker and window filtering."""

    def test_fast_train_marker(self):
        """A trailing x in either case marks a fast train."""
        assert is_fast_train("1234X")
        assert is_fast_train("1234x")
        assert not is_fast_train("1234")

    def test_window_is_inclusive(self):
        """Announcements exactly on the bounds are kept."""
        rows = [
            departure("700", "07:59", "G"),
            departure("700", "08:00", "G"),
            departure("700", "09:00", "G"),
            departure("700", "09:01", "G"),
        ]
        kept = within_window(rows, at("08:00"), at("09:00"))
        assert [a.advertised_time for a in kept] == [at("08:00"), at("09:00")]

    def test_open_window_keeps_everything(self):
        """None bounds disable the check."""
        rows = [departure("700", "07:59", "G")]
        assert within_window(rows, None, None) == rows

    def test_naive_bounds_use_local_zone(self):
        """Naive bounds are compared as Stockholm wall-clock time."""
        rows = [departure("700", "07:59", "G"), departure("700", "08:00", "G")]
        kept = within_window(rows, datetime(2024, 1, 15, 8, 0), datetime(2024, 1, 15, 9, 0))
        assert [a.advertised_time for a in kept] == [at("08:00")]
