from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import NamedTuple
from zoneinfo import ZoneInfo

from trafik_monitor.models import Announcement, Deviation

FAST_TRAIN_SUFFIX = "x"


class TrainKey(NamedTuple):
    train_ident: str
    operational_train_number: str | None
    service_date: date


@dataclass
class TrainServiceInstance:
    key: TrainKey
    announcements: list[Announcement] = field(default_factory=list)

    @property
    def departures(self) -> list[Announcement]:
        return [a for a in self.announcements if a.is_departure]

    @property
    def arrivals(self) -> list[Announcement]:
        return [a for a in self.announcements if a.is_arrival]

    def stops_at(self, location_signature: str) -> bool:
        return any(a.location_signature == location_signature for a in self.announcements)

    def first_departure(self, location_signature: str | None = None) -> Announcement | None:
        candidates = [
            a
            for a in self.departures
            if location_signature is None or a.location_signature == location_signature
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda a: a.advertised_time)

    def last_arrival(self, location_signature: str | None = None) -> Announcement | None:
        candidates = [
            a
            for a in self.arrivals
            if location_signature is None or a.location_signature == location_signature
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda a: a.advertised_time)

    def journey(self) -> tuple[Announcement, Announcement] | None:
        departure = self.first_departure()
        arrival = self.last_arrival()
        if departure is None or arrival is None:
            return None
        return departure, arrival

    def deviations(self) -> list[Deviation]:
        return [d for a in self.announcements for d in a.deviations]

    def other_information(self) -> list[str]:
        return [info for a in self.announcements for info in a.other_information]


def is_fast_train(train_ident: str) -> bool:
    return train_ident.lower().endswith(FAST_TRAIN_SUFFIX)


def service_date_for(advertised: datetime, tz: ZoneInfo) -> date:
    if advertised.tzinfo is None:
        return advertised.date()
    return advertised.astimezone(tz).date()


def train_key_for(announcement: Announcement, tz: ZoneInfo) -> TrainKey:
    return TrainKey(
        train_ident=announcement.train_ident,
        operational_train_number=announcement.operational_train_number or None,
        service_date=service_date_for(announcement.advertised_time, tz),
    )


def group_announcements(
    announcements: Iterable[Announcement],
    timezone: str = "Europe/Stockholm",
) -> dict[TrainKey, TrainServiceInstance]:
    """Bundle announcements into one instance per train, operational number and service day.

    Groups keep the order in which their first announcement was seen.
    """
    tz = ZoneInfo(timezone)
    groups: dict[TrainKey, TrainServiceInstance] = {}
    for announcement in announcements:
        key = train_key_for(announcement, tz)
        instance = groups.get(key)
        if instance is None:
            instance = TrainServiceInstance(key=key)
            groups[key] = instance
        instance.announcements.append(announcement)
    return groups


def complete_journeys(
    groups: dict[TrainKey, TrainServiceInstance],
) -> list[tuple[TrainServiceInstance, Announcement, Announcement]]:
    rows: list[tuple[TrainServiceInstance, Announcement, Announcement]] = []
    for instance in groups.values():
        journey = instance.journey()
        if journey is None:
            continue
        departure, arrival = journey
        rows.append((instance, departure, arrival))
    return rows


def _aware(bound: datetime | None, tz: ZoneInfo) -> datetime | None:
    if bound is None or bound.tzinfo is not None:
        return bound
    return bound.replace(tzinfo=tz)


def within_window(
    announcements: Iterable[Announcement],
    start: datetime | None,
    end: datetime | None,
    timezone: str = "Europe/Stockholm",
) -> list[Announcement]:
    """Keep announcements advertised inside ``[start, end]``.

    Naive bounds are read as wall-clock time in ``timezone``.
    """
    tz = ZoneInfo(timezone)
    start = _aware(start, tz)
    end = _aware(end, tz)
    rows: list[Announcement] = []
    for announcement in announcements:
        if start is not None and announcement.advertised_time < start:
            continue
        if end is not None and announcement.advertised_time > end:
            continue
        rows.append(announcement)
    return rows
