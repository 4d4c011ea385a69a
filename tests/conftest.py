"""
Shared fixtures for the delay engine tests.

Announcements are built with aware timestamps in Europe/Stockholm on a fixed
service day so every test reasons about plain HH:MM clock times.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from trafik_monitor.models import ARRIVAL, DEPARTURE, Announcement, Deviation, LocationHint, ReasonCode
from trafik_monitor.reasons import build_reason_priorities

TZ = ZoneInfo("Europe/Stockholm")


def at(clock: str, day: int = 15) -> datetime:
    """Return 2024-01-<day> <clock> in Stockholm time."""
    hour, minute = clock.split(":")
    return datetime(2024, 1, day, int(hour), int(minute), tzinfo=TZ)


def announcement(
    train: str,
    activity: str,
    planned: str,
    location: str,
    actual: str | None = None,
    estimated: str | None = None,
    operational: str | None = None,
    canceled: bool = False,
    deviations: tuple[Deviation, ...] = (),
    other: tuple[str, ...] = (),
    from_locations: tuple[LocationHint, ...] = (),
    to_locations: tuple[LocationHint, ...] = (),
    products: tuple[str, ...] = (),
    day: int = 15,
) -> Announcement:
    return Announcement(
        train_ident=train,
        operational_train_number=operational,
        activity_type=activity,
        advertised_time=at(planned, day),
        time_at_location=at(actual, day) if actual else None,
        estimated_time=at(estimated, day) if estimated else None,
        location_signature=location,
        canceled=canceled,
        deviations=deviations,
        other_information=other,
        from_locations=from_locations,
        to_locations=to_locations,
        product_information=products,
    )


def departure(train: str, planned: str, location: str, **kwargs) -> Announcement:
    return announcement(train, DEPARTURE, planned, location, **kwargs)


def arrival(train: str, planned: str, location: str, **kwargs) -> Announcement:
    return announcement(train, ARRIVAL, planned, location, **kwargs)


@pytest.fixture
def reason_catalog():
    return [
        ReasonCode(code="ANA027", level1_description="Inställt", level3_description="Tåget är inställt"),
        ReasonCode(code="ONA042", level3_description="Signalfel"),
        ReasonCode(code="ONA050", level3_description="Fordonsfel"),
        ReasonCode(code="ANA004", level3_description="Buss ersätter"),
        ReasonCode(code="ANA088", level3_description="Kort tåg"),
        ReasonCode(code="ZZZ001", level3_description="Personalbrist"),
    ]


@pytest.fixture
def priorities(reason_catalog):
    return build_reason_priorities(reason_catalog)


@pytest.fixture
def station_names():
    return {"G": "Göteborg C", "A": "Alingsås", "Cst": "Stockholm C", "B": "Borås C"}
