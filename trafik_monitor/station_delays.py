from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime

from trafik_monitor.grouping import complete_journeys, group_announcements, is_fast_train, within_window
from trafik_monitor.models import Announcement, LocationHint, ReasonPriority, StationDelay
from trafik_monitor.reasons import resolve_delay_reason

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = "Unknown"


def minutes_between(actual: datetime, planned: datetime) -> int:
    # Truncates toward zero.
    return int((actual - planned).total_seconds() / 60)


def _primary_hint(hints: tuple[LocationHint, ...]) -> LocationHint | None:
    for hint in hints:
        if hint.priority == 1:
            return hint
    return None


def resolve_location_name(hint: LocationHint | None, station_names: Mapping[str, str]) -> str:
    if hint is None or not hint.name:
        return UNKNOWN_LOCATION
    full_name = station_names.get(hint.name)
    if full_name:
        return full_name
    # Longer values are already display names; short ones are unknown signatures.
    return hint.name


def operator_name(announcement: Announcement) -> str | None:
    if not announcement.product_information:
        return None
    return announcement.product_information[0]


def compute_station_delays(
    station_signature: str,
    start: datetime | None,
    end: datetime | None,
    min_delay_minutes: int,
    announcements: list[Announcement],
    priorities: Mapping[str, ReasonPriority],
    station_names: Mapping[str, str] | None = None,
    timezone: str = "Europe/Stockholm",
) -> list[StationDelay]:
    names = station_names or {}
    at_station = [
        a
        for a in within_window(announcements, start, end, timezone)
        if a.location_signature == station_signature
    ]
    groups = group_announcements(at_station, timezone)

    delays: list[StationDelay] = []
    for instance, departure, arrival in complete_journeys(groups):
        if is_fast_train(departure.train_ident):
            continue
        if arrival.canceled:
            continue

        actual_arrival = arrival.actual_time
        if actual_arrival is None:
            continue

        delay_minutes = minutes_between(actual_arrival, arrival.advertised_time)
        if delay_minutes < min_delay_minutes:
            continue

        reason = resolve_delay_reason(instance.deviations(), instance.other_information(), priorities)
        origin = resolve_location_name(_primary_hint(departure.from_locations), names)
        destination = resolve_location_name(_primary_hint(arrival.to_locations), names)

        delays.append(
            StationDelay(
                train_number=departure.train_ident,
                train_company=operator_name(departure),
                journey=f"{origin} → {destination}",
                delay_minutes=delay_minutes,
                departure_planned=departure.advertised_time,
                departure_actual=departure.actual_time or departure.advertised_time,
                arrival_planned=arrival.advertised_time,
                arrival_actual=actual_arrival,
                delay_reason=reason,
            )
        )

    # sorted() is stable with reverse=True, so ties keep input order.
    delays = sorted(delays, key=lambda d: d.delay_minutes, reverse=True)
    logger.debug(
        "Station %s: %d delays from %d announcements", station_signature, len(delays), len(announcements)
    )
    return delays
