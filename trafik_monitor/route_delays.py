from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime

from trafik_monitor.grouping import (
    TrainKey,
    TrainServiceInstance,
    group_announcements,
    is_fast_train,
    within_window,
)
from trafik_monitor.models import Announcement, ReasonPriority, StationDelay
from trafik_monitor.reasons import UNKNOWN_REASON, append_other_information, resolve_deviation_reason
from trafik_monitor.station_delays import minutes_between, operator_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrainTiming:
    key: TrainKey
    train_number: str
    planned_departure: datetime
    actual_departure: datetime | None
    planned_arrival: datetime
    actual_arrival: datetime | None
    canceled: bool
    origin_departure: Announcement
    instance: TrainServiceInstance


def _timing_for(
    instance: TrainServiceInstance,
    origin_signature: str,
    dest_signature: str,
) -> TrainTiming | None:
    if not instance.stops_at(origin_signature) or not instance.stops_at(dest_signature):
        return None

    origin_departure = instance.first_departure(origin_signature)
    dest_arrival = instance.last_arrival(dest_signature)
    if origin_departure is None or dest_arrival is None:
        return None
    # Out-of-sequence data: arrival advertised before departure.
    if dest_arrival.advertised_time < origin_departure.advertised_time:
        return None
    if is_fast_train(origin_departure.train_ident):
        return None

    return TrainTiming(
        key=instance.key,
        train_number=origin_departure.train_ident,
        planned_departure=origin_departure.advertised_time,
        actual_departure=origin_departure.actual_time,
        planned_arrival=dest_arrival.advertised_time,
        actual_arrival=dest_arrival.actual_time,
        canceled=dest_arrival.canceled,
        origin_departure=origin_departure,
        instance=instance,
    )


def build_train_timings(
    announcements: list[Announcement],
    origin_signature: str,
    dest_signature: str,
    timezone: str = "Europe/Stockholm",
) -> list[TrainTiming]:
    relevant = [a for a in announcements if a.location_signature in (origin_signature, dest_signature)]
    timings: list[TrainTiming] = []
    for instance in group_announcements(relevant, timezone).values():
        timing = _timing_for(instance, origin_signature, dest_signature)
        if timing is not None:
            timings.append(timing)
    return sorted(timings, key=lambda t: t.planned_departure)


def find_best_arrival(
    timings: list[TrainTiming],
    index: int,
    min_delay_minutes: int,
) -> TrainTiming | None:
    """Return the train giving the earliest actual arrival for a rider booked on ``timings[index]``.

    Scans forward in departure order and stops at the first candidate that
    lands within ``min_delay_minutes`` of the booked planned arrival, so a
    still earlier arrival further down the list is not considered.
    """
    booked = timings[index]
    best: TrainTiming | None = None
    for candidate in timings[index:]:
        if candidate.canceled or candidate.actual_arrival is None:
            continue
        if candidate.planned_departure < booked.planned_departure:
            continue
        if best is None or candidate.actual_arrival < best.actual_arrival:
            best = candidate
        if minutes_between(candidate.actual_arrival, booked.planned_arrival) < min_delay_minutes:
            break
    return best


def alternative_note(booked: TrainTiming, used: TrainTiming) -> str | None:
    if used.key == booked.key:
        return None
    status = "cancelled" if booked.canceled else "delayed"
    return f"Train {booked.train_number} {status} - took {used.train_number} instead"


def compute_route_delays(
    origin_signature: str,
    dest_signature: str,
    start: datetime | None,
    end: datetime | None,
    min_delay_minutes: int,
    announcements: list[Announcement],
    priorities: Mapping[str, ReasonPriority],
    station_names: Mapping[str, str] | None = None,
    timezone: str = "Europe/Stockholm",
) -> list[StationDelay]:
    names = station_names or {}
    timings = build_train_timings(
        within_window(announcements, start, end, timezone), origin_signature, dest_signature, timezone
    )
    origin_name = names.get(origin_signature) or origin_signature
    dest_name = names.get(dest_signature) or dest_signature

    delays: list[StationDelay] = []
    for index, booked in enumerate(timings):
        # Cancelled trains still look for a substitute.
        if booked.actual_arrival is None and not booked.canceled:
            continue

        used = find_best_arrival(timings, index, min_delay_minutes)
        if used is None or used.actual_arrival is None:
            continue

        effective_delay = minutes_between(used.actual_arrival, booked.planned_arrival)
        if effective_delay < min_delay_minutes:
            continue

        reason = resolve_deviation_reason(booked.instance.deviations(), priorities)
        if reason == UNKNOWN_REASON and used.key != booked.key:
            reason = resolve_deviation_reason(used.instance.deviations(), priorities)
        reason = append_other_information(reason, booked.instance.other_information())

        delays.append(
            StationDelay(
                train_number=booked.train_number,
                train_company=operator_name(booked.origin_departure),
                journey=f"{origin_name} → {dest_name}",
                delay_minutes=effective_delay,
                departure_planned=booked.planned_departure,
                departure_actual=used.actual_departure or used.planned_departure,
                arrival_planned=booked.planned_arrival,
                arrival_actual=used.actual_arrival,
                delay_reason=reason,
                alternative_info=alternative_note(booked, used),
            )
        )

    delays = sorted(delays, key=lambda d: d.delay_minutes, reverse=True)
    logger.debug(
        "Route %s -> %s: %d effective delays from %d trains",
        origin_signature,
        dest_signature,
        len(delays),
        len(timings),
    )
    return delays
