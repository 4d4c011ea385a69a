from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from trafik_monitor.models import Announcement, Deviation, LocationHint, ReasonCode, Station

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Europe/Stockholm"


def parse_trafikverket_time(raw: str, timezone: str = DEFAULT_TIMEZONE) -> datetime:
    value = (raw or "").strip()
    if len(value) < 16:
        raise ValueError(f"Invalid Trafikverket timestamp: {raw}")
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=ZoneInfo(timezone))
    return parsed


def _optional_time(raw: str | None, timezone: str) -> datetime | None:
    if not raw:
        return None
    try:
        return parse_trafikverket_time(raw, timezone)
    except ValueError:
        logger.warning("Ignoring unparseable timestamp %r", raw)
        return None


def _location_hints(items: list[dict[str, Any]] | None) -> tuple[LocationHint, ...]:
    hints: list[LocationHint] = []
    for item in items or []:
        # Depending on schema version the signature is sent as LocationName.
        name = (item.get("LocationName") or item.get("LocationSignature") or "").strip()
        if not name:
            continue
        try:
            priority = int(item.get("Priority", 0))
        except (TypeError, ValueError):
            priority = 0
        hints.append(LocationHint(name=name, priority=priority))
    return tuple(hints)


def _descriptions(items: list[dict[str, Any]] | None) -> tuple[str, ...]:
    return tuple(
        (item.get("Description") or "").strip()
        for item in items or []
        if (item.get("Description") or "").strip()
    )


def _deviations(items: list[dict[str, Any]] | None) -> tuple[Deviation, ...]:
    rows: list[Deviation] = []
    for item in items or []:
        description = (item.get("Description") or "").strip()
        if not description:
            continue
        code = (item.get("Code") or "").strip() or None
        rows.append(Deviation(description=description, code=code))
    return tuple(rows)


def parse_announcement(item: dict[str, Any], timezone: str = DEFAULT_TIMEZONE) -> Announcement | None:
    train_ident = (item.get("AdvertisedTrainIdent") or "").strip()
    activity_type = (item.get("ActivityType") or "").strip()
    location = (item.get("LocationSignature") or "").strip()
    if not train_ident or not activity_type or not location:
        return None

    try:
        advertised = parse_trafikverket_time(item.get("AdvertisedTimeAtLocation", ""), timezone)
    except ValueError:
        logger.warning(
            "Dropping announcement for train %s at %s: bad advertised time %r",
            train_ident,
            location,
            item.get("AdvertisedTimeAtLocation"),
        )
        return None

    operational = (item.get("OperationalTrainNumber") or "").strip() or None

    return Announcement(
        train_ident=train_ident,
        operational_train_number=operational,
        activity_type=activity_type,
        advertised_time=advertised,
        time_at_location=_optional_time(item.get("TimeAtLocation"), timezone),
        estimated_time=_optional_time(item.get("EstimatedTimeAtLocation"), timezone),
        location_signature=location,
        canceled=bool(item.get("Canceled", False)),
        deviations=_deviations(item.get("Deviation")),
        other_information=_descriptions(item.get("OtherInformation")),
        from_locations=_location_hints(item.get("FromLocation")),
        to_locations=_location_hints(item.get("ToLocation")),
        product_information=_descriptions(item.get("ProductInformation")),
    )


def parse_announcements(items: list[dict[str, Any]], timezone: str = DEFAULT_TIMEZONE) -> list[Announcement]:
    rows: list[Announcement] = []
    for item in items:
        announcement = parse_announcement(item, timezone)
        if announcement is not None:
            rows.append(announcement)
    if len(rows) != len(items):
        logger.debug("Parsed %d of %d announcements", len(rows), len(items))
    return rows


def parse_stations(items: list[dict[str, Any]]) -> list[Station]:
    rows: list[Station] = []
    for item in items:
        signature = (item.get("LocationSignature") or "").strip()
        name = (item.get("AdvertisedLocationName") or "").strip()
        if not signature or not name:
            continue
        short_name = (item.get("AdvertisedShortLocationName") or "").strip() or None
        rows.append(Station(signature=signature, advertised_name=name, short_name=short_name))
    return rows


def parse_reason_codes(items: list[dict[str, Any]]) -> list[ReasonCode]:
    rows: list[ReasonCode] = []
    for item in items:
        code = (item.get("Code") or "").strip()
        if not code:
            continue
        rows.append(
            ReasonCode(
                code=code,
                level1_description=item.get("Level1Description") or None,
                level2_description=item.get("Level2Description") or None,
                level3_description=item.get("Level3Description") or None,
            )
        )
    return rows
