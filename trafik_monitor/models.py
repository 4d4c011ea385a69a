from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

DEPARTURE = "Avgang"
ARRIVAL = "Ankomst"


@dataclass(frozen=True)
class LocationHint:
    name: str
    priority: int


@dataclass(frozen=True)
class Deviation:
    description: str
    code: str | None = None


@dataclass(frozen=True)
class Announcement:
    train_ident: str
    activity_type: str
    advertised_time: datetime
    location_signature: str
    operational_train_number: str | None = None
    time_at_location: datetime | None = None
    estimated_time: datetime | None = None
    canceled: bool = False
    deviations: tuple[Deviation, ...] = ()
    other_information: tuple[str, ...] = ()
    from_locations: tuple[LocationHint, ...] = ()
    to_locations: tuple[LocationHint, ...] = ()
    product_information: tuple[str, ...] = ()

    @property
    def is_departure(self) -> bool:
        return self.activity_type == DEPARTURE

    @property
    def is_arrival(self) -> bool:
        return self.activity_type == ARRIVAL

    @property
    def actual_time(self) -> datetime | None:
        return self.time_at_location or self.estimated_time


@dataclass(frozen=True)
class Station:
    signature: str
    advertised_name: str
    short_name: str | None = None


@dataclass(frozen=True)
class ReasonCode:
    code: str
    level1_description: str | None = None
    level2_description: str | None = None
    level3_description: str | None = None

    @property
    def description(self) -> str:
        # Level 3 is the most specific text.
        return self.level3_description or self.level2_description or self.level1_description or ""


@dataclass(frozen=True)
class ReasonPriority:
    code: str
    tier: int
    description: str


@dataclass(frozen=True)
class StationDelay:
    train_number: str
    journey: str
    delay_minutes: int
    departure_planned: datetime
    departure_actual: datetime
    arrival_planned: datetime
    arrival_actual: datetime
    delay_reason: str
    train_company: str | None = None
    alternative_info: str | None = None

    def as_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "trainNumber": self.train_number,
            "journey": self.journey,
            "delayMinutes": self.delay_minutes,
            "departurePlanned": self.departure_planned.isoformat(),
            "departureActual": self.departure_actual.isoformat(),
            "arrivalPlanned": self.arrival_planned.isoformat(),
            "arrivalActual": self.arrival_actual.isoformat(),
            "delayReason": self.delay_reason,
        }
        # Optional fields are left out rather than written as null.
        if self.train_company is not None:
            payload["trainCompany"] = self.train_company
        if self.alternative_info is not None:
            payload["alternativeInfo"] = self.alternative_info
        return payload
