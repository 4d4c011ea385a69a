from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta

from trafik_monitor.client import TrafikverketClient
from trafik_monitor.config import Settings
from trafik_monitor.models import Announcement, StationDelay
from trafik_monitor.parser import parse_announcements, parse_reason_codes, parse_stations
from trafik_monitor.reasons import ReasonPriorityCache
from trafik_monitor.route_delays import compute_route_delays
from trafik_monitor.station_delays import compute_station_delays
from trafik_monitor.storage import ReferenceStore

logger = logging.getLogger(__name__)

BUS_REPLACED_MARKER = "buss ersätter"


def _is_stale(cached_at: datetime | None, ttl: timedelta, now: datetime) -> bool:
    if cached_at is None:
        return True
    if cached_at.tzinfo is None:
        cached_at = cached_at.replace(tzinfo=now.tzinfo)
    return cached_at < now - ttl


def filter_bus_replaced(delays: list[StationDelay]) -> list[StationDelay]:
    kept = [d for d in delays if BUS_REPLACED_MARKER not in d.delay_reason.lower()]
    if len(kept) != len(delays):
        logger.info("Bus filter: %d trains -> %d trains", len(delays), len(kept))
    return kept


def hint_signatures(announcements: list[Announcement]) -> set[str]:
    signatures: set[str] = set()
    for announcement in announcements:
        for hint in (*announcement.from_locations, *announcement.to_locations):
            signatures.add(hint.name)
    return signatures


class DelayService:
    def __init__(
        self,
        settings: Settings,
        client: TrafikverketClient | None = None,
        store: ReferenceStore | None = None,
        priority_cache: ReasonPriorityCache | None = None,
    ) -> None:
        self.settings = settings
        self.client = client or TrafikverketClient(settings)
        self.store = store or ReferenceStore(settings.database_path)
        self.priority_cache = priority_cache or ReasonPriorityCache()
        self.store.initialize()

    def _now(self) -> datetime:
        return datetime.now().astimezone()

    def sync_stations(self, force: bool = False) -> int:
        now = self._now()
        ttl = timedelta(days=self.settings.station_cache_ttl_days)
        if not force and not _is_stale(self.store.stations_cached_at(), ttl, now):
            logger.debug("Station cache is fresh, skipping sync")
            return 0

        logger.info("Syncing stations cache from Trafikverket API")
        stations = parse_stations(self.client.get_stations())
        count = self.store.replace_stations(stations, cached_at=now)
        logger.info("Synced %d stations to cache", count)
        return count

    def sync_reason_codes(self, force: bool = False) -> int:
        now = self._now()
        ttl = timedelta(hours=self.settings.reason_code_cache_ttl_hours)
        if not force and not _is_stale(self.store.reason_codes_cached_at(), ttl, now):
            logger.debug("Reason code cache is fresh, skipping sync")
            if self.priority_cache.is_empty():
                self.load_reason_priorities()
            return 0

        logger.info("Syncing reason codes cache from Trafikverket API")
        codes = parse_reason_codes(self.client.get_reason_codes())
        count = self.store.replace_reason_codes(codes, cached_at=now)
        logger.info("Synced %d reason codes to cache", count)
        self.load_reason_priorities()
        return count

    def load_reason_priorities(self) -> int:
        try:
            catalog = self.store.load_reason_codes()
        except sqlite3.Error as exc:
            # Ranking quality degrades but delay computation carries on.
            logger.error("Failed to load reason code priorities: %s", exc)
            catalog = []
        count = self.priority_cache.replace(catalog)
        logger.debug("Loaded %d reason code priorities", count)
        return count

    def refresh_reference_data(self) -> None:
        self.sync_stations()
        self.sync_reason_codes()

    def fetch_announcements(self, signatures: list[str], start: datetime, end: datetime) -> list[Announcement]:
        payload = self.client.get_announcements(signatures, start, end)
        announcements = parse_announcements(payload, self.settings.timezone)
        logger.debug("Received %d announcements", len(announcements))
        return announcements

    def _post_filter(self, delays: list[StationDelay]) -> list[StationDelay]:
        if self.settings.hide_bus_replaced:
            return filter_bus_replaced(delays)
        return delays

    def _threshold(self, min_delay_minutes: int | None) -> int:
        threshold = self.settings.min_delay_minutes if min_delay_minutes is None else min_delay_minutes
        if threshold < 1:
            raise ValueError(f"min_delay_minutes must be at least 1, got {threshold}")
        return threshold

    def compute_station_delays(
        self,
        station_signature: str,
        start: datetime,
        end: datetime,
        min_delay_minutes: int | None = None,
    ) -> list[StationDelay]:
        threshold = self._threshold(min_delay_minutes)
        logger.info(
            "Fetching delays for station %s from %s to %s, min delay: %d",
            station_signature,
            start.isoformat(),
            end.isoformat(),
            threshold,
        )
        self.refresh_reference_data()
        priorities = self.priority_cache.snapshot()

        announcements = self.fetch_announcements([station_signature], start, end)
        station_names = self.store.station_names(hint_signatures(announcements))

        delays = compute_station_delays(
            station_signature,
            start,
            end,
            threshold,
            announcements,
            priorities,
            station_names=station_names,
            timezone=self.settings.timezone,
        )
        delays = self._post_filter(delays)
        logger.info("Returning %d delays (filtered from %d announcements)", len(delays), len(announcements))
        return delays

    def compute_route_delays(
        self,
        origin_signature: str,
        dest_signature: str,
        start: datetime,
        end: datetime,
        min_delay_minutes: int | None = None,
    ) -> list[StationDelay]:
        threshold = self._threshold(min_delay_minutes)
        logger.info(
            "Fetching effective delays for route %s → %s from %s to %s, min delay: %d",
            origin_signature,
            dest_signature,
            start.isoformat(),
            end.isoformat(),
            threshold,
        )
        self.refresh_reference_data()
        priorities = self.priority_cache.snapshot()

        announcements = self.fetch_announcements([origin_signature, dest_signature], start, end)
        station_names = self.store.station_names({origin_signature, dest_signature})

        delays = compute_route_delays(
            origin_signature,
            dest_signature,
            start,
            end,
            threshold,
            announcements,
            priorities,
            station_names=station_names,
            timezone=self.settings.timezone,
        )
        delays = self._post_filter(delays)
        logger.info(
            "Returning %d effective delays (filtered from %d announcements)", len(delays), len(announcements)
        )
        return delays
