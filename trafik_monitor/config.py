from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    api_key: str
    api_endpoint: str
    timezone: str
    database_path: str
    station_cache_ttl_days: int
    reason_code_cache_ttl_hours: int
    min_delay_minutes: int
    hide_bus_replaced: bool
    log_level: str


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got '{raw}'.") from exc


def load_settings() -> Settings:
    load_dotenv()

    api_key = os.getenv("TRAFIKVERKET_API_KEY", "").strip()
    if not api_key:
        raise ValueError("Set TRAFIKVERKET_API_KEY in your environment.")

    return Settings(
        api_key=api_key,
        api_endpoint=os.getenv(
            "TRAFIKVERKET_API_ENDPOINT", "https://api.trafikinfo.trafikverket.se/v2/data.json"
        ),
        timezone=os.getenv("TIMEZONE", "Europe/Stockholm"),
        database_path=os.getenv("DATABASE_PATH", "data/trafik_monitor.db"),
        station_cache_ttl_days=_int_env("STATION_CACHE_TTL_DAYS", 30),
        reason_code_cache_ttl_hours=_int_env("REASON_CODE_CACHE_TTL_HOURS", 24),
        min_delay_minutes=_int_env("MIN_DELAY_MINUTES", 20),
        hide_bus_replaced=_bool_env("HIDE_BUS_REPLACED", False),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )


def day_window(day: date, timezone: str) -> tuple[datetime, datetime]:
    tz = ZoneInfo(timezone)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day, time.max, tzinfo=tz)
    return start, end


def query_window(start_day: date, end_day: date | None, timezone: str) -> tuple[datetime, datetime]:
    last_day = end_day or start_day
    if last_day < start_day:
        raise ValueError(f"End date {last_day.isoformat()} is before start date {start_day.isoformat()}.")
    start, _ = day_window(start_day, timezone)
    _, end = day_window(last_day, timezone)
    return start, end
