from __future__ import annotations

import argparse
import json
import logging
from datetime import date, datetime
from zoneinfo import ZoneInfo

from trafik_monitor.config import load_settings, query_window
from trafik_monitor.models import StationDelay
from trafik_monitor.service import DelayService


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delayed trains at a station or along a route (Trafikverket)")
    parser.add_argument("--station", required=True, help="Station signature, e.g. G")
    parser.add_argument("--dest", help="Destination signature; switches to effective route delays")
    parser.add_argument("--start-date", help="Start date YYYY-MM-DD (default: today)")
    parser.add_argument("--end-date", help="End date YYYY-MM-DD (default: start date)")
    parser.add_argument("--min-delay", type=int, help="Minimum delay in minutes")
    parser.add_argument("--json", action="store_true", help="Print the delay list as JSON")
    parser.add_argument("--refresh", action="store_true", help="Force a station and reason-code cache refresh")
    return parser.parse_args()


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    return date.fromisoformat(value)


def _format_row(row: StationDelay) -> str:
    line = (
        f"{row.train_number:>6}  +{row.delay_minutes:<4} {row.journey}  "
        f"{row.departure_planned.strftime('%H:%M')}->{row.arrival_planned.strftime('%H:%M')} "
        f"(actual {row.arrival_actual.strftime('%H:%M')})  {row.delay_reason}"
    )
    if row.train_company:
        line += f"  [{row.train_company}]"
    if row.alternative_info:
        line += f"\n        {row.alternative_info}"
    return line


def main() -> None:
    args = parse_args()
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    today = datetime.now(ZoneInfo(settings.timezone)).date()
    start, end = query_window(
        _parse_date(args.start_date) or today,
        _parse_date(args.end_date),
        settings.timezone,
    )

    service = DelayService(settings)
    if args.refresh:
        service.sync_stations(force=True)
        service.sync_reason_codes(force=True)

    if args.dest:
        delays = service.compute_route_delays(args.station, args.dest, start, end, args.min_delay)
    else:
        delays = service.compute_station_delays(args.station, start, end, args.min_delay)

    if args.json:
        print(json.dumps([row.as_dict() for row in delays], ensure_ascii=False, indent=2))
        return

    print(f"Found {len(delays)} delayed trains between {start.isoformat()} and {end.isoformat()}")
    for row in delays:
        print(_format_row(row))


if __name__ == "__main__":
    main()
