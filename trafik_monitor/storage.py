from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path

from trafik_monitor.models import ReasonCode, Station


SCHEMA = """
CREATE TABLE IF NOT EXISTS stations (
    signature TEXT PRIMARY KEY,
    advertised_name TEXT NOT NULL,
    short_name TEXT,
    cached_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS reason_codes (
    code TEXT PRIMARY KEY,
    level1_description TEXT,
    level2_description TEXT,
    level3_description TEXT,
    cached_at TEXT NOT NULL
);
"""


class ReferenceStore:
    def __init__(self, db_path: str) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def initialize(self) -> None:
        with sqlite3.connect(self.db_path) as con:
            con.executescript(SCHEMA)
            con.commit()

    @staticmethod
    def _latest(con: sqlite3.Connection, table: str) -> datetime | None:
        row = con.execute(f"SELECT MAX(cached_at) FROM {table}").fetchone()
        if not row or row[0] is None:
            return None
        return datetime.fromisoformat(row[0])

    def stations_cached_at(self) -> datetime | None:
        with sqlite3.connect(self.db_path) as con:
            return self._latest(con, "stations")

    def reason_codes_cached_at(self) -> datetime | None:
        with sqlite3.connect(self.db_path) as con:
            return self._latest(con, "reason_codes")

    def replace_stations(self, stations: list[Station], cached_at: datetime) -> int:
        with sqlite3.connect(self.db_path) as con:
            con.execute("DELETE FROM stations")
            con.executemany(
                """
                INSERT OR REPLACE INTO stations (signature, advertised_name, short_name, cached_at)
                VALUES (?, ?, ?, ?)
                """,
                [
                    (row.signature, row.advertised_name, row.short_name, cached_at.isoformat())
                    for row in stations
                ],
            )
            con.commit()
        return len(stations)

    def replace_reason_codes(self, codes: list[ReasonCode], cached_at: datetime) -> int:
        with sqlite3.connect(self.db_path) as con:
            con.execute("DELETE FROM reason_codes")
            con.executemany(
                """
                INSERT OR REPLACE INTO reason_codes (
                    code, level1_description, level2_description, level3_description, cached_at
                ) VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (
                        row.code,
                        row.level1_description,
                        row.level2_description,
                        row.level3_description,
                        cached_at.isoformat(),
                    )
                    for row in codes
                ],
            )
            con.commit()
        return len(codes)

    def load_reason_codes(self) -> list[ReasonCode]:
        with sqlite3.connect(self.db_path) as con:
            rows = con.execute(
                "SELECT code, level1_description, level2_description, level3_description FROM reason_codes"
            ).fetchall()
        return [
            ReasonCode(
                code=row[0],
                level1_description=row[1],
                level2_description=row[2],
                level3_description=row[3],
            )
            for row in rows
        ]

    def station_names(self, signatures: set[str] | list[str]) -> dict[str, str]:
        wanted = sorted({s for s in signatures if s})
        if not wanted:
            return {}
        names: dict[str, str] = {}
        # Stay below SQLite's bound-parameter limit.
        chunk_size = 500
        with sqlite3.connect(self.db_path) as con:
            for i in range(0, len(wanted), chunk_size):
                batch = wanted[i : i + chunk_size]
                placeholders = ", ".join("?" for _ in batch)
                rows = con.execute(
                    f"SELECT signature, advertised_name FROM stations WHERE signature IN ({placeholders})",
                    batch,
                ).fetchall()
                names.update({row[0]: row[1] for row in rows})
        return names
