import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional

from photowrap.config import DATABASE_PATH
from photowrap.models import (
    CardModel,
    CardType,
    LabelConfidence,
    PhotoAccess,
    PlaceCluster,
    PlaceSource,
    WrappedRun,
    payload_from_dict,
    payload_to_dict,
)
from photowrap.error_handling import DatabaseError, logger

RUN_COLUMNS = (
    "id, timeRangeStart, timeRangeEnd, totalAssets, locationAssets, locationCoveragePct, "
    "accessPrivileges, filtersHash, algorithmVersion, createdAt"
)
PLACE_COLUMNS = (
    "id, wrappedRunId, centroidLat, centroidLon, photoCount, distinctDaysCount, "
    "label, labelConfidence, representativeAssetIds, isHidden, source"
)
CARD_COLUMNS = "id, wrappedRunId, type, payload, renderOrder"

class Database:
    """sqlite store for runs, their place clusters and their card decks.

    The connection is opened on first use and kept for the lifetime of the
    object, so ``:memory:`` databases work too.
    """

    def __init__(self, db_path: str = DATABASE_PATH):
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    def open(self) -> sqlite3.Connection:
        """Open the database and create the schema; later calls return the same connection."""
        if self._conn is None:
            try:
                conn = sqlite3.connect(self.db_path)
                self.init_db(conn)
            except sqlite3.Error as e:
                raise DatabaseError(f"Could not open database {self.db_path}: {e}") from e
            self._conn = conn
            logger.debug(f"Opened database {self.db_path}")
        return self._conn

    def get_connection(self) -> sqlite3.Connection:
        return self.open()

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @contextmanager
    def transaction(self):
        conn = self.get_connection()
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise DatabaseError(f"Database operation failed: {e}") from e

    def init_db(self, conn: sqlite3.Connection):
        """Initialize database tables"""
        with conn:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS WrappedRun (
                    id TEXT PRIMARY KEY,
                    timeRangeStart DATETIME NOT NULL,
                    timeRangeEnd DATETIME NOT NULL,
                    totalAssets INTEGER NOT NULL,
                    locationAssets INTEGER NOT NULL,
                    locationCoveragePct REAL NOT NULL,
                    accessPrivileges TEXT NOT NULL,
                    filtersHash TEXT NOT NULL,
                    algorithmVersion TEXT NOT NULL,
                    createdAt DATETIME NOT NULL
                )
            ''')

            conn.execute('''
                CREATE TABLE IF NOT EXISTS PlaceCluster (
                    id TEXT PRIMARY KEY,
                    wrappedRunId TEXT NOT NULL,
                    centroidLat REAL,
                    centroidLon REAL,
                    photoCount INTEGER NOT NULL,
                    distinctDaysCount INTEGER NOT NULL,
                    label TEXT NOT NULL,
                    labelConfidence TEXT NOT NULL,
                    representativeAssetIds TEXT NOT NULL,
                    isHidden BOOLEAN NOT NULL DEFAULT FALSE,
                    source TEXT NOT NULL,
                    FOREIGN KEY (wrappedRunId) REFERENCES WrappedRun (id)
                )
            ''')

            conn.execute('''
                CREATE TABLE IF NOT EXISTS CardModel (
                    id TEXT PRIMARY KEY,
                    wrappedRunId TEXT NOT NULL,
                    type TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    renderOrder INTEGER NOT NULL,
                    FOREIGN KEY (wrappedRunId) REFERENCES WrappedRun (id)
                )
            ''')

            # Present in the schema only; nothing reads or writes it yet
            conn.execute('''
                CREATE TABLE IF NOT EXISTS GeocodeCache (
                    key TEXT PRIMARY KEY,
                    label TEXT NOT NULL,
                    updatedAt INTEGER NOT NULL
                )
            ''')

    # Run operations
    def save_wrapped_run(self, run: WrappedRun):
        created_at = run.created_at or datetime.now()
        with self.transaction() as conn:
            conn.execute(f'''
                INSERT OR REPLACE INTO WrappedRun ({RUN_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (run.id, run.time_range_start.isoformat(), run.time_range_end.isoformat(), run.total_assets,
                  run.location_assets, run.location_coverage_pct, run.access_privileges.value, run.filters_hash,
                  run.algorithm_version, created_at.isoformat()))

    def get_wrapped_run(self, run_id: str) -> Optional[WrappedRun]:
        with self.transaction() as conn:
            row = conn.execute(f'SELECT {RUN_COLUMNS} FROM WrappedRun WHERE id = ?', (run_id,)).fetchone()
            if row:
                return self._row_to_run(row)
            return None

    def list_wrapped_runs(self) -> List[WrappedRun]:
        with self.transaction() as conn:
            rows = conn.execute(f'SELECT {RUN_COLUMNS} FROM WrappedRun ORDER BY createdAt DESC, id').fetchall()
            return [self._row_to_run(row) for row in rows]

    # Place cluster operations
    def save_place_cluster(self, place: PlaceCluster):
        # Upsert in place so the rowid, used to order equal photo counts, survives updates
        with self.transaction() as conn:
            conn.execute(f'''
                INSERT INTO PlaceCluster ({PLACE_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    wrappedRunId = excluded.wrappedRunId,
                    centroidLat = excluded.centroidLat,
                    centroidLon = excluded.centroidLon,
                    photoCount = excluded.photoCount,
                    distinctDaysCount = excluded.distinctDaysCount,
                    label = excluded.label,
                    labelConfidence = excluded.labelConfidence,
                    representativeAssetIds = excluded.representativeAssetIds,
                    isHidden = excluded.isHidden,
                    source = excluded.source
            ''', (place.id, place.run_id, place.centroid_lat, place.centroid_lon, place.photo_count,
                  place.distinct_days_count, place.label, place.label_confidence.value,
                  json.dumps(place.representative_asset_ids), place.is_hidden, place.source.value))

    def get_place_clusters(self, run_id: str, include_hidden: bool = False) -> List[PlaceCluster]:
        query = f'SELECT {PLACE_COLUMNS} FROM PlaceCluster WHERE wrappedRunId = ?'
        if not include_hidden:
            query += ' AND isHidden = 0'
        query += ' ORDER BY photoCount DESC, rowid'

        with self.transaction() as conn:
            rows = conn.execute(query, (run_id,)).fetchall()
            return [self._row_to_place(row) for row in rows]

    def hide_place(self, place_id: str):
        with self.transaction() as conn:
            conn.execute('UPDATE PlaceCluster SET isHidden = 1 WHERE id = ?', (place_id,))

    # Card operations
    def save_card_model(self, card: CardModel):
        with self.transaction() as conn:
            conn.execute(f'''
                INSERT OR REPLACE INTO CardModel ({CARD_COLUMNS})
                VALUES (?, ?, ?, ?, ?)
            ''', (card.id, card.run_id, card.type.value, json.dumps(payload_to_dict(card.payload)),
                  card.render_order))

    def get_card_models(self, run_id: str) -> List[CardModel]:
        with self.transaction() as conn:
            rows = conn.execute(
                f'SELECT {CARD_COLUMNS} FROM CardModel WHERE wrappedRunId = ? ORDER BY renderOrder ASC',
                (run_id,)
            ).fetchall()
            return [self._row_to_card(row) for row in rows]

    @staticmethod
    def _row_to_run(row) -> WrappedRun:
        (run_id, start, end, total, located, coverage, access, filters_hash, version, created_at) = row
        return WrappedRun(
            id=run_id,
            time_range_start=datetime.fromisoformat(start),
            time_range_end=datetime.fromisoformat(end),
            total_assets=total,
            location_assets=located,
            location_coverage_pct=coverage,
            access_privileges=PhotoAccess(access),
            filters_hash=filters_hash,
            algorithm_version=version,
            created_at=datetime.fromisoformat(created_at),
        )

    @staticmethod
    def _row_to_place(row) -> PlaceCluster:
        (place_id, run_id, lat, lon, photo_count, days, label, confidence, asset_ids, is_hidden, source) = row
        return PlaceCluster(
            id=place_id,
            run_id=run_id,
            centroid_lat=lat,
            centroid_lon=lon,
            photo_count=photo_count,
            distinct_days_count=days,
            label=label,
            label_confidence=LabelConfidence(confidence),
            representative_asset_ids=json.loads(asset_ids),
            is_hidden=bool(is_hidden),
            source=PlaceSource(source),
        )

    @staticmethod
    def _row_to_card(row) -> CardModel:
        (card_id, run_id, card_type, payload, render_order) = row
        card_type = CardType(card_type)
        return CardModel(
            id=card_id,
            run_id=run_id,
            type=card_type,
            payload=payload_from_dict(card_type, json.loads(payload)),
            render_order=render_order,
        )
