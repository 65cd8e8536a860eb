"""
Tests for the sqlite run store.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import sqlite3
import pytest
from dataclasses import replace
from datetime import date, datetime
from photowrap.database import Database
from photowrap.models import (
    CardModel,
    CardType,
    LabelConfidence,
    PeakDayPayload,
    PhotoAccess,
    PlaceCluster,
    TitlePayload,
    TopPlacePayload,
    TopPlacesPayload,
    WrappedRun,
)
from photowrap.error_handling import DatabaseError


@pytest.fixture
def db(tmp_path):
    database = Database(str(tmp_path / "photowrap_test.db"))
    database.open()
    yield database
    database.close()


def make_run(run_id="run_1", created_at=None):
    return WrappedRun(
        id=run_id,
        time_range_start=datetime(2025, 1, 1),
        time_range_end=datetime(2026, 1, 1),
        total_assets=100,
        location_assets=62,
        location_coverage_pct=62.0,
        access_privileges=PhotoAccess.LIMITED,
        created_at=created_at or datetime(2025, 12, 31, 18, 0, 0),
    )


def make_place(place_id, count, run_id="run_1"):
    return PlaceCluster(
        id=place_id,
        run_id=run_id,
        centroid_lat=40.7128,
        centroid_lon=-74.0060,
        photo_count=count,
        distinct_days_count=2,
        representative_asset_ids=[f"{place_id}_a", f"{place_id}_b"],
    )


class TestSchema:
    """Test database initialization."""

    def test_tables_created(self, db):
        conn = db.get_connection()
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
        assert {"WrappedRun", "PlaceCluster", "CardModel", "GeocodeCache"} <= tables

    def test_open_is_idempotent(self, db):
        assert db.open() is db.open()

    def test_unopenable_path(self, tmp_path):
        database = Database(str(tmp_path / "missing_dir" / "db.sqlite"))
        with pytest.raises(DatabaseError):
            database.open()


class TestWrappedRuns:
    """Test run persistence."""

    def test_save_and_get(self, db):
        run = make_run()
        db.save_wrapped_run(run)

        loaded = db.get_wrapped_run("run_1")
        assert loaded == run

    def test_missing_run(self, db):
        assert db.get_wrapped_run("nope") is None

    def test_save_replaces_existing(self, db):
        run = make_run()
        db.save_wrapped_run(run)
        run.location_assets = 70
        db.save_wrapped_run(run)

        assert len(db.list_wrapped_runs()) == 1
        assert db.get_wrapped_run("run_1").location_assets == 70

    def test_list_newest_first(self, db):
        db.save_wrapped_run(make_run("old", datetime(2025, 1, 1)))
        db.save_wrapped_run(make_run("new", datetime(2025, 6, 1)))

        assert [r.id for r in db.list_wrapped_runs()] == ["new", "old"]

    def test_created_at_defaults_to_now(self, db):
        run = make_run()
        run.created_at = None
        db.save_wrapped_run(run)

        assert db.get_wrapped_run("run_1").created_at is not None


class TestPlaceClusters:
    """Test place persistence, ordering and hiding."""

    def test_round_trip(self, db):
        place = make_place("run_1_cluster_0", 12)
        db.save_place_cluster(place)

        assert db.get_place_clusters("run_1") == [place]

    def test_ordered_by_count_then_insertion(self, db):
        db.save_place_cluster(make_place("c0", 3))
        db.save_place_cluster(make_place("c1", 8))
        db.save_place_cluster(make_place("c2", 3))
        db.save_place_cluster(make_place("c3", 5))

        assert [p.id for p in db.get_place_clusters("run_1")] == ["c1", "c3", "c0", "c2"]

    def test_update_keeps_tie_order(self, db):
        db.save_place_cluster(make_place("c0", 3))
        db.save_place_cluster(make_place("c1", 3))

        updated = make_place("c0", 3)
        updated.label = "SoHo"
        updated.label_confidence = LabelConfidence.MEDIUM
        db.save_place_cluster(updated)

        places = db.get_place_clusters("run_1")
        assert [p.id for p in places] == ["c0", "c1"]
        assert places[0].label == "SoHo"
        assert places[0].label_confidence == LabelConfidence.MEDIUM

    def test_filtered_by_run(self, db):
        db.save_place_cluster(make_place("a", 3, run_id="run_1"))
        db.save_place_cluster(make_place("b", 3, run_id="run_2"))

        assert [p.id for p in db.get_place_clusters("run_2")] == ["b"]

    def test_hide_place(self, db):
        db.save_place_cluster(make_place("c0", 5))
        db.save_place_cluster(make_place("c1", 4))
        db.hide_place("c0")

        assert [p.id for p in db.get_place_clusters("run_1")] == ["c1"]

        everything = db.get_place_clusters("run_1", include_hidden=True)
        assert [p.id for p in everything] == ["c0", "c1"]
        assert everything[0].is_hidden is True
        assert everything[0] == replace(make_place("c0", 5), is_hidden=True)
        assert everything[1] == make_place("c1", 4)


class TestCardModels:
    """Test card persistence."""

    def test_payload_round_trip(self, db):
        place = make_place("c0", 9)
        cards = [
            CardModel("run_1_card_0", "run_1", CardType.TITLE, TitlePayload(year=2025), 1),
            CardModel("run_1_card_1", "run_1", CardType.TOP_PLACE_1, TopPlacePayload(place=place), 2),
            CardModel("run_1_card_2", "run_1", CardType.TOP_PLACES_2_3,
                      TopPlacesPayload(place2=make_place("c1", 5), place3=make_place("c2", 4)), 3),
            CardModel("run_1_card_3", "run_1", CardType.PEAK_DAY,
                      PeakDayPayload(date=date(2025, 3, 7), count=4, asset_ids=["a", "b"]), 4),
        ]
        for card in cards:
            db.save_card_model(card)

        assert db.get_card_models("run_1") == cards

    def test_ordered_by_render_order(self, db):
        db.save_card_model(CardModel("c2", "run_1", CardType.TITLE, TitlePayload(year=2025), 2))
        db.save_card_model(CardModel("c1", "run_1", CardType.TITLE, TitlePayload(year=2024), 1))

        assert [c.render_order for c in db.get_card_models("run_1")] == [1, 2]

    def test_payload_stored_as_json(self, db):
        db.save_card_model(CardModel("c1", "run_1", CardType.PEAK_DAY,
                                     PeakDayPayload(date=date(2025, 3, 7), count=1, asset_ids=["a"]), 1))

        conn = sqlite3.connect(db.db_path)
        try:
            (payload,) = conn.execute("SELECT payload FROM CardModel WHERE id = 'c1'").fetchone()
        finally:
            conn.close()
        assert '"2025-03-07"' in payload

    def test_no_cards(self, db):
        assert db.get_card_models("missing") == []
