"""
Tests for card deck assembly.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest
from datetime import date, datetime, timedelta
from photowrap.deck import build_card_deck, round_half_up
from photowrap.models import (
    AssetRef,
    CardModel,
    CardType,
    CollagePayload,
    PlaceCluster,
    TitlePayload,
)
from photowrap.temporal import MostExploredMonth, compute_time_stats

RANGE_END = datetime(2025, 12, 31, 23, 0, 0)


def make_places(*counts):
    places = []
    for i, count in enumerate(counts):
        places.append(PlaceCluster(
            id=f"run_1_cluster_{i}",
            run_id="run_1",
            centroid_lat=40.0 + i,
            centroid_lon=-74.0,
            photo_count=count,
            distinct_days_count=1,
            representative_asset_ids=[f"p{i}_{j}" for j in range(min(count, 9))],
        ))
    return places


def make_stats(n=20):
    base = datetime(2025, 3, 7, 9, 0, 0)
    return compute_time_stats([AssetRef(f"a{i}", base + timedelta(hours=i)) for i in range(n)])


def card_types(cards):
    return [c.type for c in cards]


class TestRoundHalfUp:
    """Test coverage rounding."""

    def test_rounds_half_up(self):
        assert round_half_up(62.5) == 63
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1

    def test_rounds_to_nearest(self):
        assert round_half_up(2.4) == 2
        assert round_half_up(99.6) == 100
        assert round_half_up(0.0) == 0


class TestBuildCardDeck:
    """Test card ordering and conditional cards."""

    def test_full_deck_order(self):
        cards = build_card_deck("run_1", RANGE_END, 20, 75.0, make_places(9, 5, 4, 3), make_stats())

        assert card_types(cards) == [
            CardType.TITLE,
            CardType.TRUST,
            CardType.TOP_PLACE_1,
            CardType.TOP_PLACES_2_3,
            CardType.PEAK_DAY,
            CardType.PEAK_MONTH,
            CardType.TIME_OF_DAY,
            CardType.DISTINCT_PLACES,
            CardType.COLLAGE,
        ]

    def test_render_order_and_ids(self):
        cards = build_card_deck("run_1", RANGE_END, 20, 75.0, make_places(9, 5, 4), make_stats())

        assert [c.render_order for c in cards] == list(range(1, len(cards) + 1))
        assert [c.id for c in cards] == [f"run_1_card_{i}" for i in range(len(cards))]
        assert all(c.run_id == "run_1" for c in cards)

    def test_two_places_skip_top_places_card(self):
        """Clusters of 5 and 4 give a top place card but no second and third place card."""
        cards = build_card_deck("run_1", RANGE_END, 20, 45.0, make_places(5, 4), make_stats())
        types = card_types(cards)

        assert CardType.TOP_PLACE_1 in types
        assert CardType.TOP_PLACES_2_3 not in types

    def test_top_places_card_payload(self):
        places = make_places(9, 5, 4)
        cards = build_card_deck("run_1", RANGE_END, 20, 90.0, places, make_stats())
        top23 = next(c for c in cards if c.type == CardType.TOP_PLACES_2_3)

        assert top23.payload.place2.id == "run_1_cluster_1"
        assert top23.payload.place3.id == "run_1_cluster_2"

    def test_place_payloads_are_snapshots(self):
        places = make_places(9, 5, 4)
        cards = build_card_deck("run_1", RANGE_END, 20, 90.0, places, make_stats())

        places[0].label = "Renamed later"
        top1 = next(c for c in cards if c.type == CardType.TOP_PLACE_1)
        assert top1.payload.place.label == "Unknown Place"

    def test_no_places(self):
        stats = make_stats(20)
        cards = build_card_deck("run_1", RANGE_END, 20, 0.0, [], stats)
        types = card_types(cards)

        assert CardType.TOP_PLACE_1 not in types
        assert CardType.DISTINCT_PLACES not in types
        assert types[-1] == CardType.COLLAGE
        assert len(cards[-1].payload.asset_ids) == 9
        assert cards[-1].payload.asset_ids[0] == "a0"
        assert cards[-1].payload.asset_ids[-1] == "a19"

    def test_collage_uses_top_place(self):
        places = make_places(12, 5, 4)
        cards = build_card_deck("run_1", RANGE_END, 20, 90.0, places, make_stats())

        assert cards[-1].payload.asset_ids == places[0].representative_asset_ids[:9]

    def test_collage_always_present(self):
        cards = build_card_deck("run_1", RANGE_END, 0, 0.0, [], compute_time_stats([]))

        assert card_types(cards) == [CardType.TITLE, CardType.TRUST, CardType.COLLAGE]
        assert cards[-1].payload == CollagePayload(asset_ids=[])

    def test_title_uses_range_end_year(self):
        cards = build_card_deck("run_1", datetime(2024, 6, 1), 20, 0.0, [], make_stats())
        assert cards[0].payload == TitlePayload(year=2024)

    def test_trust_card(self):
        cards = build_card_deck("run_1", RANGE_END, 20, 62.5, [], make_stats())
        trust = cards[1].payload

        assert trust.total_photos == 20
        assert trust.coverage_pct == 63
        assert trust.asset_ids == ["a0", "a3", "a7", "a11", "a15", "a19"]

    def test_peak_day_payload(self):
        cards = build_card_deck("run_1", RANGE_END, 20, 0.0, [], make_stats(10))
        peak_day = next(c for c in cards if c.type == CardType.PEAK_DAY).payload

        assert peak_day.date == date(2025, 3, 7)
        assert peak_day.count == 10
        assert len(peak_day.asset_ids) == 6

    def test_distinct_places_previews(self):
        places = make_places(10, 9, 8, 7, 6, 5, 4, 3)
        cards = build_card_deck("run_1", RANGE_END, 60, 80.0, places, make_stats())
        distinct = next(c for c in cards if c.type == CardType.DISTINCT_PLACES).payload

        assert distinct.count == 8
        assert distinct.asset_ids == [f"p{i}_0" for i in range(6)]

    def test_most_explored_card_position(self):
        explored = MostExploredMonth(month="March 2025", distinct_places=4, asset_ids=["a1", "a2"])
        cards = build_card_deck("run_1", RANGE_END, 20, 75.0, make_places(9), make_stats(), explored)
        types = card_types(cards)

        index = types.index(CardType.MOST_EXPLORED_MONTH)
        assert types[index - 1] == CardType.PEAK_MONTH
        assert types[index + 1] == CardType.TIME_OF_DAY
        assert cards[index].payload.distinct_places == 4


class TestCardModel:
    """Test card payload validation."""

    def test_payload_must_match_type(self):
        with pytest.raises(TypeError):
            CardModel(id="c", run_id="r", type=CardType.TITLE, payload=CollagePayload(asset_ids=[]), render_order=1)
