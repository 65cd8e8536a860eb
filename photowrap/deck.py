"""Build the ordered card deck for a run."""

import math
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from photowrap.clustering import select_representatives
from photowrap.config import CARD_SAMPLE_SIZE, COLLAGE_SIZE, DISTINCT_PLACES_PREVIEW
from photowrap.models import (
    CardModel,
    CardPayload,
    CardType,
    CollagePayload,
    DistinctPlacesPayload,
    MostExploredMonthPayload,
    PeakDayPayload,
    PeakMonthPayload,
    PlaceCluster,
    TimeOfDayPayload,
    TitlePayload,
    TopPlacePayload,
    TopPlacesPayload,
    TrustPayload,
)
from photowrap.temporal import MostExploredMonth, TimeStats
from photowrap.error_handling import logger

def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)

class DeckBuilder:
    """Hands out sequential ids and render orders as cards are appended."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        self.cards: List[CardModel] = []

    def add(self, card_type: CardType, payload: CardPayload):
        order = len(self.cards) + 1
        self.cards.append(CardModel(
            id=f"{self.run_id}_card_{order - 1}",
            run_id=self.run_id,
            type=card_type,
            payload=payload,
            render_order=order,
        ))

def build_card_deck(
    run_id: str,
    range_end: datetime,
    total_photos: int,
    coverage_pct: float,
    places: List[PlaceCluster],
    time_stats: TimeStats,
    most_explored: Optional[MostExploredMonth] = None,
) -> List[CardModel]:
    deck = DeckBuilder(run_id)

    deck.add(CardType.TITLE, TitlePayload(year=range_end.year))

    deck.add(CardType.TRUST, TrustPayload(
        total_photos=total_photos,
        coverage_pct=round_half_up(coverage_pct),
        asset_ids=select_representatives(time_stats.all_asset_ids, CARD_SAMPLE_SIZE),
    ))

    if len(places) >= 1:
        deck.add(CardType.TOP_PLACE_1, TopPlacePayload(place=replace(places[0])))

    if len(places) >= 3:
        deck.add(CardType.TOP_PLACES_2_3, TopPlacesPayload(place2=replace(places[1]), place3=replace(places[2])))

    peak_day = time_stats.peak_day
    if peak_day:
        deck.add(CardType.PEAK_DAY, PeakDayPayload(
            date=peak_day.date,
            count=peak_day.count,
            asset_ids=select_representatives(peak_day.asset_ids, CARD_SAMPLE_SIZE),
        ))

    peak_month = time_stats.peak_month
    if peak_month:
        deck.add(CardType.PEAK_MONTH, PeakMonthPayload(
            month=peak_month.month,
            count=peak_month.count,
            asset_ids=select_representatives(peak_month.asset_ids, CARD_SAMPLE_SIZE),
        ))

    if most_explored:
        deck.add(CardType.MOST_EXPLORED_MONTH, MostExploredMonthPayload(
            month=most_explored.month,
            distinct_places=most_explored.distinct_places,
            asset_ids=select_representatives(most_explored.asset_ids, CARD_SAMPLE_SIZE),
        ))

    time_of_day = time_stats.time_of_day
    if time_of_day:
        deck.add(CardType.TIME_OF_DAY, TimeOfDayPayload(
            window=time_of_day.window,
            hour=time_of_day.hour,
            asset_ids=select_representatives(time_of_day.asset_ids, CARD_SAMPLE_SIZE),
        ))

    if places:
        previews = [p.representative_asset_ids[0] for p in places[:DISTINCT_PLACES_PREVIEW]
                    if p.representative_asset_ids]
        deck.add(CardType.DISTINCT_PLACES, DistinctPlacesPayload(count=len(places), asset_ids=previews))

    if places:
        collage = list(places[0].representative_asset_ids[:COLLAGE_SIZE])
    else:
        collage = select_representatives(time_stats.all_asset_ids, COLLAGE_SIZE)
    deck.add(CardType.COLLAGE, CollagePayload(asset_ids=collage))

    logger.info(f"Assembled {len(deck.cards)} cards for run {run_id}")
    return deck.cards
