"""
Place-details enrichment for the most promising candidates.
"""

import logging
import math
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError

from turnright.core.cache import CacheClient
from turnright.core.errors import ProviderUnavailable, RequestCancelled
from turnright.core.providers import PlacesProvider
from turnright.core.schemas import Place
from turnright.core.settings import Settings

logger = logging.getLogger(__name__)

# Fields copied from a details response onto the search result
DETAIL_FIELDS = (
    "rating",
    "review_count",
    "price_level",
    "business_status",
    "opening_hours",
    "photo_references",
    "editorial_summary",
    "address",
    "types",
)


def pre_score(place: Place) -> float:
    """Cheap ranking used to decide which places are worth a details call."""
    return 2 * (place.rating or 0) + 0.5 * math.log(place.review_count + 1)


def is_enrichable(place: Place) -> bool:
    # Only primary-provider ids can be looked up; open-data ids are osm:<type>/<id>
    return bool(place.place_id) and not place.place_id.startswith("osm:") and not place.enriched


def merge_details(place: Place, details: Place) -> Place:
    """Copy of `place` with every non-empty details field applied."""
    update = {}
    for field in DETAIL_FIELDS:
        value = getattr(details, field)
        if value is None or value == [] or (field == "review_count" and value == 0):
            continue
        update[field] = value
    update["enriched"] = True
    return place.model_copy(update=update)


class PlaceEnricher:
    def __init__(
        self,
        provider: PlacesProvider,
        cache: CacheClient,
        settings: Settings | None = None,
    ):
        self.provider = provider
        self.cache = cache
        self.settings = settings or Settings()

    def enrich(
        self,
        places: list[Place],
        limit: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> list[Place]:
        """
        Fill details for the top `limit` places by pre-score.

        Args:
            places: Candidates in any order
            limit: Maximum number of details lookups (default ENRICH_LIMIT)
            cancel_event: When set, outstanding lookups are abandoned

        Returns:
            The same list, in the same order, with enriched copies substituted.
            Places whose lookup failed are returned unchanged.
        """
        limit = self.settings.enrich_limit if limit is None else limit
        candidates = sorted(
            (i for i, place in enumerate(places) if is_enrichable(place)),
            key=lambda i: (-pre_score(places[i]), places[i].place_id),
        )[:limit]
        if not candidates:
            return list(places)

        enriched = list(places)
        to_fetch: list[int] = []
        for i in candidates:
            cached = self.cache.get_cached_place_details(places[i].place_id)
            if cached is not None:
                enriched[i] = merge_details(places[i], cached)
            else:
                to_fetch.append(i)

        if to_fetch:
            fetched = self._fetch(enriched, to_fetch, cancel_event)
            for i, details in fetched.items():
                enriched[i] = merge_details(enriched[i], details)
                self.cache.put_cached_place_details(enriched[i])

        logger.info(
            f"[Enricher] {len(candidates)} selected, "
            f"{len(candidates) - len(to_fetch)} from cache, {len(to_fetch)} fetched"
        )
        return enriched

    def _fetch(
        self,
        places: list[Place],
        indices: list[int],
        cancel_event: threading.Event | None,
    ) -> dict[int, Place]:
        results: dict[int, Place] = {}
        executor = ThreadPoolExecutor(max_workers=self.settings.max_workers)
        futures = {
            executor.submit(self.provider.get_place_details, places[i].place_id): i
            for i in indices
        }
        try:
            for future in as_completed(futures, timeout=self.settings.collection_timeout_s):
                if cancel_event is not None and cancel_event.is_set():
                    raise RequestCancelled("Enrichment cancelled by caller")
                i = futures[future]
                try:
                    details = future.result()
                except ProviderUnavailable as e:
                    logger.warning(f"[Enricher] Details failed for {places[i].place_id}: {e}")
                    continue
                except Exception as e:
                    logger.error(f"[Enricher] Details raised for {places[i].place_id}: {e}")
                    continue
                if details is not None:
                    results[i] = details
        except FuturesTimeoutError:
            logger.warning(
                f"[Enricher] Timed out with {len(indices) - len(results)} lookups outstanding"
            )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        return results
