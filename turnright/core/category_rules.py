"""
Per-goal category rules: allowed place types, keyword lists, open-data fallback
tags and ordered exclusion rules.
"""

import re
import unicodedata
from dataclasses import dataclass, field
from typing import Callable

from turnright.core.schemas import Place

# Returns True when the place must be rejected for the goal.
ExclusionPredicate = Callable[[Place, list[str]], bool]


@dataclass(frozen=True)
class ExclusionRule:
    reason: str
    predicate: ExclusionPredicate


@dataclass(frozen=True)
class GoalRule:
    name: str
    allowed_types: frozenset[str]
    keywords: tuple[str, ...]
    osm_fallback_tags: tuple[str, ...]
    search_types: tuple[str, ...]
    dwell_minutes: int
    exclusions: tuple[ExclusionRule, ...] = ()
    nightlife: bool = False
    aliases: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class MatchResult:
    is_match: bool
    matched_keywords: list[str]
    fit_score: float
    reason: str | None = None


def normalize_text(text: str | None) -> str:
    """Lowercase, strip accents and collapse punctuation/whitespace."""
    if not text:
        return ""
    folded = unicodedata.normalize("NFKD", text)
    folded = "".join(ch for ch in folded if not unicodedata.combining(ch))
    folded = folded.lower().replace("-", " ")
    folded = re.sub(r"[^\w\s]", " ", folded)
    return re.sub(r"\s+", " ", folded).strip()


def find_keywords(text: str, keywords: tuple[str, ...] | list[str]) -> list[str]:
    """Return keywords present in already-normalized text as whole words."""
    hits = []
    for keyword in keywords:
        needle = normalize_text(keyword)
        if needle and re.search(rf"\b{re.escape(needle)}\b", text):
            hits.append(keyword)
    return hits


def place_text(place: Place) -> str:
    return normalize_text(f"{place.name} {place.editorial_summary or ''}")


# ----------------------------------------------
# Exclusion rule builders
# ----------------------------------------------


def _closed_business() -> ExclusionRule:
    return ExclusionRule(
        reason="business closed",
        predicate=lambda place, _kw: (place.business_status or "").upper()
        in ("CLOSED_PERMANENTLY", "CLOSED_TEMPORARILY"),
    )


def _types_unless_keyword(types: set[str], reason: str) -> ExclusionRule:
    """Reject places typed as any of `types` unless a goal keyword matched."""

    def predicate(place: Place, matched_keywords: list[str]) -> bool:
        return bool(types.intersection(place.types)) and not matched_keywords

    return ExclusionRule(reason=reason, predicate=predicate)


def _types_without(types: set[str], required: set[str], reason: str) -> ExclusionRule:
    """Reject places typed as any of `types` that carry none of `required`."""

    def predicate(place: Place, _matched_keywords: list[str]) -> bool:
        place_types = set(place.types)
        return bool(types & place_types) and not (required & place_types)

    return ExclusionRule(reason=reason, predicate=predicate)


def _name_contains(phrases: tuple[str, ...], reason: str) -> ExclusionRule:
    def predicate(place: Place, _matched_keywords: list[str]) -> bool:
        return bool(find_keywords(normalize_text(place.name), phrases))

    return ExclusionRule(reason=reason, predicate=predicate)


CHAIN_BRANDS = (
    "starbucks",
    "mcdonald's",
    "mcdonalds",
    "burger king",
    "kfc",
    "costa coffee",
    "subway",
    "pizza hut",
    "dunkin",
    "tim hortons",
    "hard rock cafe",
    "domino's",
    "pret a manger",
    "five guys",
    "telepizza",
    "caffe nero",
    "coffeeheaven",
    "green caffe nero",
)

SPECIALTY_COFFEE_KEYWORDS = (
    "specialty coffee",
    "speciality coffee",
    "third wave",
    "roastery",
    "roasters",
    "roaster",
    "espresso bar",
    "pour over",
    "single origin",
    "brew bar",
    "filter coffee",
)


def _generic_cafe(place: Place, matched_keywords: list[str]) -> bool:
    """A café with no specialty cue that isn't exceptionally well rated."""
    if matched_keywords:
        return False
    return not ((place.rating or 0) >= 4.6 and place.review_count >= 100)


# ----------------------------------------------
# Rule table
# ----------------------------------------------

_COMMON = (_closed_business(),)

GOAL_RULES: tuple[GoalRule, ...] = (
    GoalRule(
        name="Restaurants",
        allowed_types=frozenset({"restaurant", "meal_takeaway", "food"}),
        keywords=(
            "restaurant",
            "bistro",
            "tasca",
            "trattoria",
            "brasserie",
            "eatery",
            "kitchen",
            "tavern",
        ),
        osm_fallback_tags=("amenity=restaurant",),
        search_types=("restaurant",),
        dwell_minutes=75,
        exclusions=_COMMON
        + (
            _types_without(
                {"lodging"}, {"restaurant", "food"}, "hotel without a restaurant"
            ),
        ),
        aliases=("restaurants", "food", "dining", "lunch", "dinner"),
    ),
    GoalRule(
        name="Cafés",
        allowed_types=frozenset({"cafe"}),
        keywords=("cafe", "coffee", "espresso", "tea room", "pastelaria", "kawiarnia"),
        osm_fallback_tags=("amenity=cafe",),
        search_types=("cafe",),
        dwell_minutes=30,
        exclusions=_COMMON
        + (
            _types_unless_keyword(
                {"gas_station", "convenience_store", "supermarket"},
                "petrol station or shop counter",
            ),
        ),
        aliases=("cafes", "cafe", "coffee", "coffee shops"),
    ),
    GoalRule(
        name="Bars",
        allowed_types=frozenset({"bar", "night_club"}),
        keywords=(
            "bar",
            "pub",
            "cocktail",
            "cocktails",
            "wine bar",
            "speakeasy",
            "brewery",
            "taproom",
        ),
        osm_fallback_tags=("amenity=bar", "amenity=pub"),
        search_types=("bar",),
        dwell_minutes=60,
        exclusions=_COMMON
        + (_types_unless_keyword({"lodging"}, "hotel lobby bar without bar cues"),),
        nightlife=True,
        aliases=("bars", "pubs", "nightlife", "drinks"),
    ),
    GoalRule(
        name="Viewpoints",
        allowed_types=frozenset({"observation_deck", "scenic_point"}),
        keywords=(
            "viewpoint",
            "miradouro",
            "panoramic",
            "panorama",
            "lookout",
            "observation deck",
            "belvedere",
            "scenic view",
            "punkt widokowy",
            "taras widokowy",
        ),
        osm_fallback_tags=("tourism=viewpoint",),
        search_types=("tourist_attraction",),
        dwell_minutes=15,
        exclusions=_COMMON
        + (
            _types_unless_keyword(
                {
                    "museum",
                    "art_gallery",
                    "movie_theater",
                    "theater",
                    "performing_arts_theater",
                    "shopping_mall",
                    "store",
                    "clothing_store",
                    "department_store",
                },
                "museum, theatre or shopping without viewpoint cues",
            ),
        ),
        aliases=("viewpoints", "views", "view", "miradouros"),
    ),
    GoalRule(
        name="Parks",
        allowed_types=frozenset({"park", "natural_feature"}),
        keywords=("park", "garden", "gardens", "jardim", "parque", "park miejski"),
        osm_fallback_tags=("leisure=park", "leisure=garden"),
        search_types=("park",),
        dwell_minutes=30,
        exclusions=_COMMON
        + (
            _types_without(
                {"parking", "rv_park", "amusement_park"}, {"park"}, "parking or amusement park"
            ),
            _name_contains(("car park", "parking", "park and ride"), "parking lot"),
        ),
        aliases=("parks", "gardens", "green spaces"),
    ),
    GoalRule(
        name="Museums",
        allowed_types=frozenset({"museum", "art_gallery"}),
        keywords=("museum", "museu", "muzeum", "gallery", "galeria", "exhibition"),
        osm_fallback_tags=("tourism=museum", "tourism=gallery"),
        search_types=("museum", "art_gallery"),
        dwell_minutes=90,
        exclusions=_COMMON
        + (_types_without({"store", "gift_shop"}, {"museum"}, "museum shop"),),
        aliases=("museums", "galleries", "art"),
    ),
    GoalRule(
        name="Architectural landmarks",
        allowed_types=frozenset(
            {"church", "place_of_worship", "historical_landmark", "monument", "castle"}
        ),
        keywords=(
            "cathedral",
            "church",
            "basilica",
            "palace",
            "castle",
            "tower",
            "monument",
            "monastery",
            "convent",
            "landmark",
            "historic",
            "old town",
        ),
        osm_fallback_tags=("historic=monument", "historic=castle", "building=cathedral"),
        search_types=("tourist_attraction", "church"),
        dwell_minutes=20,
        exclusions=_COMMON
        + (
            _types_unless_keyword(
                {"lodging", "restaurant", "bar"}, "hospitality venue without landmark cues"
            ),
        ),
        aliases=("architectural monuments", "monuments", "landmarks", "architecture"),
    ),
    GoalRule(
        name="Coworking",
        allowed_types=frozenset({"coworking_space"}),
        keywords=(
            "coworking",
            "co working",
            "cowork",
            "workspace",
            "shared office",
            "laptop friendly",
            "hot desk",
        ),
        osm_fallback_tags=("amenity=coworking_space", "office=coworking"),
        search_types=("library", "cafe"),
        dwell_minutes=120,
        exclusions=_COMMON
        + (
            _types_unless_keyword(
                {"library", "place_of_worship", "church", "mosque", "synagogue"},
                "library or place of worship without coworking cues",
            ),
        ),
        aliases=("work", "workspace", "coworking spaces"),
    ),
    GoalRule(
        name="Bakery",
        allowed_types=frozenset({"bakery"}),
        keywords=(
            "bakery",
            "padaria",
            "pastelaria",
            "patisserie",
            "boulangerie",
            "piekarnia",
            "cukiernia",
        ),
        osm_fallback_tags=("shop=bakery", "shop=pastry"),
        search_types=("bakery",),
        dwell_minutes=15,
        exclusions=_COMMON
        + (
            _types_unless_keyword(
                {"supermarket", "grocery_or_supermarket", "convenience_store"},
                "supermarket bakery counter",
            ),
        ),
        aliases=("bakeries", "pastries"),
    ),
    GoalRule(
        name="Specialty coffee",
        allowed_types=frozenset({"cafe"}),
        keywords=SPECIALTY_COFFEE_KEYWORDS,
        osm_fallback_tags=("amenity=cafe",),
        search_types=("cafe",),
        dwell_minutes=20,
        exclusions=_COMMON
        + (
            _name_contains(CHAIN_BRANDS, "chain coffee brand"),
            ExclusionRule(reason="generic cafe without specialty cues", predicate=_generic_cafe),
        ),
        aliases=("specialty", "speciality coffee", "third wave coffee"),
    ),
)

_RULES_BY_KEY: dict[str, GoalRule] = {}
for _rule in GOAL_RULES:
    _RULES_BY_KEY[normalize_text(_rule.name)] = _rule
    for _alias in _rule.aliases:
        _RULES_BY_KEY.setdefault(normalize_text(_alias), _rule)


def get_goal_rule(goal: str) -> GoalRule | None:
    """Look up a goal by name or alias (case and accent insensitive)."""
    return _RULES_BY_KEY.get(normalize_text(goal))


def matches(place: Place, goal: str | GoalRule, strict: bool = False) -> MatchResult:
    """
    Decide whether a place satisfies a goal.

    Pure and total: every (place, goal) pair gets a deterministic verdict,
    unknown goals included.

    Returns:
        MatchResult with fit_score in [0, 3]: 2 for an allowed type,
        +1 when any goal keyword appears in the name or editorial summary.
    """
    rule = goal if isinstance(goal, GoalRule) else get_goal_rule(goal)
    if rule is None:
        return MatchResult(False, [], 0.0, "unknown goal")

    matched_keywords = find_keywords(place_text(place), rule.keywords)
    type_hit = bool(rule.allowed_types.intersection(place.types))

    for exclusion in rule.exclusions:
        if exclusion.predicate(place, matched_keywords):
            return MatchResult(False, matched_keywords, 0.0, exclusion.reason)

    if strict and not type_hit:
        return MatchResult(False, matched_keywords, 0.0, "no allowed type (strict)")
    if not type_hit and not matched_keywords:
        return MatchResult(False, [], 0.0, "no allowed type or keyword")

    fit = (2.0 if type_hit else 0.0) + (1.0 if matched_keywords else 0.0)
    return MatchResult(True, matched_keywords, min(fit, 3.0))
