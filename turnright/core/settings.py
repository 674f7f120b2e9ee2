import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


def _int_list(raw: str) -> list[int]:
    return [int(part.strip()) for part in raw.split(",") if part.strip()]


class ScoringWeights(BaseModel):
    """Coefficients of the composite ("coolness") score and the route utility."""

    rating: float = 2.0
    review_log: float = 0.5
    fit_vibe: float = 1.5
    keyword_bonus: float = 2.0
    chain_penalty: float = 0.8
    distance_per_km: float = 0.5
    distance_cap_km: float = 4.0

    route_distance: float = -1.5
    route_rating: float = 0.3
    route_review_log: float = 0.2


class Settings(BaseModel):
    google_places_api_key: str = os.getenv("GOOGLE_PLACES_API_KEY", "")
    overpass_url: str = os.getenv(
        "OVERPASS_URL", "https://overpass-api.de/api/interpreter"
    )

    # Candidate collection
    search_radii_m: list[int] = Field(
        default_factory=lambda: _int_list(os.getenv("SEARCH_RADII_M", "5000,15000"))
    )
    min_per_goal: int = int(os.getenv("MIN_PER_GOAL", "1"))
    target_raw: int = int(os.getenv("TARGET_RAW_CANDIDATES", "120"))
    keyword_search_limit: int = int(os.getenv("KEYWORD_SEARCH_LIMIT", "3"))
    enrich_limit: int = int(os.getenv("ENRICH_LIMIT", "50"))
    max_workers: int = int(os.getenv("MAX_WORKERS", "6"))
    request_timeout_s: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "10"))
    collection_timeout_s: float = float(os.getenv("COLLECTION_TIMEOUT_SECONDS", "30"))

    # Cache
    cache_backend: str = os.getenv("CACHE_BACKEND", "memory")
    search_cache_ttl_s: int = int(os.getenv("SEARCH_CACHE_TTL_SECONDS", str(3 * 24 * 3600)))
    details_cache_ttl_s: int = int(
        os.getenv("DETAILS_CACHE_TTL_SECONDS", str(21 * 24 * 3600))
    )
    mongodb_uri: str = os.getenv("MONGODB_URI", "")
    database_name: str = os.getenv("DATABASE_NAME", "turnright")

    # Selection, trimming and splitting
    max_stops_onsite: int = int(os.getenv("MAX_STOPS_ONSITE", "8"))
    stops_per_day: int = int(os.getenv("STOPS_PER_DAY", "7"))
    planning_day_minutes: int = int(os.getenv("PLANNING_DAY_MINUTES", "480"))
    duplicate_distance_m: float = float(os.getenv("DUPLICATE_DISTANCE_M", "50"))
    extra_min_composite: float = float(os.getenv("EXTRA_MIN_COMPOSITE", "10"))

    scoring: ScoringWeights = Field(default_factory=ScoringWeights)

    allowed_origins: str = os.getenv("ALLOWED_ORIGINS", "")


def get_settings() -> Settings:
    return Settings()
