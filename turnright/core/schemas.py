from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

PlaceSource = Literal["primary", "open_data", "cache"]


class LatLon(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


# =============================================================================
# Candidate Places
# =============================================================================


class Place(BaseModel):
    """A candidate returned by any search source."""

    place_id: str | None = Field(
        None, description="Stable external id (Google place id or 'osm:<type>/<id>')"
    )
    name: str
    lat: float
    lon: float
    types: list[str] = Field(default_factory=list, description="Provider taxonomy tags")
    rating: float | None = Field(None, ge=0, le=5)
    review_count: int = 0
    price_level: int | None = Field(None, description="Price tier (0-4)")
    business_status: str | None = None
    opening_hours: list[str] = Field(default_factory=list)
    photo_references: list[str] = Field(default_factory=list)
    editorial_summary: str | None = None
    address: str | None = None
    source: PlaceSource = "primary"
    enriched: bool = False


class ScoreBreakdown(BaseModel):
    base: float
    fit: float
    vibe: float
    keyword_bonus: float
    chain_penalty: float
    distance_penalty: float
    distance_km: float


class ScoredPlace(BaseModel):
    """A Place annotated with its score against one specific goal."""

    place: Place
    goal: str
    canonical_id: str
    fit_score: float = Field(..., ge=0, le=3)
    vibe_score: float = Field(..., ge=0, le=3)
    composite_score: float
    matched_keywords: list[str] = Field(default_factory=list)
    breakdown: ScoreBreakdown


class RejectedCandidate(BaseModel):
    place_id: str | None = None
    name: str
    reason: str


class GoalBucket(BaseModel):
    """Per-goal collection statistics. Observability only, never persisted."""

    goal: str
    places: list[Place] = Field(default_factory=list)
    raw_found: int = 0
    matched: int = 0
    seeded: int = 0
    rejected: list[RejectedCandidate] = Field(default_factory=list)
    radii_searched: list[int] = Field(default_factory=list)
    used_fallback: bool = False
    from_cache: bool = False


# =============================================================================
# Itinerary
# =============================================================================


class RouteLeg(BaseModel):
    from_ref: str = Field(..., description="'origin' or canonical id of the previous stop")
    to_ref: str = Field(..., description="Canonical id, 'origin' or 'destination'")
    walk_minutes: int
    dwell_minutes: int = 0


class ItineraryStop(BaseModel):
    model_config = ConfigDict(frozen=True)

    place: ScoredPlace
    leg: RouteLeg
    day: int | None = None


class Itinerary(BaseModel):
    model_config = ConfigDict(frozen=True)

    stops: tuple[ItineraryStop, ...] = ()
    closing_leg: RouteLeg | None = None
    total_walk_minutes: int = 0
    total_dwell_minutes: int = 0
    total_minutes: int = 0
    requested_minutes: int = 0


class GenerationStage(str, Enum):
    COLLECTING = "collecting"
    MATCHING_SCORING = "matching_scoring"
    ENRICHING = "enriching"
    DEDUPLICATING = "deduplicating"
    ORDERING = "ordering"
    TRIMMING = "trimming"
    DONE = "done"


# =============================================================================
# Request / Response
# =============================================================================


class RouteRequest(BaseModel):
    """Schema for route generation request."""

    origin_lat_lon: LatLon | None = None
    origin_address: str | None = Field(None, max_length=200)
    goals: list[str] = Field(..., min_length=1, max_length=10)
    requested_minutes: int | None = Field(None, ge=15, le=1440)
    days: int | None = Field(None, ge=1, le=14)
    scenario: Literal["onsite", "planning"] = "onsite"
    destination_policy: Literal["none", "loop", "fixed"] = "none"
    destination: LatLon | None = None
    strict_matching: bool = False
    min_per_goal: int | None = Field(None, ge=1, le=10)

    @field_validator("goals")
    @classmethod
    def validate_goals(cls, v: list[str]) -> list[str]:
        """Strip goal names and drop blanks and repeats."""
        cleaned: list[str] = []
        for goal in v:
            goal = goal.strip()
            if goal and goal not in cleaned:
                cleaned.append(goal)
        if not cleaned:
            raise ValueError("At least one goal is required")
        return cleaned

    @field_validator("origin_address")
    @classmethod
    def validate_origin_address(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def validate_scenario(self) -> "RouteRequest":
        if self.origin_lat_lon is None and not self.origin_address:
            raise ValueError("Either origin_lat_lon or origin_address is required")
        if self.scenario == "onsite" and self.requested_minutes is None:
            raise ValueError("requested_minutes is required for the onsite scenario")
        if self.scenario == "planning" and self.days is None:
            raise ValueError("days is required for the planning scenario")
        if self.destination_policy == "fixed" and self.destination is None:
            raise ValueError("destination is required when destination_policy is 'fixed'")
        return self


class StopOut(BaseModel):
    name: str
    lat: float
    lon: float
    goal: str
    place_id: str | None = None
    address: str | None = None
    rating: float | None = None
    review_count: int = 0
    walk_minutes_from_previous: int
    dwell_minutes: int
    day: int | None = None
    score: float
    score_breakdown: ScoreBreakdown
    description: str | None = None
    opening_hours: list[str] = Field(default_factory=list)
    price_level: int | None = None
    price_text: str | None = Field(None, description="Ticket or meal price hint from price_level")
    photo_references: list[str] = Field(default_factory=list)


class InsufficientGoal(BaseModel):
    goal: str
    have: int
    need: int
    reason: Literal["not_enough_candidates", "time_budget", "stop_cap"] = "not_enough_candidates"


class RouteResponse(BaseModel):
    success: bool = True
    reason: str | None = None
    places: list[StopOut] = Field(default_factory=list)
    closing_leg_minutes: int | None = None
    total_walk_minutes: int = 0
    total_dwell_minutes: int = 0
    total_minutes: int = 0
    requested_minutes: int = 0
    map_url: str | None = Field(None, description="Google Maps walking directions for the route")
    insufficient_goals: list[InsufficientGoal] = Field(default_factory=list)
    goal_stats: list[GoalBucket] = Field(default_factory=list)
