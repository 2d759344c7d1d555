from placement.availability import AvailabilityIndex, EpisodeSlots, RateTable
from placement.candidates import CandidateSpace, generate_candidates, week_key
from placement.planner import plan_placements
from placement.report import PlacementPreview, build_preview, summarize
from placement.types import (
    Candidate,
    ConflictReason,
    FallbackStrategy,
    InvalidRequest,
    MissingRateError,
    Placement,
    PlacementConflict,
    PlacementPlan,
    PlacementRequest,
    SlotAvailability,
)

__all__ = [
	"AvailabilityIndex",
	"EpisodeSlots",
	"RateTable",
	"CandidateSpace",
	"generate_candidates",
	"week_key",
	"plan_placements",
	"PlacementPreview",
	"build_preview",
	"summarize",
	"Candidate",
	"ConflictReason",
	"FallbackStrategy",
	"InvalidRequest",
	"MissingRateError",
	"Placement",
	"PlacementConflict",
	"PlacementPlan",
	"PlacementRequest",
	"SlotAvailability",
]
