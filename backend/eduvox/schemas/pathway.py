"""
Pathway Schemas for EduVox

Pydantic models for UniGuidePro study abroad pathways.

A resolved pathway is one of four variants sharing a common base:
- StaticPathway: built from the hard-coded country tables
- AIGeneratedPathway: produced by the generative model
- AdaptedPathway: a stored template relabelled for a different profile
- LimitedPathway: the reduced view shown to free plan users

The ``kind`` field is the discriminator.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Literal, Union, Annotated

from pydantic import BaseModel, Field


# =============================================================================
# ENUMS & CONSTANTS
# =============================================================================

class PathwayKind(str, Enum):
    STATIC = "static"
    AI_GENERATED = "ai_generated"
    ADAPTED = "adapted"
    LIMITED = "limited"


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


PathwaySource = Literal["cache", "similar", "ai", "static"]

DEFAULT_NATIONALITY = "Indian"


class BudgetRange(BaseModel):
    name: str
    min: int
    max: int


BUDGET_RANGES: List[BudgetRange] = [
    BudgetRange(name="Low", min=10000, max=25000),
    BudgetRange(name="Medium", min=25000, max=50000),
    BudgetRange(name="High", min=50000, max=100000),
    BudgetRange(name="Premium", min=100000, max=200000),
]


def get_budget_range(name: str) -> BudgetRange:
    """Look up a budget bucket by name (case-insensitive)."""
    for budget_range in BUDGET_RANGES:
        if budget_range.name.lower() == name.lower():
            return budget_range
    raise ValueError(f"Unknown budget range: {name}")


def get_budget_range_from_amount(amount: Optional[float]) -> BudgetRange:
    """
    Map a yearly budget in USD to its bucket.

    Amounts outside every bucket (including None) map to "High".
    Bucket edges are shared, so an amount equal to an edge lands in the lower one.
    """
    if amount is not None:
        for budget_range in BUDGET_RANGES:
            if budget_range.min <= amount <= budget_range.max:
                return budget_range
    return BUDGET_RANGES[2]


# =============================================================================
# PROFILE
# =============================================================================

class PathwayProfile(BaseModel):
    """The five dimensions a pathway template is keyed on."""
    country: str
    course: str
    academic_level: str
    budget_range: str = "High"
    nationality: str = DEFAULT_NATIONALITY

    @property
    def key(self) -> str:
        return build_pathway_key(self)


def build_pathway_key(profile: PathwayProfile) -> str:
    raw = "_".join([
        profile.country,
        profile.course,
        profile.academic_level,
        profile.budget_range,
        profile.nationality,
    ]).lower()
    return re.sub(r"[^a-z0-9_]", "_", raw)


class PathwayRequest(BaseModel):
    """Everything a user submits to UniGuidePro."""
    country: str = Field(..., min_length=1)
    course: str = Field(..., min_length=1)
    academic_level: str = Field(..., min_length=1)
    budget: Optional[float] = Field(None, ge=0, description="Yearly budget in USD")
    budget_range: Optional[str] = None
    nationality: str = DEFAULT_NATIONALITY

    # Personalisation inputs
    current_gpa: Optional[float] = Field(None, ge=0, le=10)
    english_proficiency: Optional[str] = None  # "beginner", "intermediate", "advanced"
    work_experience: Optional[bool] = None
    target_company: Optional[str] = None
    notes: Optional[str] = None

    def to_profile(self) -> PathwayProfile:
        if self.budget_range:
            bucket = get_budget_range(self.budget_range)
        else:
            bucket = get_budget_range_from_amount(self.budget)
        return PathwayProfile(
            country=self.country,
            course=self.course,
            academic_level=self.academic_level,
            budget_range=bucket.name,
            nationality=self.nationality or DEFAULT_NATIONALITY,
        )


# =============================================================================
# STEPS & PATHWAY VARIANTS
# =============================================================================

class PathwayStep(BaseModel):
    step: int
    title: str
    description: str = ""
    duration: Optional[str] = None
    tasks: List[str] = Field(default_factory=list)
    priority: Optional[str] = None
    status: StepStatus = StepStatus.PENDING
    notes: str = ""
    completed_at: Optional[datetime] = None
    is_limited: bool = False


class BudgetAlignment(BaseModel):
    status: Literal["excellent", "good", "challenging"]
    message: str


class PathwayBase(BaseModel):
    key: str
    profile: PathwayProfile
    source: PathwaySource
    steps: List[PathwayStep]
    timeline: Any = None
    costs: Dict[str, Any] = Field(default_factory=dict)
    universities: List[Dict[str, Any]] = Field(default_factory=list)
    scholarships: List[Dict[str, Any]] = Field(default_factory=list)
    visa_info: Dict[str, Any] = Field(default_factory=dict)
    details: Dict[str, Any] = Field(default_factory=dict)

    # Personalisation, filled in per request
    budget_alignment: Optional[BudgetAlignment] = None
    personalized_recommendations: List[str] = Field(default_factory=list)
    user_notes: Optional[str] = None
    personalized_at: Optional[datetime] = None


class StaticPathway(PathwayBase):
    kind: Literal[PathwayKind.STATIC] = PathwayKind.STATIC


class AIGeneratedPathway(PathwayBase):
    kind: Literal[PathwayKind.AI_GENERATED] = PathwayKind.AI_GENERATED
    ai_model: Optional[str] = None


class AdaptedPathway(PathwayBase):
    kind: Literal[PathwayKind.ADAPTED] = PathwayKind.ADAPTED
    is_adapted: bool = True
    adapted_from: PathwayProfile
    base_kind: PathwayKind


class LimitedPathway(PathwayBase):
    kind: Literal[PathwayKind.LIMITED] = PathwayKind.LIMITED
    is_limited: bool = True
    full_kind: PathwayKind
    hidden_steps: int = 0
    upgrade_message: str


ResolvedPathway = Annotated[
    Union[StaticPathway, AIGeneratedPathway, AdaptedPathway, LimitedPathway],
    Field(discriminator="kind"),
]


# =============================================================================
# DETAILED ANALYSIS
# =============================================================================

class PathwayAnalysis(BaseModel):
    """In-depth AI review of one student's chances and plan for a profile."""
    key: str
    profile: PathwayProfile
    summary: str
    strengths: List[str] = Field(default_factory=list)
    challenges: List[str] = Field(default_factory=list)
    steps: List[PathwayStep] = Field(default_factory=list)
    timeline: Any = None
    universities: List[Dict[str, Any]] = Field(default_factory=list)
    tips: List[str] = Field(default_factory=list)
    alternatives: List[Dict[str, Any]] = Field(default_factory=list)
    ai_model: Optional[str] = None
    generated_at: datetime = Field(default_factory=datetime.utcnow)
