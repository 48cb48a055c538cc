"""
EduVox Schemas Package

Pydantic models for request/response validation and data structures.
"""

from eduvox.schemas.pathway import (
    # Enums
    PathwayKind,
    StepStatus,

    # Profile
    BudgetRange,
    BUDGET_RANGES,
    PathwayProfile,
    PathwayRequest,
    build_pathway_key,
    get_budget_range,
    get_budget_range_from_amount,

    # Variants
    PathwayStep,
    BudgetAlignment,
    PathwayBase,
    StaticPathway,
    AIGeneratedPathway,
    AdaptedPathway,
    LimitedPathway,
    ResolvedPathway,
)

__all__ = [
    "PathwayKind",
    "StepStatus",
    "BudgetRange",
    "BUDGET_RANGES",
    "PathwayProfile",
    "PathwayRequest",
    "build_pathway_key",
    "get_budget_range",
    "get_budget_range_from_amount",
    "PathwayStep",
    "BudgetAlignment",
    "PathwayBase",
    "StaticPathway",
    "AIGeneratedPathway",
    "AdaptedPathway",
    "LimitedPathway",
    "ResolvedPathway",
]
