"""
Pathway Resolution Service

Turns a UniGuidePro request into a pathway using the cheapest source first:

    1. exact template key      -> source "cache"
    2. similar stored profile  -> source "similar" (AdaptedPathway)
    3. AI generation           -> source "ai"
    4. static country tables   -> source "static"

Each stage is guarded on its own; a failure is logged and the next stage
runs. AI and static results are written back to the ``pathways`` table so the
next identical request is answered by stage 1. Free plan users get the
reduced LimitedPathway view of whatever was resolved.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple, Callable

from sqlalchemy.orm import Session

from eduvox.models.models import PathwayTemplate
from eduvox.schemas.pathway import (
    AdaptedPathway,
    AIGeneratedPathway,
    BudgetAlignment,
    LimitedPathway,
    PathwayBase,
    PathwayKind,
    PathwayProfile,
    PathwayRequest,
    PathwayStep,
    StaticPathway,
)
from eduvox.services.currency import convert_with_rates, DEFAULT_RATES
from eduvox.services.pathway_generator import PathwayGenerator
from eduvox.services.static_pathway import build_static_pathway

logger = logging.getLogger(__name__)

TEMPLATE_VERSION = "2.0"

# Columns relaxed one at a time when no exact template exists
SIMILARITY_RELAXATIONS: List[Tuple[str, ...]] = [
    ("country", "course"),
    ("country", "academic_level"),
    ("course", "academic_level"),
    ("country",),
]

# Free plan view
FREE_STEP_LIMIT = 3
FREE_TASK_LIMIT = 2
FREE_UNIVERSITY_LIMIT = 3
FREE_SCHOLARSHIP_LIMIT = 1
MASKED_VALUE = "Upgrade to view"
UPGRADE_MESSAGE = (
    "You are viewing a preview of this pathway. "
    "Upgrade to Premium or Pro to unlock every step, task and cost detail."
)

# Fields stored in PathwayTemplate.data
PLAN_FIELDS = ("steps", "timeline", "costs", "universities", "scholarships", "visa_info", "details")


# =============================================================================
# TEMPLATE <-> PATHWAY
# =============================================================================

def template_profile(template: PathwayTemplate) -> PathwayProfile:
    return PathwayProfile(
        country=template.country,
        course=template.course,
        academic_level=template.academic_level,
        budget_range=template.budget_range,
        nationality=template.nationality,
    )


def pathway_to_template_data(pathway: PathwayBase) -> Dict[str, Any]:
    return pathway.model_dump(mode="json", include=set(PLAN_FIELDS))


def template_to_pathway(template: PathwayTemplate, source: str = "cache") -> PathwayBase:
    """Rebuild the stored variant (static or AI) from a template row."""
    data = dict(template.data or {})
    fields = {name: data[name] for name in PLAN_FIELDS if name in data}
    fields.setdefault("steps", [])

    if template.kind == PathwayKind.STATIC.value:
        return StaticPathway(key=template.id, profile=template_profile(template), source=source, **fields)
    return AIGeneratedPathway(key=template.id, profile=template_profile(template), source=source, **fields)


def save_template(db: Session, pathway: PathwayBase) -> PathwayTemplate:
    """Insert or overwrite the template stored under the pathway's key."""
    template = db.query(PathwayTemplate).filter(PathwayTemplate.id == pathway.key).first()
    if template is None:
        template = PathwayTemplate(id=pathway.key)
        db.add(template)

    template.country = pathway.profile.country
    template.course = pathway.profile.course
    template.academic_level = pathway.profile.academic_level
    template.budget_range = pathway.profile.budget_range
    template.nationality = pathway.profile.nationality
    template.kind = pathway.kind.value
    template.data = pathway_to_template_data(pathway)
    template.status = "active"
    template.version = TEMPLATE_VERSION
    template.updated_at = datetime.utcnow()

    db.commit()
    db.refresh(template)
    return template



def update_template(db: Session, template: PathwayTemplate, changes: Dict[str, Any]) -> PathwayTemplate:
    """
    Apply an admin edit to a stored template's plan fields.

    The profile and key never change. The edited plan is validated as the
    template's own variant before it is written; a template edited out of
    ``invalid`` status becomes active again.
    """
    unknown = set(changes) - set(PLAN_FIELDS)
    if unknown:
        raise ValueError(f"Not editable: {', '.join(sorted(unknown))}")
    if "steps" in changes and not changes["steps"]:
        raise ValueError("A pathway needs at least one step")

    current = template_to_pathway(template)
    edited = type(current).model_validate({**current.model_dump(), **changes})
    return save_template(db, edited)

# =============================================================================
# PERSONALISATION
# =============================================================================

def assess_budget_alignment(total_costs: Dict[str, Any], budget_usd: float) -> Optional[BudgetAlignment]:
    """Compare a yearly USD budget with the pathway's total cost range."""
    try:
        currency = total_costs.get("currency", "USD")
        min_cost = convert_with_rates(float(total_costs["min"]), currency, "USD", DEFAULT_RATES)
        max_cost = convert_with_rates(float(total_costs["max"]), currency, "USD", DEFAULT_RATES)
    except (KeyError, TypeError, ValueError):
        # AI cost blocks are free text and cannot be compared
        return None

    if budget_usd >= max_cost:
        return BudgetAlignment(status="excellent", message="Budget covers all expenses comfortably")
    if budget_usd >= min_cost:
        return BudgetAlignment(
            status="good",
            message="Budget covers basic expenses, consider scholarships for premium options",
        )
    return BudgetAlignment(
        status="challenging",
        message="Budget below minimum requirements, scholarships/financial aid essential",
    )


def _gpa_is_low(gpa: float) -> bool:
    # GPAs above 4 are on the 10-point scale
    return gpa < 3.0 if gpa <= 4.0 else gpa < 7.5


def personalize_pathway(pathway: PathwayBase, request: PathwayRequest, now: Optional[datetime] = None) -> PathwayBase:
    """Return a copy of the pathway tailored to the requester."""
    personalized = pathway.model_copy(deep=True)

    if request.current_gpa is not None and _gpa_is_low(request.current_gpa):
        timeline = personalized.timeline
        if isinstance(timeline, dict) and timeline.get("phases"):
            timeline["phases"][0]["duration"] = "15-20 months"
            timeline["total_duration"] = "20-26 months"

    recommendations = []
    if request.current_gpa is not None:
        recommendations.append(
            f"Based on your GPA of {request.current_gpa}, focus on improving academic performance"
        )
    if request.english_proficiency:
        intensity = "minimal" if request.english_proficiency == "advanced" else "intensive"
        recommendations.append(
            f"Your {request.english_proficiency} English level suggests {intensity} language preparation"
        )
    if request.work_experience is not None:
        verb = "highlighting" if request.work_experience else "gaining"
        recommendations.append(f"Consider {verb} relevant work experience")
    personalized.personalized_recommendations = recommendations

    if request.budget is not None and isinstance(personalized.costs.get("total"), dict):
        personalized.budget_alignment = assess_budget_alignment(personalized.costs["total"], request.budget)

    personalized.user_notes = request.notes
    personalized.personalized_at = now or datetime.utcnow()
    return personalized


# =============================================================================
# FREE PLAN VIEW
# =============================================================================

def _mask_costs(costs: Any) -> Any:
    if isinstance(costs, dict):
        return {name: _mask_costs(value) for name, value in costs.items() if name != "currency"}
    return MASKED_VALUE


def _limit_timeline_entries(entries: List[Any]) -> List[Any]:
    limited = []
    for entry in entries[:FREE_STEP_LIMIT]:
        if isinstance(entry, dict) and isinstance(entry.get("tasks"), list):
            entry = {**entry, "tasks": entry["tasks"][:FREE_TASK_LIMIT]}
        limited.append(entry)
    return limited


def _limit_timeline(timeline: Any) -> Any:
    """Cut a month list or a phase table down to the visible steps."""
    if isinstance(timeline, list):
        return _limit_timeline_entries(timeline)
    if isinstance(timeline, dict) and isinstance(timeline.get("phases"), list):
        return {**timeline, "phases": _limit_timeline_entries(timeline["phases"])}
    return timeline


def limit_pathway_for_free_tier(pathway: PathwayBase) -> LimitedPathway:
    """Strip a full pathway down to the preview free users see."""
    if isinstance(pathway, LimitedPathway):
        return pathway

    limited_steps = [
        PathwayStep(**{
            **step.model_dump(),
            "tasks": step.tasks[:FREE_TASK_LIMIT],
            "is_limited": True,
        })
        for step in pathway.steps[:FREE_STEP_LIMIT]
    ]

    base = pathway.model_dump(
        exclude={"kind", "steps", "timeline", "costs", "universities", "scholarships", "details"}
    )
    for variant_field in ("ai_model", "is_adapted", "adapted_from", "base_kind"):
        base.pop(variant_field, None)

    return LimitedPathway(
        **base,
        steps=limited_steps,
        timeline=_limit_timeline(pathway.timeline),
        costs=_mask_costs(pathway.costs),
        universities=pathway.universities[:FREE_UNIVERSITY_LIMIT],
        scholarships=pathway.scholarships[:FREE_SCHOLARSHIP_LIMIT],
        details={},
        full_kind=pathway.kind,
        hidden_steps=max(0, len(pathway.steps) - FREE_STEP_LIMIT),
        upgrade_message=UPGRADE_MESSAGE,
    )


# =============================================================================
# RESOLVER
# =============================================================================

class PathwayResolver:
    """
    Resolves pathway requests against stored templates, the AI generator
    and the static tables. One instance per request; dependencies are
    passed in rather than looked up globally.
    """

    def __init__(
        self,
        db: Session,
        generator: Optional[PathwayGenerator] = None,
        static_builder: Callable[[PathwayProfile], StaticPathway] = build_static_pathway,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self._generator = generator
        self._static_builder = static_builder
        self._now = now

    @property
    def generator(self) -> PathwayGenerator:
        if self._generator is None:
            self._generator = PathwayGenerator()
        return self._generator

    # -- stages ---------------------------------------------------------------

    def find_exact(self, profile: PathwayProfile) -> Optional[PathwayBase]:
        template = self.db.query(PathwayTemplate).filter(
            PathwayTemplate.id == profile.key,
            PathwayTemplate.status == "active",
        ).first()
        return template_to_pathway(template, source="cache") if template else None

    def find_similar(self, profile: PathwayProfile) -> Optional[AdaptedPathway]:
        for columns in SIMILARITY_RELAXATIONS:
            query = self.db.query(PathwayTemplate).filter(
                PathwayTemplate.status == "active",
                PathwayTemplate.id != profile.key,
            )
            for column in columns:
                query = query.filter(getattr(PathwayTemplate, column) == getattr(profile, column))

            match = query.order_by(PathwayTemplate.created_at.asc()).first()
            if match:
                logger.info("Adapting pathway %s for %s (matched on %s)", match.id, profile.key, "+".join(columns))
                return self.adapt(template_to_pathway(match, source="similar"), profile)
        return None

    @staticmethod
    def adapt(pathway: PathwayBase, profile: PathwayProfile) -> AdaptedPathway:
        fields = pathway.model_dump(exclude={"kind", "key", "profile", "source", "ai_model"})
        return AdaptedPathway(
            **fields,
            key=profile.key,
            profile=profile,
            source="similar",
            adapted_from=pathway.profile,
            base_kind=pathway.kind,
        )

    def generate_with_ai(self, profile: PathwayProfile) -> AIGeneratedPathway:
        pathway = self.generator.generate(profile)
        self._write_through(pathway)
        return pathway

    def build_static(self, profile: PathwayProfile) -> StaticPathway:
        pathway = self._static_builder(profile)
        self._write_through(pathway)
        return pathway

    def _write_through(self, pathway: PathwayBase) -> None:
        try:
            save_template(self.db, pathway)
        except Exception as e:
            # The pathway is still returned; only the cache entry is lost
            self.db.rollback()
            logger.warning("Could not store pathway template %s: %s", pathway.key, e)

    # -- entry point ----------------------------------------------------------

    def resolve_full(self, request: PathwayRequest) -> PathwayBase:
        profile = request.to_profile()

        stages = (
            ("exact", self.find_exact),
            ("similar", self.find_similar),
            ("ai", self.generate_with_ai),
        )
        for name, stage in stages:
            try:
                pathway = stage(profile)
            except Exception as e:
                self.db.rollback()
                logger.warning("Pathway stage '%s' failed for %s: %s", name, profile.key, e)
                continue
            if pathway is not None:
                return personalize_pathway(pathway, request, now=self._now())

        logger.info("Falling back to static pathway for %s", profile.key)
        return personalize_pathway(self.build_static(profile), request, now=self._now())

    def resolve(self, request: PathwayRequest, plan: str = "free") -> PathwayBase:
        """Resolve a request and apply the plan's view."""
        pathway = self.resolve_full(request)
        if plan == "free":
            return limit_pathway_for_free_tier(pathway)
        return pathway
