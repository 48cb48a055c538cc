# Services module

# Pathway resolution and generation
from eduvox.services.pathway_resolver import (
    PathwayResolver,
    personalize_pathway,
    limit_pathway_for_free_tier,
    save_template,
    template_to_pathway,
)
from eduvox.services.pathway_generator import (
    PathwayGenerator,
    PathwayGenerationError,
)
from eduvox.services.static_pathway import build_static_pathway

# Currency
from eduvox.services.currency import CurrencyService, convert_with_rates, format_currency

# Universities
from eduvox.services.cgpa import convert_cgpa, convert_database_cgpa
from eduvox.services.university_scraper import (
    is_duplicate,
    similarity,
    merge_duplicate_universities,
)

# Subscriptions
from eduvox.services.subscription import (
    PLAN_LIMITS,
    check_feature_access,
    record_usage,
    get_user_plan,
)

__all__ = [
    "PathwayResolver",
    "personalize_pathway",
    "limit_pathway_for_free_tier",
    "save_template",
    "template_to_pathway",
    "PathwayGenerator",
    "PathwayGenerationError",
    "build_static_pathway",
    "CurrencyService",
    "convert_with_rates",
    "format_currency",
    "convert_cgpa",
    "convert_database_cgpa",
    "is_duplicate",
    "similarity",
    "merge_duplicate_universities",
    "PLAN_LIMITS",
    "check_feature_access",
    "record_usage",
    "get_user_plan",
]
