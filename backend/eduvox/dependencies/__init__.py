"""
FastAPI Dependencies for EduVox
"""

from eduvox.dependencies.auth import (
    get_token_claims,
    get_current_user,
    get_current_user_optional,
    get_admin_user,
    verify_user_access,
    verify_firebase_token,
)
from eduvox.dependencies.services import (
    get_pathway_generator,
    get_pathway_resolver,
    get_currency_service,
    get_places_client,
)

__all__ = [
    "get_token_claims",
    "get_current_user",
    "get_current_user_optional",
    "get_admin_user",
    "verify_user_access",
    "verify_firebase_token",
    "get_pathway_generator",
    "get_pathway_resolver",
    "get_currency_service",
    "get_places_client",
]
