"""
Subscription Router

API endpoints for plans, feature gating and usage tracking.

All endpoints act on the authenticated user; there is no user_id parameter
to tamper with.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional, Literal

from eduvox.database import get_db
from eduvox.models.models import UserProfile
from eduvox.dependencies.auth import get_current_user
from eduvox.services.subscription import (
    get_subscription_status,
    get_available_plans,
    get_usage_summary,
    check_feature_access,
    upgrade_subscription,
    cancel_subscription,
)


router = APIRouter(prefix="/api/subscription", tags=["subscription"])


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class UpgradeRequest(BaseModel):
    plan: Literal["premium", "pro"]
    payment_reference: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class FeatureCheckRequest(BaseModel):
    feature: str


# =============================================================================
# SUBSCRIPTION STATUS ENDPOINTS
# =============================================================================

@router.get("/plans")
def get_plans():
    """
    Get list of available subscription plans.

    Returns:
        List of plans with INR pricing, limits and features.
    """
    return get_available_plans()


@router.get("/status")
def get_status(
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Current plan, expiry, limits and this month's usage.
    """
    try:
        return get_subscription_status(db, current_user.id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching subscription status: {str(e)}")


@router.get("/usage")
def get_usage(
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return get_usage_summary(db, current_user.id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error fetching usage: {str(e)}")


@router.post("/check")
def check_feature(
    request: FeatureCheckRequest,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Whether the user may use a feature right now, with an upgrade prompt if not."""
    try:
        return check_feature_access(db, current_user.id, request.feature)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# =============================================================================
# SUBSCRIPTION MANAGEMENT ENDPOINTS
# =============================================================================

@router.post("/upgrade")
def upgrade(
    request: UpgradeRequest,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Move the user to a paid plan for 30 days.

    Note: payment capture happens in the payment provider; this records the
    confirmed payment reference.
    """
    try:
        upgrade_subscription(db, current_user.id, request.plan, request.payment_reference)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error upgrading subscription: {str(e)}")

    return {
        "success": True,
        "message": f"Successfully upgraded to {request.plan}",
        "subscription": get_subscription_status(db, current_user.id)
    }


@router.post("/cancel")
def cancel(
    request: CancelRequest,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Cancel at period end."""
    try:
        cancel_subscription(db, current_user.id, request.reason)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": True,
        "message": "Subscription cancelled. Access continues until the end of the billing period.",
        "subscription": get_subscription_status(db, current_user.id)
    }
