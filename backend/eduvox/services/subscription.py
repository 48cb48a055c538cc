"""
Subscription Service

Plan lookup, monthly usage counters and feature gating.

Gating is a plain comparison of the plan's limit table against the current
month's counter. Counters live in one MonthlyUsage row per user per
calendar month, so a new month starts from zero without any reset job.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Any, Optional, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from eduvox.models.models import Subscription, MonthlyUsage, SubscriptionTransaction

logger = logging.getLogger(__name__)

UNLIMITED = -1
SUBSCRIPTION_PERIOD_DAYS = 30

PLAN_LIMITS: Dict[str, Dict[str, Any]] = {
    "free": {
        "name": "Free",
        "price": 0,
        "currency": "INR",
        "duration": "lifetime",
        "limits": {
            "pathway_generation": 3,
            "university_comparison": 3,
            "pathway_history": 1,
        },
        "features": {
            "full_pathway": False,
            "my_study_path": False,
            "pathway_analysis": False,
            "advanced_filters": False,
            "priority_support": False,
            "analytics_reports": False,
        },
    },
    "premium": {
        "name": "Premium",
        "price": 999,
        "currency": "INR",
        "duration": "monthly",
        "limits": {
            "pathway_generation": UNLIMITED,
            "university_comparison": 10,
            "pathway_history": 10,
        },
        "features": {
            "full_pathway": True,
            "my_study_path": True,
            "pathway_analysis": True,
            "advanced_filters": True,
            "priority_support": False,
            "analytics_reports": False,
        },
    },
    "pro": {
        "name": "Professional",
        "price": 1999,
        "currency": "INR",
        "duration": "monthly",
        "limits": {
            "pathway_generation": UNLIMITED,
            "university_comparison": UNLIMITED,
            "pathway_history": UNLIMITED,
        },
        "features": {
            "full_pathway": True,
            "my_study_path": True,
            "pathway_analysis": True,
            "advanced_filters": True,
            "priority_support": True,
            "analytics_reports": True,
        },
    },
}

# Metered features and the MonthlyUsage column counting them
USAGE_COLUMNS = {
    "pathway_generation": "pathway_generations",
    "university_comparison": "university_comparisons",
}

FEATURE_LABELS = {
    "pathway_generation": "UniGuidePro pathway",
    "university_comparison": "university comparison",
    "my_study_path": "My Study Path",
    "pathway_analysis": "Detailed pathway analysis",
    "advanced_filters": "Advanced filters",
}


def current_period(now: Optional[datetime] = None) -> str:
    return (now or datetime.utcnow()).strftime("%Y-%m")


def get_or_create_subscription(db: Session, user_id: str) -> Subscription:
    subscription = db.query(Subscription).filter(Subscription.user_id == user_id).first()
    if subscription is None:
        subscription = Subscription(user_id=user_id, plan="free", status="active")
        db.add(subscription)
        db.commit()
        db.refresh(subscription)
    return subscription


def get_user_plan(db: Session, user_id: str, now: Optional[datetime] = None) -> str:
    """Active plan id; paid plans past their expiry are downgraded to free."""
    subscription = get_or_create_subscription(db, user_id)
    now = now or datetime.utcnow()

    if subscription.plan != "free" and subscription.expires_at and subscription.expires_at < now:
        logger.info("Subscription for %s expired, downgrading to free", user_id)
        downgrade_to_free(db, subscription, status="expired")

    return subscription.plan


def downgrade_to_free(db: Session, subscription: Subscription, status: str = "active") -> Subscription:
    subscription.plan = "free"
    subscription.status = status
    subscription.expires_at = None
    subscription.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(subscription)
    return subscription


def get_or_create_monthly_usage(db: Session, user_id: str, now: Optional[datetime] = None) -> MonthlyUsage:
    period = current_period(now)
    usage = db.query(MonthlyUsage).filter(
        MonthlyUsage.user_id == user_id,
        MonthlyUsage.period == period,
    ).first()
    if usage is None:
        usage = MonthlyUsage(
            user_id=user_id,
            period=period,
            pathway_generations=0,
            university_comparisons=0,
        )
        db.add(usage)
        db.commit()
        db.refresh(usage)
    return usage


# =============================================================================
# GATING
# =============================================================================

def _upgrade_message(feature: str, limit: int) -> str:
    label = FEATURE_LABELS.get(feature, feature.replace("_", " "))
    if limit == 0:
        return f"{label} is not available on your current plan. Upgrade to Premium or Pro."
    return f"You've used all {limit} {label} uses for this month. Upgrade to Premium or Pro for more."


def check_feature_access(db: Session, user_id: str, feature: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Decide whether the user may use a feature right now.

    Returns {allowed, reason, limit, used, remaining, upgrade_message};
    ``limit`` and ``remaining`` are None for unlimited features.
    """
    plan_id = get_user_plan(db, user_id, now)
    plan = PLAN_LIMITS[plan_id]

    if feature in plan["features"]:
        allowed = plan["features"][feature]
        return {
            "allowed": allowed,
            "plan": plan_id,
            "reason": None if allowed else "not_in_plan",
            "limit": None,
            "used": None,
            "remaining": None,
            "upgrade_message": None if allowed else _upgrade_message(feature, 0),
        }

    if feature not in USAGE_COLUMNS:
        raise ValueError(f"Unknown feature: {feature}")

    limit = plan["limits"][feature]
    usage = get_or_create_monthly_usage(db, user_id, now)
    used = getattr(usage, USAGE_COLUMNS[feature]) or 0

    if limit == UNLIMITED:
        return {
            "allowed": True, "plan": plan_id, "reason": None,
            "limit": None, "used": used, "remaining": None, "upgrade_message": None,
        }

    allowed = used < limit
    return {
        "allowed": allowed,
        "plan": plan_id,
        "reason": None if allowed else ("not_in_plan" if limit == 0 else "limit_reached"),
        "limit": limit,
        "used": used,
        "remaining": max(limit - used, 0),
        "upgrade_message": None if allowed else _upgrade_message(feature, limit),
    }


def record_usage(db: Session, user_id: str, feature: str, now: Optional[datetime] = None) -> MonthlyUsage:
    if feature not in USAGE_COLUMNS:
        raise ValueError(f"Unknown feature: {feature}")
    usage = get_or_create_monthly_usage(db, user_id, now)
    column = USAGE_COLUMNS[feature]
    setattr(usage, column, (getattr(usage, column) or 0) + 1)
    db.commit()
    db.refresh(usage)
    return usage


def get_history_limit(db: Session, user_id: str) -> Optional[int]:
    """How many saved pathways the user may see; None means all."""
    limit = PLAN_LIMITS[get_user_plan(db, user_id)]["limits"]["pathway_history"]
    return None if limit == UNLIMITED else limit


# =============================================================================
# STATUS AND PLAN CHANGES
# =============================================================================

def get_available_plans() -> List[Dict[str, Any]]:
    return [{"id": plan_id, **plan} for plan_id, plan in PLAN_LIMITS.items()]


def get_usage_summary(db: Session, user_id: str) -> Dict[str, Any]:
    usage = get_or_create_monthly_usage(db, user_id)
    limits = PLAN_LIMITS[get_user_plan(db, user_id)]["limits"]
    return {
        "period": usage.period,
        "usage": {
            feature: {
                "used": getattr(usage, column) or 0,
                "limit": None if limits[feature] == UNLIMITED else limits[feature],
            }
            for feature, column in USAGE_COLUMNS.items()
        },
    }


def get_subscription_status(db: Session, user_id: str) -> Dict[str, Any]:
    plan_id = get_user_plan(db, user_id)
    subscription = get_or_create_subscription(db, user_id)
    return {
        "plan": plan_id,
        "plan_name": PLAN_LIMITS[plan_id]["name"],
        "status": subscription.status,
        "started_at": subscription.started_at.isoformat() if subscription.started_at else None,
        "expires_at": subscription.expires_at.isoformat() if subscription.expires_at else None,
        "cancelled_at": subscription.cancelled_at.isoformat() if subscription.cancelled_at else None,
        "limits": PLAN_LIMITS[plan_id]["limits"],
        "features": PLAN_LIMITS[plan_id]["features"],
        **get_usage_summary(db, user_id),
    }


def upgrade_subscription(
    db: Session,
    user_id: str,
    plan_id: str,
    payment_reference: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Subscription:
    """
    Move the user to a paid plan for one billing period and record the
    transaction. Payment capture happens outside this service.
    """
    if plan_id not in PLAN_LIMITS or plan_id == "free":
        raise ValueError(f"Invalid plan: {plan_id}")

    now = now or datetime.utcnow()
    subscription = get_or_create_subscription(db, user_id)
    subscription.plan = plan_id
    subscription.status = "active"
    subscription.started_at = now
    subscription.expires_at = now + timedelta(days=SUBSCRIPTION_PERIOD_DAYS)
    subscription.cancelled_at = None
    subscription.cancel_reason = None

    plan = PLAN_LIMITS[plan_id]
    db.add(SubscriptionTransaction(
        user_id=user_id,
        plan=plan_id,
        amount=plan["price"],
        currency=plan["currency"],
        payment_reference=payment_reference,
        status="completed",
    ))
    db.commit()
    db.refresh(subscription)
    logger.info("User %s upgraded to %s until %s", user_id, plan_id, subscription.expires_at)
    return subscription


def cancel_subscription(db: Session, user_id: str, reason: Optional[str] = None) -> Subscription:
    """
    Cancel a paid plan. Access continues until the current period expires,
    after which the plan downgrades to free.
    """
    subscription = get_or_create_subscription(db, user_id)
    if subscription.plan == "free":
        raise ValueError("No paid subscription to cancel")

    subscription.status = "cancelled"
    subscription.cancelled_at = datetime.utcnow()
    subscription.cancel_reason = reason
    db.commit()
    db.refresh(subscription)
    return subscription


def get_subscription_analytics(db: Session) -> Dict[str, Any]:
    by_plan = dict(db.query(Subscription.plan, func.count(Subscription.id)).group_by(Subscription.plan).all())
    by_status = dict(db.query(Subscription.status, func.count(Subscription.id)).group_by(Subscription.status).all())
    revenue = db.query(func.coalesce(func.sum(SubscriptionTransaction.amount), 0)).filter(
        SubscriptionTransaction.status == "completed"
    ).scalar()
    period = current_period()
    generations = db.query(func.coalesce(func.sum(MonthlyUsage.pathway_generations), 0)).filter(
        MonthlyUsage.period == period
    ).scalar()

    return {
        "total_subscriptions": sum(by_plan.values()),
        "by_plan": {plan_id: by_plan.get(plan_id, 0) for plan_id in PLAN_LIMITS},
        "by_status": by_status,
        "total_revenue": float(revenue or 0),
        "currency": "INR",
        "current_period": period,
        "pathway_generations_this_period": int(generations or 0),
    }
