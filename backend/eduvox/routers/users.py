from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import math

from eduvox.database import get_db
from eduvox.models.models import UserProfile
from eduvox.dependencies.auth import get_current_user, get_admin_user, verify_user_access
from eduvox.routers.auth import user_to_dict

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: UserProfile = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """List all user profiles. Admin only."""
    query = db.query(UserProfile)
    total = query.count()
    users = query.order_by(UserProfile.created_at.desc()).offset((page - 1) * limit).limit(limit).all()

    return {
        "users": [user_to_dict(u) for u in users],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        }
    }


@router.get("/{user_id}")
def get_user(
    user_id: str,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Get user information by ID.

    SECURITY: Requires authentication. Users can only access their own data.
    Admins can access any user.
    """
    # IDOR protection: verify user has access to this data
    verify_user_access(current_user, user_id)

    user = db.query(UserProfile).filter(UserProfile.id == user_id).first()

    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    return {"user": user_to_dict(user)}
