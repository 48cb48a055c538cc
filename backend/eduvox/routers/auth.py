"""
Auth Router

Profile registration and maintenance for Firebase-authenticated users.
Sign-in itself happens client side; every request carries a Firebase ID
token which is verified in eduvox.dependencies.auth.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Literal

from eduvox.database import get_db
from eduvox.models.models import UserProfile, AcademicProfile
from eduvox.dependencies.auth import get_token_claims, get_current_user
from eduvox.services.cgpa import convert_cgpa

router = APIRouter(prefix="/api/auth", tags=["auth"])

# Self-service roles; admins are appointed with scripts/setup_admin_user.py
SelfServiceRole = Literal["student", "consultant"]


# ==================== Request/Response Models ====================

class RegisterRequest(BaseModel):
    full_name: str = Field(..., min_length=1)
    role: SelfServiceRole = "student"
    phone: Optional[str] = None
    nationality: Optional[str] = None
    preferred_countries: List[str] = Field(default_factory=list)


class AcademicProfileUpdate(BaseModel):
    cgpa: Optional[float] = Field(None, ge=0, le=10)
    ielts_score: Optional[float] = Field(None, ge=0, le=9)
    toefl_score: Optional[int] = Field(None, ge=0, le=120)
    gre_score: Optional[int] = Field(None, ge=260, le=340)
    budget_max: Optional[float] = Field(None, ge=0)
    preferred_fields: Optional[List[str]] = None
    work_experience_years: Optional[float] = Field(None, ge=0)


class ProfileUpdateRequest(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1)
    role: Optional[SelfServiceRole] = None
    phone: Optional[str] = None
    nationality: Optional[str] = None
    preferred_countries: Optional[List[str]] = None
    academic: Optional[AcademicProfileUpdate] = None


def user_to_dict(user: UserProfile) -> dict:
    academic = user.academic_profile
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
        "phone": user.phone,
        "nationality": user.nationality,
        "preferred_countries": user.preferred_countries or [],
        "academic_profile": {
            "cgpa": academic.cgpa,
            "ielts_score": academic.ielts_score,
            "toefl_score": academic.toefl_score,
            "gre_score": academic.gre_score,
            "budget_max": academic.budget_max,
            "preferred_fields": academic.preferred_fields or [],
            "work_experience_years": academic.work_experience_years,
        } if academic else None,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "last_login": user.last_login.isoformat() if user.last_login else None,
    }


# ==================== Endpoints ====================

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    request: RegisterRequest,
    claims: dict = Depends(get_token_claims),
    db: Session = Depends(get_db)
):
    """Create the profile for the token's Firebase user."""
    uid = claims.get("user_id") or claims.get("sub")
    email = claims.get("email")
    if not email:
        raise HTTPException(status_code=400, detail="Token has no email address")

    if db.query(UserProfile).filter(UserProfile.id == uid).first():
        raise HTTPException(status_code=400, detail="User profile already exists")

    try:
        user = UserProfile(
            id=uid,
            email=email,
            full_name=request.full_name.strip(),
            role=request.role,
            phone=request.phone,
            nationality=request.nationality,
            preferred_countries=request.preferred_countries,
            last_login=datetime.utcnow()
        )
        db.add(user)
        db.commit()
        db.refresh(user)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Failed to create user profile: {str(e)}")

    return {"message": "User profile created successfully", "user": user_to_dict(user)}


@router.get("/profile")
def get_profile(current_user: UserProfile = Depends(get_current_user)):
    return {"user": user_to_dict(current_user)}


@router.put("/profile")
def update_profile(
    request: ProfileUpdateRequest,
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update profile fields and, optionally, the academic profile."""
    changes = request.model_dump(exclude_unset=True, exclude={"academic"})
    for field, value in changes.items():
        setattr(current_user, field, value)

    if request.academic is not None:
        academic = current_user.academic_profile
        if academic is None:
            academic = AcademicProfile(user_id=current_user.id)
            db.add(academic)
        for field, value in request.academic.model_dump(exclude_unset=True).items():
            setattr(academic, field, value)
        # Stored on the 10-point scale
        academic.cgpa = convert_cgpa(academic.cgpa)

    try:
        current_user.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(current_user)
    except Exception as e:
        db.rollback()
        raise HTTPException(status_code=500, detail=f"Failed to update profile: {str(e)}")

    return {"message": "Profile updated successfully", "user": user_to_dict(current_user)}


@router.get("/verify")
def verify(claims: dict = Depends(get_token_claims)):
    """Check a token without requiring a registered profile."""
    return {
        "valid": True,
        "user": {
            "uid": claims.get("user_id") or claims.get("sub"),
            "email": claims.get("email"),
            "email_verified": claims.get("email_verified", False),
        }
    }
