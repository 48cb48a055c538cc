from sqlalchemy import Column, String, Integer, Float, Boolean, DateTime, JSON, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from eduvox.database import Base

def generate_uuid():
    return str(uuid.uuid4())


class UserProfile(Base):
    """Application user. The primary key is the Firebase uid."""
    __tablename__ = "user_profiles"

    id = Column(String, primary_key=True)
    email = Column(String, unique=True, nullable=False, index=True)
    full_name = Column(String, nullable=True)
    role = Column(String, nullable=False, default="student", index=True)  # "student", "admin"

    # Profile
    phone = Column(String, nullable=True)
    nationality = Column(String, nullable=True)
    preferred_countries = Column(JSON, nullable=True)  # ["Canada", "Germany"]

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow)
    last_login = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    academic_profile = relationship("AcademicProfile", back_populates="user", uselist=False)
    saved_universities = relationship("SavedUniversity", back_populates="user")
    pathways = relationship("UserPathway", back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class AcademicProfile(Base):
    __tablename__ = "academic_profiles"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("user_profiles.id"), nullable=False, unique=True, index=True)
    cgpa = Column(Float, nullable=True)  # 10-point scale after normalisation
    ielts_score = Column(Float, nullable=True)
    toefl_score = Column(Integer, nullable=True)
    gre_score = Column(Integer, nullable=True)
    budget_max = Column(Float, nullable=True)  # USD per year
    preferred_fields = Column(JSON, nullable=True)
    work_experience_years = Column(Float, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("UserProfile", back_populates="academic_profile")


# ============================================================================
# UNIVERSITY MODELS
# ============================================================================

class University(Base):
    __tablename__ = "universities"

    id = Column(String, primary_key=True, default=generate_uuid)
    name = Column(String, nullable=False, index=True)
    country = Column(String, nullable=False, index=True)
    city = Column(String, nullable=True, index=True)
    state_province = Column(String, nullable=True)
    type = Column(String, nullable=True)  # "public", "private"

    # Rankings
    ranking_overall = Column(Integer, nullable=True, index=True)
    ranking_country = Column(Integer, nullable=True)

    # Costs (per year)
    tuition_min = Column(Float, nullable=True, index=True)
    tuition_max = Column(Float, nullable=True)
    currency = Column(String, nullable=True, default="USD")

    # Admission thresholds
    cgpa_requirement = Column(Float, nullable=True)  # 10-point scale
    ielts_requirement = Column(Float, nullable=True)
    toefl_requirement = Column(Integer, nullable=True)
    gre_requirement = Column(Integer, nullable=True)

    programs_offered = Column(JSON, nullable=True)  # List of program names
    description = Column(Text, nullable=True)
    website_url = Column(String, nullable=True)
    logo_url = Column(String, nullable=True)
    application_deadline = Column(String, nullable=True)
    acceptance_rate = Column(Float, nullable=True)
    student_population = Column(Integer, nullable=True)
    international_student_percentage = Column(Float, nullable=True)

    # Google Places data
    place_id = Column(String, nullable=True, index=True)
    rating = Column(Float, nullable=True)
    reviews_count = Column(Integer, nullable=True)
    phone_number = Column(String, nullable=True)
    formatted_address = Column(String, nullable=True)
    photos = Column(JSON, nullable=True)
    google_data = Column(JSON, nullable=True)

    # Provenance and verification
    admin_approved = Column(Boolean, default=False)
    ai_generated = Column(Boolean, default=False)
    is_verified = Column(Boolean, nullable=True, index=True)  # NULL means never reviewed
    verification_status = Column(String, nullable=True)  # "pending", "approved", "rejected"
    verification_method = Column(String, nullable=True)  # "admin", "migration", "scraper"
    verification_date = Column(DateTime, nullable=True)
    scraped_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    saved_by = relationship("SavedUniversity", back_populates="university", cascade="all, delete-orphan")


class SavedUniversity(Base):
    __tablename__ = "saved_universities"
    __table_args__ = (UniqueConstraint("user_id", "university_id", name="uq_saved_user_university"),)

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("user_profiles.id"), nullable=False, index=True)
    university_id = Column(String, ForeignKey("universities.id"), nullable=False, index=True)
    notes = Column(Text, nullable=True)
    saved_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("UserProfile", back_populates="saved_universities")
    university = relationship("University", back_populates="saved_by")


# ============================================================================
# PATHWAY MODELS
# ============================================================================

class PathwayTemplate(Base):
    """
    Profile-keyed study abroad plan shared between users.
    Written by the AI generator, the static fallback, or the bulk scraper.
    """
    __tablename__ = "pathways"

    id = Column(String, primary_key=True)  # Deterministic profile key
    country = Column(String, nullable=False, index=True)
    course = Column(String, nullable=False, index=True)
    academic_level = Column(String, nullable=False, index=True)
    budget_range = Column(String, nullable=False)  # "Low", "Medium", "High", "Premium"
    nationality = Column(String, nullable=False, default="Indian")

    kind = Column(String, nullable=False, default="ai_generated")  # "static", "ai_generated"
    data = Column(JSON, nullable=False)  # Full plan payload
    status = Column(String, nullable=False, default="active")
    version = Column(String, nullable=False, default="1.0")

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class UserPathway(Base):
    """A user's working copy of a pathway with per-step progress. One per (user, country)."""
    __tablename__ = "user_study_abroad_pathways"
    __table_args__ = (UniqueConstraint("user_id", "country", name="uq_user_pathway_country"),)

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("user_profiles.id"), nullable=False, index=True)
    template_id = Column(String, nullable=True, index=True)
    country = Column(String, nullable=False)
    course = Column(String, nullable=True)
    academic_level = Column(String, nullable=True)
    kind = Column(String, nullable=False, default="static")
    is_adapted = Column(Boolean, default=False)

    steps = Column(JSON, nullable=False)  # [{"step": 1, "title": ..., "status": "pending", ...}]
    data = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("UserProfile", back_populates="pathways")


# ============================================================================
# MONETIZATION & SUBSCRIPTION MODELS
# ============================================================================

class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("user_profiles.id"), nullable=False, unique=True, index=True)

    # Plan: "free", "premium", "pro"
    plan = Column(String, nullable=False, default="free", index=True)
    status = Column(String, nullable=False, default="active")  # "active", "cancelled", "expired"

    started_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=True)  # Null for free plan
    cancelled_at = Column(DateTime, nullable=True)
    cancel_reason = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("UserProfile")


class MonthlyUsage(Base):
    """Per-user usage counters for one calendar month ("2025-03")."""
    __tablename__ = "monthly_usage"
    __table_args__ = (UniqueConstraint("user_id", "period", name="uq_usage_user_period"),)

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("user_profiles.id"), nullable=False, index=True)
    period = Column(String, nullable=False, index=True)

    pathway_generations = Column(Integer, default=0)
    university_comparisons = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SubscriptionTransaction(Base):
    __tablename__ = "subscription_transactions"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, ForeignKey("user_profiles.id"), nullable=False, index=True)
    plan = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String, nullable=False, default="INR")
    payment_reference = Column(String, nullable=True)
    status = Column(String, nullable=False, default="completed")
    created_at = Column(DateTime, default=datetime.utcnow)


# ============================================================================
# SUPPORT MODELS
# ============================================================================

class ExchangeRateSnapshot(Base):
    """USD-based exchange rate table fetched from an external provider."""
    __tablename__ = "exchange_rates"

    id = Column(String, primary_key=True, default=generate_uuid)
    base = Column(String, nullable=False, default="USD")
    rates = Column(JSON, nullable=False)  # {"EUR": 0.85, ...}
    source = Column(String, nullable=False)  # "currencyapi", "exchangerate-api", "default"
    fetched_at = Column(DateTime, default=datetime.utcnow, index=True)


class ScrapeJob(Base):
    """
    Tracks long-running admin scraping jobs.
    Status: pending, running, completed, failed, cancelled
    """
    __tablename__ = "scrape_jobs"

    id = Column(String, primary_key=True, default=generate_uuid)
    kind = Column(String, nullable=False, index=True)  # "pathways", "universities"
    requested_by = Column(String, ForeignKey("user_profiles.id"), nullable=True)

    total = Column(Integer, default=0)
    completed = Column(Integer, default=0)
    successful = Column(Integer, default=0)
    failed = Column(Integer, default=0)
    skipped = Column(Integer, default=0)
    current_item = Column(String, nullable=True)

    status = Column(String, nullable=False, default="pending", index=True)
    errors = Column(JSON, nullable=True)  # [{"id": ..., "error": ...}]
    options = Column(JSON, nullable=True)

    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SchemaMigration(Base):
    """Record of applied data migrations."""
    __tablename__ = "schema_migrations"

    name = Column(String, primary_key=True)
    applied_at = Column(DateTime, default=datetime.utcnow)
    details = Column(JSON, nullable=True)
