# Load environment variables FIRST before any other imports
from dotenv import load_dotenv
load_dotenv()

import os
import logging
import sentry_sdk
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from eduvox.database import init_db, SessionLocal
from eduvox.routers import auth, users, universities, pathways, subscription, currency, admin
from eduvox.middleware.performance_monitor import PerformanceMonitorMiddleware

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Sentry for error monitoring
sentry_dsn = os.getenv("SENTRY_DSN")
if sentry_dsn:
    sentry_sdk.init(
        dsn=sentry_dsn,
        traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
        environment=os.getenv("ENVIRONMENT", "development"),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - runs on startup and shutdown."""
    # STARTUP: tables and record migrations
    if os.getenv("ENABLE_DB_INIT", "true").lower() == "true":
        init_db()
        logger.info("Database initialised")

        # Jobs left running by a previous process will never finish
        from eduvox.services.background_tasks import cleanup_stale_jobs
        db = SessionLocal()
        try:
            cleanup_stale_jobs(db, max_age_hours=0)
        except Exception as e:
            logger.warning("Stale job cleanup failed: %s", e)
        finally:
            db.close()
    else:
        logger.info("Database init disabled via ENABLE_DB_INIT=false")

    yield  # Application runs here

    logger.info("Shutting down...")

# OpenAPI tag metadata for organized documentation
tags_metadata = [
    {
        "name": "auth",
        "description": "Profile registration and Firebase token verification.",
    },
    {
        "name": "users",
        "description": "User lookup. Listing requires admin access.",
    },
    {
        "name": "universities",
        "description": "University search, saved lists and profile matching.",
    },
    {
        "name": "pathways",
        "description": "UniGuidePro study abroad pathways and My Study Path progress.",
    },
    {
        "name": "subscription",
        "description": "Plans, monthly usage and feature gating.",
    },
    {
        "name": "currency",
        "description": "Exchange rates and currency conversion.",
    },
    {
        "name": "admin",
        "description": "Scraping jobs, data maintenance and analytics. **Requires admin access.**",
    },
]

app = FastAPI(
    title="EduVox API",
    description="""
## EduVox Study Abroad Advisor

EduVox helps students choose universities abroad and plan the steps to get there.

### Features
- **University Search** - Filter by country, ranking and tuition
- **University Matching** - Safety, target and ambitious picks for your academic profile
- **UniGuidePro** - Step-by-step study abroad pathways
- **My Study Path** - Track progress through your pathway
- **Detailed Analysis** - AI review of your profile and next steps (paid plans)
- **University Comparison** - Side-by-side view of up to four universities
- **Currency Conversion** - Tuition in your own currency

### Plans
| Plan | Pathways/Month | Saved History | Comparisons |
|------|----------------|---------------|-------------|
| Free | 3 (limited view, not saved) | 1 | 3 |
| Premium | Unlimited | 10 | 10 |
| Pro | Unlimited | Unlimited | Unlimited |
    """,
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=tags_metadata,
)

# SECURITY: Explicitly list allowed origins - no wildcards
ALLOWED_ORIGINS = [
    "http://localhost:5173",  # Vite dev server
    "http://localhost:3000",
]

# Allow additional origins from environment (for preview deploys)
extra_origins = os.getenv("CORS_ALLOWED_ORIGINS", "")
if extra_origins:
    ALLOWED_ORIGINS.extend([o.strip() for o in extra_origins.split(",") if o.strip()])

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "Accept"],
)

app.add_middleware(PerformanceMonitorMiddleware)

# Include routers
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(universities.router)
app.include_router(pathways.router)  # UniGuidePro and My Study Path
app.include_router(subscription.router)
app.include_router(currency.router)
app.include_router(admin.router)


@app.get("/")
def root():
    return {
        "message": "EduVox API",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    return {"status": "healthy"}
