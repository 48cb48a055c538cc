"""
Static Pathway Builder

Deterministic study abroad plan built from hard-coded country tables.
Used as the last resort of pathway resolution, so nothing in here touches
the database or the network and nothing in here can fail for an unknown
country: every table falls back to its United States entry.
"""

from typing import Dict, Any, List

from eduvox.schemas.pathway import PathwayProfile, PathwayStep, StaticPathway


DEFAULT_COUNTRY = "United States"

# Aliases used by scraped university rows and by users
COUNTRY_ALIASES = {
    "us": "United States",
    "usa": "United States",
    "uk": "United Kingdom",
}


def normalize_country(country: str) -> str:
    return COUNTRY_ALIASES.get(country.strip().lower(), country.strip())


def normalize_level(academic_level: str) -> str:
    """Map free-form level names onto 'undergraduate', 'graduate' or 'phd'."""
    level = academic_level.strip().lower()
    if level in ("bachelor", "bachelors", "undergraduate", "ug"):
        return "undergraduate"
    if level in ("phd", "doctorate", "doctoral"):
        return "phd"
    return "graduate"


# =============================================================================
# COUNTRY TABLES
# =============================================================================

LANGUAGE_REQUIREMENTS = {
    "United States": ["Take TOEFL iBT (Target: 80-100)", "Alternative: IELTS (Target: 6.5-7.5)", "Consider Duolingo English Test"],
    "United Kingdom": ["Take IELTS Academic (Target: 6.5-7.5)", "Alternative: TOEFL iBT (Target: 90-100)", "Some universities accept PTE Academic"],
    "Canada": ["Take IELTS General/Academic (Target: 6.5-7.5)", "Alternative: TOEFL iBT (Target: 85-100)", "French proficiency for Quebec (TEF/TCF)"],
    "Australia": ["Take IELTS Academic (Target: 6.5-7.5)", "Alternative: TOEFL iBT (Target: 80-100)", "PTE Academic also accepted"],
    "Germany": ["IELTS/TOEFL for English programs", "German proficiency (B2/C1) for German programs", "TestDaF or DSH for German universities"],
    "Netherlands": ["IELTS Academic (Target: 6.5-7.0)", "TOEFL iBT (Target: 80-100)", "Some programs require higher scores"],
}
DEFAULT_LANGUAGE_REQUIREMENTS = ["Take IELTS Academic (Target: 6.5-7.0)", "Alternative: TOEFL iBT (Target: 80-90)"]

TIMELINES = {
    "undergraduate": {
        "total_duration": "18-24 months",
        "phases": [
            {"phase": "Preparation", "duration": "12-18 months", "description": "Academic prep, tests, research"},
            {"phase": "Application", "duration": "3-6 months", "description": "Apply to universities"},
            {"phase": "Decision & Visa", "duration": "3-4 months", "description": "Accept offers, visa process"},
        ],
    },
    "graduate": {
        "total_duration": "15-20 months",
        "phases": [
            {"phase": "Preparation", "duration": "9-12 months", "description": "Tests, research, networking"},
            {"phase": "Application", "duration": "3-4 months", "description": "Apply to universities"},
            {"phase": "Decision & Visa", "duration": "3-4 months", "description": "Accept offers, visa process"},
        ],
    },
    "phd": {
        "total_duration": "18-24 months",
        "phases": [
            {"phase": "Research & Prep", "duration": "12-15 months", "description": "Research areas, contact professors"},
            {"phase": "Application", "duration": "3-6 months", "description": "Apply to programs"},
            {"phase": "Decision & Visa", "duration": "3-4 months", "description": "Accept offers, visa process"},
        ],
    },
}

ACADEMIC_REQUIREMENTS = {
    "United States": {
        "gpa": "Minimum 3.0/4.0 (varies by university)",
        "grades": "85%+ in relevant subjects",
        "additional": "Strong extracurricular activities",
    },
    "United Kingdom": {
        "gpa": "First class or 2:1 honors degree equivalent",
        "grades": "AAB-A*A*A* for undergraduate",
        "additional": "Personal statement and references",
    },
    "Canada": {
        "gpa": "Minimum 3.0/4.0 or B grade",
        "grades": "80%+ in last two years",
        "additional": "Work experience preferred",
    },
    "Australia": {
        "gpa": "Minimum 65% or credit average",
        "grades": "ATAR 80+ for undergraduate",
        "additional": "Relevant work experience",
    },
}

DOCUMENT_REQUIREMENTS = [
    "Academic transcripts (official)",
    "Degree certificates",
    "Statement of Purpose/Personal Statement",
    "Letters of Recommendation (2-3)",
    "Resume/CV",
    "Passport copy",
    "Financial statements",
    "English proficiency scores",
    "Standardized test scores",
    "Portfolio (if applicable)",
]

FINANCIAL_REQUIREMENTS = {
    "United States": {
        "tuition": "$25,000 - $60,000 per year",
        "living": "$15,000 - $25,000 per year",
        "total": "$40,000 - $85,000 per year",
        "proof": "Bank statements for 1-2 years of expenses",
    },
    "United Kingdom": {
        "tuition": "£15,000 - £35,000 per year",
        "living": "£12,000 - £18,000 per year",
        "total": "£27,000 - £53,000 per year",
        "proof": "Bank statements for 28 days before visa application",
    },
    "Canada": {
        "tuition": "CAD $20,000 - $40,000 per year",
        "living": "CAD $15,000 - $20,000 per year",
        "total": "CAD $35,000 - $60,000 per year",
        "proof": "Proof of funds for first year + CAD $10,000",
    },
    "Australia": {
        "tuition": "AUD $25,000 - $45,000 per year",
        "living": "AUD $20,000 - $25,000 per year",
        "total": "AUD $45,000 - $70,000 per year",
        "proof": "Evidence of sufficient funds",
    },
}

DEFAULT_UNIVERSITIES = {
    "United States": [
        {"name": "MIT", "ranking": 1, "tuition": "$53,790", "location": "Cambridge, MA"},
        {"name": "Stanford University", "ranking": 2, "tuition": "$56,169", "location": "Stanford, CA"},
        {"name": "Harvard University", "ranking": 3, "tuition": "$54,002", "location": "Cambridge, MA"},
        {"name": "UC Berkeley", "ranking": 4, "tuition": "$44,007", "location": "Berkeley, CA"},
        {"name": "Carnegie Mellon", "ranking": 5, "tuition": "$58,924", "location": "Pittsburgh, PA"},
    ],
    "United Kingdom": [
        {"name": "University of Oxford", "ranking": 1, "tuition": "£28,370", "location": "Oxford"},
        {"name": "University of Cambridge", "ranking": 2, "tuition": "£22,227", "location": "Cambridge"},
        {"name": "Imperial College London", "ranking": 3, "tuition": "£33,750", "location": "London"},
        {"name": "London School of Economics", "ranking": 4, "tuition": "£22,430", "location": "London"},
        {"name": "University College London", "ranking": 5, "tuition": "£25,800", "location": "London"},
    ],
    "Canada": [
        {"name": "University of Toronto", "ranking": 1, "tuition": "CAD $58,160", "location": "Toronto, ON"},
        {"name": "McGill University", "ranking": 2, "tuition": "CAD $42,030", "location": "Montreal, QC"},
        {"name": "University of British Columbia", "ranking": 3, "tuition": "CAD $40,945", "location": "Vancouver, BC"},
        {"name": "University of Waterloo", "ranking": 4, "tuition": "CAD $48,000", "location": "Waterloo, ON"},
        {"name": "McMaster University", "ranking": 5, "tuition": "CAD $27,965", "location": "Hamilton, ON"},
    ],
}

COST_TABLES = {
    "United States": {
        "tuition": {"min": 25000, "max": 60000, "currency": "USD"},
        "living": {"min": 15000, "max": 25000, "currency": "USD"},
        "miscellaneous": {"min": 3000, "max": 5000, "currency": "USD"},
    },
    "United Kingdom": {
        "tuition": {"min": 15000, "max": 35000, "currency": "GBP"},
        "living": {"min": 12000, "max": 18000, "currency": "GBP"},
        "miscellaneous": {"min": 2000, "max": 4000, "currency": "GBP"},
    },
    "Canada": {
        "tuition": {"min": 20000, "max": 40000, "currency": "CAD"},
        "living": {"min": 15000, "max": 20000, "currency": "CAD"},
        "miscellaneous": {"min": 2500, "max": 4000, "currency": "CAD"},
    },
    "Australia": {
        "tuition": {"min": 25000, "max": 45000, "currency": "AUD"},
        "living": {"min": 20000, "max": 25000, "currency": "AUD"},
        "miscellaneous": {"min": 3000, "max": 5000, "currency": "AUD"},
    },
}

VISA_INFO = {
    "United States": {
        "type": "F-1 Student Visa",
        "processing_time": "2-4 weeks",
        "fee": "$350",
        "requirements": [
            "Form I-20 from university",
            "SEVIS fee payment ($350)",
            "DS-160 form completion",
            "Visa interview appointment",
            "Financial documents",
            "Academic records",
        ],
        "work_permissions": "On-campus work allowed, CPT/OPT for internships",
    },
    "United Kingdom": {
        "type": "Student Visa (Tier 4)",
        "processing_time": "3-6 weeks",
        "fee": "£348",
        "requirements": [
            "CAS from university",
            "English proficiency proof",
            "Financial evidence",
            "Academic qualifications",
            "Tuberculosis test (if required)",
            "Immigration Health Surcharge",
        ],
        "work_permissions": "20 hours/week during studies, full-time during breaks",
    },
    "Canada": {
        "type": "Study Permit",
        "processing_time": "4-12 weeks",
        "fee": "CAD $150",
        "requirements": [
            "Letter of acceptance",
            "Proof of funds",
            "Medical exam (if required)",
            "Police clearance",
            "Statement of purpose",
            "Biometrics",
        ],
        "work_permissions": "20 hours/week during studies, full-time during breaks",
    },
    "Australia": {
        "type": "Student Visa (Subclass 500)",
        "processing_time": "4-6 weeks",
        "fee": "AUD $650",
        "requirements": [
            "Confirmation of Enrolment (CoE)",
            "Genuine Temporary Entrant statement",
            "Financial capacity evidence",
            "English proficiency",
            "Health insurance (OSHC)",
            "Health examinations",
        ],
        "work_permissions": "40 hours/fortnight during studies, unlimited during breaks",
    },
}

VISA_TASKS = {
    "United States": [
        "Receive I-20 from university",
        "Pay SEVIS fee",
        "Complete DS-160 form",
        "Schedule visa interview",
        "Prepare financial documents",
        "Attend visa interview",
    ],
    "United Kingdom": [
        "Receive CAS from university",
        "Complete online application",
        "Pay immigration health surcharge",
        "Book biometrics appointment",
        "Prepare supporting documents",
        "Submit application",
    ],
    "Canada": [
        "Receive letter of acceptance",
        "Complete online application",
        "Pay fees and provide biometrics",
        "Submit required documents",
        "Complete medical exam (if required)",
        "Wait for processing",
    ],
    "Australia": [
        "Receive CoE from university",
        "Purchase OSHC insurance",
        "Complete online application",
        "Submit health examinations",
        "Provide biometrics",
        "Submit application",
    ],
}

SCHOLARSHIPS = {
    "United States": [
        {"name": "Fulbright Program", "amount": "Full funding", "eligibility": "International students"},
        {"name": "University Merit Scholarships", "amount": "$10,000-$30,000", "eligibility": "High academic achievers"},
        {"name": "AAUW International Fellowships", "amount": "$18,000-$30,000", "eligibility": "Women in STEM"},
    ],
    "United Kingdom": [
        {"name": "Chevening Scholarships", "amount": "Full funding", "eligibility": "Leadership potential"},
        {"name": "Commonwealth Scholarships", "amount": "Full funding", "eligibility": "Commonwealth citizens"},
        {"name": "University Scholarships", "amount": "£5,000-£15,000", "eligibility": "Academic excellence"},
    ],
    "Canada": [
        {"name": "Vanier Canada Graduate Scholarships", "amount": "CAD $50,000", "eligibility": "PhD students"},
        {"name": "Ontario Graduate Scholarship", "amount": "CAD $15,000", "eligibility": "Graduate students in Ontario"},
        {"name": "University Entrance Scholarships", "amount": "CAD $5,000-$20,000", "eligibility": "High school graduates"},
    ],
}

COUNTRY_TIPS = {
    "United States": [
        "Start SAT/ACT preparation early",
        "Focus on extracurricular activities",
        "Apply to multiple universities (safety, match, reach)",
        "Consider community college transfer pathway",
        "Network with alumni and current students",
    ],
    "United Kingdom": [
        "Use UCAS for undergraduate applications",
        "Write a compelling personal statement",
        "Research university-specific requirements",
        "Consider foundation year if needed",
        "Apply for accommodation early",
    ],
    "Canada": [
        "Research provincial nominee programs",
        "Consider co-op programs for work experience",
        "Learn basic French for Quebec universities",
        "Apply for SIN number after arrival",
        "Join student associations for networking",
    ],
    "Australia": [
        "Understand the academic calendar (February start)",
        "Research recognition of prior learning (RPL)",
        "Consider regional universities for easier visa",
        "Purchase Overseas Student Health Cover (OSHC)",
        "Join orientation programs for integration",
    ],
}

POST_STUDY_WORK_RIGHTS = {
    "United States": "OPT: 12 months (36 months for STEM)",
    "United Kingdom": "Graduate Route: 2 years (3 years for PhD)",
    "Canada": "PGWP: Up to 3 years based on study duration",
    "Australia": "Temporary Graduate visa: 2-4 years",
}


def _lookup(table: Dict[str, Any], country: str):
    return table.get(country, table[DEFAULT_COUNTRY])


# =============================================================================
# BUILDERS
# =============================================================================

def standardized_test_tasks(level: str, country: str) -> List[str]:
    if level == "undergraduate":
        if country == "United States":
            return ["Take SAT (Target: 1400+)", "Alternative: ACT (Target: 30+)", "Subject-specific SAT Subject Tests (if required)"]
        return ["Check if SAT/ACT required", "Prepare for country-specific entrance exams"]
    if level == "graduate":
        return ["Take GRE General (Target: 310-320)", "Consider program-specific tests", "Prepare research portfolio"]
    return ["Check specific test requirements", "Prepare for entrance examinations"]


def build_steps(country: str, level: str) -> List[PathwayStep]:
    """The nine standard steps, with country/level specific task lists."""
    rows = [
        ("Academic Preparation", "Improve academic credentials and GPA", "6-12 months",
         ["Maintain/improve current GPA", "Complete prerequisite courses", "Build strong academic portfolio"]),
        ("Language Proficiency", "Achieve required English proficiency scores", "3-6 months",
         LANGUAGE_REQUIREMENTS.get(country, DEFAULT_LANGUAGE_REQUIREMENTS)),
        ("Standardized Tests", "Prepare and take required standardized tests", "3-6 months",
         standardized_test_tasks(level, country)),
        ("University Research", "Research and shortlist universities", "2-3 months",
         ["Research university rankings and programs", "Check admission requirements",
          "Shortlist 8-12 universities", "Contact admissions offices"]),
        ("Application Preparation", "Prepare application materials", "3-4 months",
         ["Write statement of purpose", "Prepare resume/CV", "Collect recommendation letters",
          "Prepare portfolio (if required)"]),
        ("Financial Planning", "Arrange funding and financial documents", "2-4 months",
         ["Apply for scholarships", "Arrange education loans", "Prepare financial documents",
          "Plan for living expenses"]),
        ("Application Submission", "Submit university applications", "1-2 months",
         ["Complete online applications", "Submit required documents", "Pay application fees",
          "Track application status"]),
        ("Visa Preparation", "Prepare for student visa application", "2-3 months",
         _lookup(VISA_TASKS, country)),
        ("Pre-Departure", "Final preparations before departure", "1-2 months",
         ["Book accommodation", "Arrange airport pickup", "Pack essentials", "Complete orientation programs"]),
    ]
    return [
        PathwayStep(step=i, title=title, description=description, duration=duration, tasks=list(tasks))
        for i, (title, description, duration, tasks) in enumerate(rows, start=1)
    ]


def build_cost_breakdown(country: str) -> Dict[str, Any]:
    table = _lookup(COST_TABLES, country)
    parts = ("tuition", "living", "miscellaneous")
    costs = {part: dict(table[part]) for part in parts}
    costs["total"] = {
        "min": sum(table[part]["min"] for part in parts),
        "max": sum(table[part]["max"] for part in parts),
        "currency": table["tuition"]["currency"],
    }
    return costs


def build_static_pathway(profile: PathwayProfile) -> StaticPathway:
    """Assemble the complete deterministic pathway for a profile."""
    country = normalize_country(profile.country)
    level = normalize_level(profile.academic_level)

    # Deep enough copy that personalisation never edits the module table
    timeline = {
        "total_duration": TIMELINES[level]["total_duration"],
        "phases": [dict(phase) for phase in TIMELINES[level]["phases"]],
    }

    return StaticPathway(
        key=profile.key,
        profile=profile,
        source="static",
        steps=build_steps(country, level),
        timeline=timeline,
        costs=build_cost_breakdown(country),
        universities=[dict(u) for u in _lookup(DEFAULT_UNIVERSITIES, country)],
        scholarships=[dict(s) for s in _lookup(SCHOLARSHIPS, country)],
        visa_info=dict(_lookup(VISA_INFO, country)),
        details={
            "requirements": {
                "academic": dict(_lookup(ACADEMIC_REQUIREMENTS, country)),
                "documents": list(DOCUMENT_REQUIREMENTS),
                "financial": dict(_lookup(FINANCIAL_REQUIREMENTS, country)),
                "language": list(LANGUAGE_REQUIREMENTS.get(country, DEFAULT_LANGUAGE_REQUIREMENTS)),
            },
            "career_prospects": {
                "average_salary": "Data varies by specialization and experience",
                "job_market": "Generally positive outlook",
                "post_study_work_rights": POST_STUDY_WORK_RIGHTS.get(country, "Varies by country and program"),
            },
            "tips": list(_lookup(COUNTRY_TIPS, country)),
        },
    )
