"""
Deterministic Gemini mocks for EduVox testing.

These mocks provide predictable model output without API costs, so
pathway generation can be tested end to end.
"""

import json
from typing import Callable, List, Optional
from unittest.mock import MagicMock


# =============================================================================
# Mock Data - Deterministic Responses
# =============================================================================

MOCK_AI_PATHWAY = {
    "universities": [
        {
            "name": "University of Toronto",
            "ranking": "QS 21",
            "tuitionFee": "$45,000",
            "location": "Toronto, Ontario",
            "requirements": {"gpa": "3.3", "ielts": "6.5", "toefl": "93", "gre": "not required", "gmat": "not required"},
            "specialties": ["Machine Learning", "Systems"],
            "applicationDeadline": "January 15",
        },
        {
            "name": "University of British Columbia",
            "ranking": "QS 34",
            "tuitionFee": "$42,000",
            "location": "Vancouver, British Columbia",
            "requirements": {"gpa": "3.0", "ielts": "6.5", "toefl": "90", "gre": "not required", "gmat": "not required"},
            "specialties": ["Data Science"],
            "applicationDeadline": "December 15",
        },
        {
            "name": "McGill University",
            "ranking": "QS 30",
            "tuitionFee": "$38,000",
            "location": "Montreal, Quebec",
            "requirements": {"gpa": "3.2", "ielts": "6.5", "toefl": "86", "gre": "not required", "gmat": "not required"},
            "specialties": ["Artificial Intelligence"],
            "applicationDeadline": "January 15",
        },
        {
            "name": "University of Waterloo",
            "ranking": "QS 112",
            "tuitionFee": "$40,000",
            "location": "Waterloo, Ontario",
            "requirements": {"gpa": "3.0", "ielts": "7.0", "toefl": "90", "gre": "not required", "gmat": "not required"},
            "specialties": ["Software Engineering"],
            "applicationDeadline": "February 1",
        },
    ],
    "timeline": [
        {"month": "January", "tasks": ["Shortlist universities", "Book IELTS", "Gather transcripts", "Draft SOP"], "priority": "high"},
        {"month": "February", "tasks": ["Take IELTS", "Request recommendation letters", "Finalize SOP"], "priority": "high"},
        {"month": "March", "tasks": ["Submit applications", "Pay application fees"], "priority": "high"},
        {"month": "April", "tasks": ["Apply for scholarships", "Track application status"], "priority": "medium"},
        {"month": "May", "tasks": ["Accept offer", "Pay deposit"], "priority": "medium"},
        {"month": "June", "tasks": ["Apply for study permit", "Arrange GIC", "Medical exam"], "priority": "high"},
    ],
    "documents": [
        {"name": "Passport", "description": "Valid for the whole stay", "required": True},
        {"name": "Transcripts", "description": "Official university transcripts", "required": True},
    ],
    "visaRequirements": {
        "type": "Study Permit",
        "processingTime": "8-12 weeks",
        "fee": "CAD 150",
        "requirements": ["Letter of acceptance", "Proof of funds", "GIC"],
    },
    "scholarships": [
        {"name": "Lester B. Pearson Scholarship", "amount": "Full tuition", "eligibility": "Outstanding international students", "deadline": "January 15"},
        {"name": "Vanier Canada Graduate Scholarship", "amount": "CAD 50,000/year", "eligibility": "Doctoral students", "deadline": "November 1"},
    ],
    "costs": {"tuition": "$35,000 - $50,000", "living": "$1,500/month", "insurance": "$900/year", "other": "$2,000/year"},
    "languageRequirements": {"ielts": "6.5", "toefl": "90", "alternatives": ["PTE Academic", "Duolingo"]},
    "careerProspects": {"averageSalary": "$75,000", "jobMarket": "Strong", "topEmployers": ["Shopify", "RBC"]},
    "livingInfo": {"climate": "Cold winters", "culture": "Multicultural", "housing": "$900-1,500/month", "transportation": "Good transit"},
}


def mock_ai_pathway_text(fenced: bool = True) -> str:
    """The mock pathway as the model would return it, optionally in a Markdown fence."""
    body = json.dumps(MOCK_AI_PATHWAY)
    return f"```json\n{body}\n```" if fenced else body


MOCK_AI_ANALYSIS = {
    "summary": "A realistic plan. Strong academics, but the budget is tight for Toronto.",
    "strengths": ["CGPA well above typical cut-offs", "IELTS 7.0 meets every program"],
    "challenges": ["Living costs in Toronto", "Limited research experience"],
    "steps": [
        {"step": 1, "title": "Shortlist programs", "description": "Pick six programs across fit levels",
         "duration": "1 month", "tasks": ["Compare curricula", "Check deadlines"], "priority": "high"},
        {"title": "Secure funding", "tasks": ["Apply for entrance awards"]},
        {"description": "Entry without a title is dropped"},
    ],
    "timeline": {"totalDuration": "14 months", "phases": [{"phase": "Preparation", "duration": "6 months"}]},
    "universities": [{"name": "University of Waterloo", "fit": "target", "reason": "Co-op program"}],
    "tips": ["Start the SOP early"],
    "alternatives": [{"country": "Germany", "reason": "Low tuition"}],
}


def mock_ai_analysis_text() -> str:
    return f"```json\n{json.dumps(MOCK_AI_ANALYSIS)}\n```"


# =============================================================================
# Fake text generators
# =============================================================================

class FakeTextGenerator:
    """
    Callable stand-in for gemini_client.generate_text.

    Returns the queued responses in order (repeating the last one) and
    records every prompt it receives.
    """

    def __init__(self, responses: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.responses = responses or [mock_ai_pathway_text()]
        self.error = error
        self.prompts: List[str] = []

    def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        index = min(len(self.prompts) - 1, len(self.responses) - 1)
        return self.responses[index]

    @property
    def call_count(self) -> int:
        return len(self.prompts)


def failing_text_generator(message: str = "model unavailable") -> Callable[[str], str]:
    return FakeTextGenerator(error=RuntimeError(message))


def mock_chat_completion(content: str) -> MagicMock:
    """An OpenAI-SDK-shaped chat completion response."""
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response
