"""
AI Pathway Generator

Builds the UniGuidePro prompt, sends it to Gemini and turns the JSON answer
into an AIGeneratedPathway, and produces the detailed per-student analysis.
Parsing is strict: if the model's answer is not a JSON object with a usable
timeline (or, for an analysis, a summary), PathwayGenerationError is raised
and the caller decides what to fall back to. There is no repair or retry here.
"""

import json
import logging
import re
from typing import Callable, Dict, Any, List, Optional

from eduvox.schemas.pathway import (
    AIGeneratedPathway,
    PathwayAnalysis,
    PathwayProfile,
    PathwayRequest,
    PathwayStep,
    get_budget_range,
)

logger = logging.getLogger(__name__)

TEXT_GENERATOR = Callable[[str], str]

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?")


class PathwayGenerationError(Exception):
    """The model could not produce a usable pathway."""
    pass


PATHWAY_PROMPT = """
Generate a comprehensive study abroad pathway for:
- Country: {country}
- Course: {course}
- Academic Level: {academic_level}
- Budget Range: ${budget_min} - ${budget_max}
- Nationality: {nationality}

Please provide a detailed JSON response with:
1. University recommendations (top 5-8 universities)
2. Application timeline (12-month plan)
3. Required documents
4. Visa requirements
5. Scholarship opportunities
6. Cost breakdown
7. Language requirements
8. Admission requirements
9. Career prospects
10. Living information

Format as valid JSON with these exact keys:
{{
  "universities": [
    {{
      "name": "University Name",
      "ranking": "QS/Times ranking",
      "tuitionFee": "Annual fee in USD",
      "location": "City, State/Province",
      "requirements": {{"gpa": "minimum GPA", "ielts": "minimum IELTS", "toefl": "minimum TOEFL",
                        "gre": "required/not required", "gmat": "required/not required"}},
      "specialties": ["specialty1", "specialty2"],
      "applicationDeadline": "deadline info"
    }}
  ],
  "timeline": [{{"month": "Month name", "tasks": ["task1", "task2", "task3"], "priority": "high/medium/low"}}],
  "documents": [{{"name": "Document name", "description": "What it is and how to get it", "required": true}}],
  "visaRequirements": {{"type": "visa type", "processingTime": "time in weeks", "fee": "fee in USD",
                        "requirements": ["req1", "req2"]}},
  "scholarships": [{{"name": "Scholarship name", "amount": "amount or percentage",
                     "eligibility": "who can apply", "deadline": "application deadline"}}],
  "costs": {{"tuition": "annual tuition range", "living": "monthly living costs",
             "insurance": "health insurance cost", "other": "other expenses"}},
  "languageRequirements": {{"ielts": "minimum score", "toefl": "minimum score", "alternatives": ["other accepted tests"]}},
  "careerProspects": {{"averageSalary": "salary in USD", "jobMarket": "market condition", "topEmployers": ["company1"]}},
  "livingInfo": {{"climate": "climate description", "culture": "cultural info",
                  "housing": "housing options and costs", "transportation": "transport info"}}
}}
Respond with the JSON object only.
"""


ANALYSIS_PROMPT = """
Act as an experienced study abroad counsellor and give a detailed analysis for this student:
- Target Country: {country}
- Course: {course}
- Academic Level: {academic_level}
- Budget Range: ${budget_min} - ${budget_max}
- Nationality: {nationality}
- Current GPA: {current_gpa}
- English Proficiency: {english_proficiency}
- Work Experience: {work_experience}
- Target Company: {target_company}
- Notes from the student: {notes}

Assess how realistic the plan is and what the student should do next.
Format as valid JSON with these exact keys:
{{
  "summary": "two or three sentence overall assessment",
  "strengths": ["strength1", "strength2"],
  "challenges": ["challenge1", "challenge2"],
  "steps": [{{"step": 1, "title": "Step title", "description": "what to do", "duration": "time needed",
              "tasks": ["task1", "task2"], "priority": "high/medium/low"}}],
  "timeline": {{"totalDuration": "overall duration", "phases": [{{"phase": "Phase name", "duration": "length",
                                                                 "description": "focus of the phase"}}]}},
  "universities": [{{"name": "University Name", "fit": "safety/target/ambitious", "reason": "why it fits"}}],
  "tips": ["tip1", "tip2"],
  "alternatives": [{{"country": "Alternative country", "reason": "why to consider it"}}]
}}
Respond with the JSON object only.
"""


def build_prompt(profile: PathwayProfile) -> str:
    budget = get_budget_range(profile.budget_range)
    return PATHWAY_PROMPT.format(
        country=profile.country,
        course=profile.course,
        academic_level=profile.academic_level,
        budget_min=budget.min,
        budget_max=budget.max,
        nationality=profile.nationality,
    )


def parse_ai_response(text: str) -> Dict[str, Any]:
    """Strip Markdown fences and parse the model output as a JSON object."""
    clean = _FENCE_RE.sub("", text or "").replace("```", "").strip()
    try:
        payload = json.loads(clean)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse AI response: %s", e)
        logger.debug("Raw AI response: %s", text)
        raise PathwayGenerationError("Failed to parse AI response as JSON") from e

    if not isinstance(payload, dict):
        raise PathwayGenerationError("AI response is not a JSON object")
    return payload


def timeline_to_steps(timeline: Any) -> List[PathwayStep]:
    """One step per month entry of the AI timeline."""
    if not isinstance(timeline, list):
        return []

    steps = []
    for entry in timeline:
        if not isinstance(entry, dict):
            continue
        tasks = [str(t) for t in entry.get("tasks") or []]
        title = str(entry.get("month") or f"Step {len(steps) + 1}")
        steps.append(PathwayStep(
            step=len(steps) + 1,
            title=title,
            description=", ".join(tasks[:2]),
            tasks=tasks,
            priority=entry.get("priority"),
        ))
    return steps


def payload_to_pathway(
    profile: PathwayProfile,
    payload: Dict[str, Any],
    ai_model: Optional[str] = None,
) -> AIGeneratedPathway:
    """Map the model's camelCase JSON onto the common pathway shape."""
    steps = timeline_to_steps(payload.get("timeline"))
    if not steps:
        raise PathwayGenerationError("AI response has no usable timeline")

    return AIGeneratedPathway(
        key=profile.key,
        profile=profile,
        source="ai",
        steps=steps,
        timeline=payload.get("timeline"),
        costs=payload.get("costs") or {},
        universities=[u for u in payload.get("universities") or [] if isinstance(u, dict)],
        scholarships=[s for s in payload.get("scholarships") or [] if isinstance(s, dict)],
        visa_info=payload.get("visaRequirements") or {},
        details={
            "documents": payload.get("documents") or [],
            "language_requirements": payload.get("languageRequirements") or {},
            "career_prospects": payload.get("careerProspects") or {},
            "living_info": payload.get("livingInfo") or {},
        },
        ai_model=ai_model,
    )


def build_analysis_prompt(request: PathwayRequest) -> str:
    profile = request.to_profile()
    budget = get_budget_range(profile.budget_range)

    def _or_unknown(value: Any) -> str:
        return "not provided" if value is None or value == "" else str(value)

    work_experience = None if request.work_experience is None else ("yes" if request.work_experience else "no")
    return ANALYSIS_PROMPT.format(
        country=profile.country,
        course=profile.course,
        academic_level=profile.academic_level,
        budget_min=budget.min,
        budget_max=budget.max,
        nationality=profile.nationality,
        current_gpa=_or_unknown(request.current_gpa),
        english_proficiency=_or_unknown(request.english_proficiency),
        work_experience=_or_unknown(work_experience),
        target_company=_or_unknown(request.target_company),
        notes=_or_unknown(request.notes),
    )


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item]


def _analysis_steps(raw_steps: Any) -> List[PathwayStep]:
    if not isinstance(raw_steps, list):
        return []

    steps = []
    for entry in raw_steps:
        if not isinstance(entry, dict) or not entry.get("title"):
            continue
        steps.append(PathwayStep(
            step=len(steps) + 1,
            title=str(entry["title"]),
            description=str(entry.get("description") or ""),
            duration=entry.get("duration"),
            tasks=_string_list(entry.get("tasks")),
            priority=entry.get("priority") or "medium",
        ))
    return steps


def payload_to_analysis(
    profile: PathwayProfile,
    payload: Dict[str, Any],
    ai_model: Optional[str] = None,
) -> PathwayAnalysis:
    """Map the model's analysis JSON onto PathwayAnalysis; a summary is required."""
    summary = payload.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        raise PathwayGenerationError("AI analysis has no summary")

    return PathwayAnalysis(
        key=profile.key,
        profile=profile,
        summary=summary.strip(),
        strengths=_string_list(payload.get("strengths")),
        challenges=_string_list(payload.get("challenges")),
        steps=_analysis_steps(payload.get("steps")),
        timeline=payload.get("timeline"),
        universities=[u for u in payload.get("universities") or [] if isinstance(u, dict)],
        tips=_string_list(payload.get("tips")),
        alternatives=[a for a in payload.get("alternatives") or [] if isinstance(a, dict)],
        ai_model=ai_model,
    )


class PathwayGenerator:
    """
    Generates pathways with a text model.

    The text generator is injected so tests and scripts can swap in a fake
    without patching module globals.
    """

    def __init__(self, text_generator: Optional[TEXT_GENERATOR] = None, model_name: Optional[str] = None):
        if text_generator is None:
            from eduvox.utils.gemini_client import generate_text, GEMINI_MODEL
            text_generator = generate_text
            model_name = model_name or GEMINI_MODEL
        self._generate_text = text_generator
        self.model_name = model_name

    def generate_payload(self, profile: PathwayProfile) -> Dict[str, Any]:
        text = self._generate_text(build_prompt(profile))
        return parse_ai_response(text)

    def generate(self, profile: PathwayProfile) -> AIGeneratedPathway:
        payload = self.generate_payload(profile)
        return payload_to_pathway(profile, payload, ai_model=self.model_name)

    def generate_analysis(self, request: PathwayRequest) -> PathwayAnalysis:
        """Detailed analysis of the request, including the student's own details."""
        text = self._generate_text(build_analysis_prompt(request))
        return payload_to_analysis(request.to_profile(), parse_ai_response(text), ai_model=self.model_name)
