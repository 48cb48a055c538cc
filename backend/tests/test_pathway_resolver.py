"""
Tests for pathway resolution: cache, similar-profile adaptation,
AI generation, static fallback, personalisation and the free plan view.
"""

import pytest
from datetime import datetime

from eduvox.models.models import PathwayTemplate
from eduvox.schemas.pathway import (
    PathwayKind,
    PathwayProfile,
    PathwayRequest,
    get_budget_range_from_amount,
)
from eduvox.services.pathway_generator import (
    PathwayGenerator,
    PathwayGenerationError,
    parse_ai_response,
)
from eduvox.services.pathway_resolver import (
    FREE_STEP_LIMIT,
    FREE_TASK_LIMIT,
    MASKED_VALUE,
    PathwayResolver,
    limit_pathway_for_free_tier,
    personalize_pathway,
)
from eduvox.services.static_pathway import build_static_pathway
from tests.mocks import (
    FakeTextGenerator,
    failing_text_generator,
    mock_ai_analysis_text,
    mock_ai_pathway_text,
)


def canada_request(**overrides) -> PathwayRequest:
    fields = {
        "country": "Canada",
        "course": "Computer Science",
        "academic_level": "Master",
        "budget": 30000,
    }
    fields.update(overrides)
    return PathwayRequest(**fields)


class TestProfileKeys:
    """Tests for budget buckets and template keys"""

    @pytest.mark.unit
    @pytest.mark.parametrize("amount,bucket", [
        (15000, "Low"),
        (25000, "Low"),
        (30000, "Medium"),
        (75000, "High"),
        (150000, "Premium"),
        (500000, "High"),
        (None, "High"),
    ])
    def test_budget_bucket(self, amount, bucket):
        """Test yearly budgets map to named buckets"""
        assert get_budget_range_from_amount(amount).name == bucket

    @pytest.mark.unit
    def test_key_is_deterministic_and_safe(self):
        """Test the key lowercases and replaces separators"""
        profile = PathwayProfile(
            country="United States", course="Computer Science", academic_level="Master",
            budget_range="Medium", nationality="Indian",
        )
        assert profile.key == "united_states_computer_science_master_medium_indian"

    @pytest.mark.unit
    def test_explicit_budget_range_wins(self):
        """Test a named bucket overrides the numeric budget"""
        profile = canada_request(budget=15000, budget_range="premium").to_profile()
        assert profile.budget_range == "Premium"

    @pytest.mark.unit
    def test_unknown_budget_range_rejected(self):
        """Test an unknown bucket name"""
        with pytest.raises(ValueError):
            canada_request(budget_range="Luxury").to_profile()


class TestAIParsing:
    """Tests for strict parsing of model output"""

    @pytest.mark.unit
    def test_fenced_json_is_parsed(self):
        """Test Markdown fences are stripped"""
        payload = parse_ai_response(mock_ai_pathway_text(fenced=True))
        assert payload["timeline"][0]["month"] == "January"

    @pytest.mark.unit
    def test_invalid_json_raises(self):
        """Test no repair is attempted"""
        with pytest.raises(PathwayGenerationError):
            parse_ai_response("Here is your plan: {not json")

    @pytest.mark.unit
    def test_non_object_raises(self):
        """Test arrays are not pathways"""
        with pytest.raises(PathwayGenerationError):
            parse_ai_response("[1, 2, 3]")

    @pytest.mark.unit
    def test_generator_maps_timeline_to_steps(self, canada_profile):
        """Test one step per timeline month"""
        generator = PathwayGenerator(text_generator=FakeTextGenerator(), model_name="gemini-test")

        pathway = generator.generate(canada_profile)

        assert pathway.kind == PathwayKind.AI_GENERATED
        assert pathway.ai_model == "gemini-test"
        assert [s.title for s in pathway.steps][:2] == ["January", "February"]
        assert len(pathway.steps) == 6
        assert pathway.visa_info["type"] == "Study Permit"
        assert pathway.details["career_prospects"]["jobMarket"] == "Strong"

    @pytest.mark.unit
    def test_prompt_includes_budget_bounds(self, canada_profile):
        """Test the prompt carries the profile"""
        fake = FakeTextGenerator()
        PathwayGenerator(text_generator=fake).generate(canada_profile)

        assert "Country: Canada" in fake.prompts[0]
        assert "$25000 - $50000" in fake.prompts[0]

    @pytest.mark.unit
    def test_missing_timeline_raises(self, canada_profile):
        """Test a payload without a timeline is unusable"""
        generator = PathwayGenerator(text_generator=FakeTextGenerator(responses=['{"universities": []}']))

        with pytest.raises(PathwayGenerationError):
            generator.generate(canada_profile)


class TestDetailedAnalysis:
    """Tests for the per-student AI analysis"""

    @pytest.mark.unit
    def test_analysis_is_mapped(self):
        """Test untitled steps are dropped and the rest renumbered"""
        generator = PathwayGenerator(
            text_generator=FakeTextGenerator(responses=[mock_ai_analysis_text()]),
            model_name="gemini-test"
        )

        analysis = generator.generate_analysis(canada_request())

        assert analysis.key == "canada_computer_science_master_medium_indian"
        assert analysis.summary.startswith("A realistic plan")
        assert [s.title for s in analysis.steps] == ["Shortlist programs", "Secure funding"]
        assert [s.step for s in analysis.steps] == [1, 2]
        assert analysis.steps[1].priority == "medium"
        assert analysis.tips == ["Start the SOP early"]
        assert analysis.alternatives[0]["country"] == "Germany"
        assert analysis.ai_model == "gemini-test"

    @pytest.mark.unit
    def test_prompt_carries_student_details(self):
        """Test GPA and notes reach the model and gaps are marked"""
        fake = FakeTextGenerator(responses=[mock_ai_analysis_text()])

        PathwayGenerator(text_generator=fake).generate_analysis(
            canada_request(current_gpa=8.4, notes="Prefers co-op programs")
        )

        assert "Current GPA: 8.4" in fake.prompts[0]
        assert "Notes from the student: Prefers co-op programs" in fake.prompts[0]
        assert "Target Company: not provided" in fake.prompts[0]

    @pytest.mark.unit
    def test_missing_summary_raises(self):
        """Test an analysis without a summary is unusable"""
        generator = PathwayGenerator(text_generator=FakeTextGenerator(responses=['{"steps": []}']))

        with pytest.raises(PathwayGenerationError):
            generator.generate_analysis(canada_request())


class TestResolutionOrder:
    """Tests for the cache -> similar -> AI -> static order"""

    @pytest.mark.unit
    def test_ai_result_is_cached(self, db, fake_generator, fake_text_generator):
        """Test the second identical request is served from the template table"""
        resolver = PathwayResolver(db, generator=fake_generator)

        first = resolver.resolve(canada_request(), plan="pro")
        second = resolver.resolve(canada_request(), plan="pro")

        assert first.source == "ai"
        assert second.source == "cache"
        assert second.kind == PathwayKind.AI_GENERATED
        assert fake_text_generator.call_count == 1
        assert [s.title for s in second.steps] == [s.title for s in first.steps]

    @pytest.mark.unit
    def test_similar_profile_is_adapted(self, db, stored_template, fake_generator, fake_text_generator):
        """Test a different budget reuses the stored Canada CS Master plan"""
        resolver = PathwayResolver(db, generator=fake_generator)

        pathway = resolver.resolve(canada_request(budget=80000), plan="pro")

        assert pathway.kind == PathwayKind.ADAPTED
        assert pathway.source == "similar"
        assert pathway.is_adapted is True
        assert pathway.base_kind == PathwayKind.STATIC
        assert pathway.adapted_from.budget_range == "Medium"
        assert pathway.profile.budget_range == "High"
        assert fake_text_generator.call_count == 0

    @pytest.mark.unit
    def test_adapted_pathways_are_not_stored(self, db, stored_template, fake_generator):
        """Test adaptation leaves the template table alone"""
        resolver = PathwayResolver(db, generator=fake_generator)
        before = db.query(PathwayTemplate).count()

        resolver.resolve(canada_request(budget=80000), plan="pro")

        assert db.query(PathwayTemplate).count() == before

    @pytest.mark.unit
    def test_invalid_templates_are_ignored(self, db, stored_template, fake_generator):
        """Test templates marked invalid are never served"""
        stored_template.status = "invalid"
        db.commit()
        resolver = PathwayResolver(db, generator=fake_generator)

        pathway = resolver.resolve(canada_request(), plan="pro")

        assert pathway.source == "ai"

    @pytest.mark.unit
    def test_ai_parse_failure_falls_back_to_static(self, db):
        """Test unparseable model output yields the static plan"""
        generator = PathwayGenerator(text_generator=FakeTextGenerator(responses=["I cannot help with that"]))
        resolver = PathwayResolver(db, generator=generator)

        pathway = resolver.resolve(canada_request(), plan="pro")

        assert pathway.kind == PathwayKind.STATIC
        assert pathway.source == "static"
        assert len(pathway.steps) == 9
        stored = db.query(PathwayTemplate).filter(PathwayTemplate.id == pathway.key).first()
        assert stored.kind == "static"

    @pytest.mark.unit
    def test_model_error_falls_back_to_static(self, db):
        """Test an exception from the model is contained"""
        resolver = PathwayResolver(db, generator=PathwayGenerator(text_generator=failing_text_generator()))

        pathway = resolver.resolve(canada_request(), plan="pro")

        assert pathway.kind == PathwayKind.STATIC

    @pytest.mark.unit
    def test_unknown_country_static_uses_defaults(self, db):
        """Test the static tables never fail for an unlisted country"""
        resolver = PathwayResolver(db, generator=PathwayGenerator(text_generator=failing_text_generator()))

        pathway = resolver.resolve(canada_request(country="Portugal"), plan="pro")

        assert pathway.kind == PathwayKind.STATIC
        assert pathway.costs["total"]["currency"] == "USD"


class TestPersonalisation:
    """Tests for per-request personalisation"""

    @pytest.mark.unit
    def test_low_gpa_extends_timeline(self, canada_profile):
        """Test a weak GPA lengthens preparation"""
        pathway = build_static_pathway(canada_profile)

        personalized = personalize_pathway(pathway, canada_request(current_gpa=2.5))

        assert personalized.timeline["phases"][0]["duration"] == "15-20 months"
        assert personalized.timeline["total_duration"] == "20-26 months"
        # The source pathway is not modified
        assert pathway.timeline["phases"][0]["duration"] == "9-12 months"

    @pytest.mark.unit
    def test_ten_point_gpa_is_not_low(self, canada_profile):
        """Test 8.0 on the 10-point scale keeps the standard timeline"""
        personalized = personalize_pathway(build_static_pathway(canada_profile), canada_request(current_gpa=8.0))

        assert personalized.timeline["phases"][0]["duration"] == "9-12 months"

    @pytest.mark.unit
    def test_recommendations(self, canada_profile):
        """Test recommendations from GPA, English and experience"""
        request = canada_request(current_gpa=3.5, english_proficiency="advanced", work_experience=False, notes="Fall intake")

        personalized = personalize_pathway(build_static_pathway(canada_profile), request, now=datetime(2025, 1, 1))

        assert personalized.personalized_recommendations == [
            "Based on your GPA of 3.5, focus on improving academic performance",
            "Your advanced English level suggests minimal language preparation",
            "Consider gaining relevant work experience",
        ]
        assert personalized.user_notes == "Fall intake"
        assert personalized.personalized_at == datetime(2025, 1, 1)

    @pytest.mark.unit
    @pytest.mark.parametrize("budget,status", [
        (95000, "excellent"),
        (50000, "good"),
        (10000, "challenging"),
    ])
    def test_budget_alignment(self, budget, status):
        """Test budget alignment against the converted total cost"""
        profile = PathwayProfile(country="United States", course="Law", academic_level="Master", budget_range="High")

        # United States totals 43,000 - 90,000 USD
        personalized = personalize_pathway(build_static_pathway(profile), canada_request(budget=budget))

        assert personalized.budget_alignment.status == status

    @pytest.mark.unit
    def test_ai_costs_skip_alignment(self, canada_profile, fake_generator):
        """Test free-text AI costs are not compared"""
        pathway = fake_generator.generate(canada_profile)

        personalized = personalize_pathway(pathway, canada_request(budget=50000))

        assert personalized.budget_alignment is None


class TestFreePlanView:
    """Tests for the limited pathway shown to free users"""

    @pytest.mark.unit
    def test_limits_steps_and_tasks(self, canada_profile):
        """Test three steps, two tasks each, and a hidden count"""
        full = build_static_pathway(canada_profile)

        limited = limit_pathway_for_free_tier(full)

        assert limited.kind == PathwayKind.LIMITED
        assert limited.full_kind == PathwayKind.STATIC
        assert limited.is_limited is True
        assert len(limited.steps) == FREE_STEP_LIMIT
        assert all(len(s.tasks) <= FREE_TASK_LIMIT and s.is_limited for s in limited.steps)
        assert limited.hidden_steps == len(full.steps) - FREE_STEP_LIMIT
        assert limited.upgrade_message

    @pytest.mark.unit
    def test_costs_are_masked(self, canada_profile):
        """Test every cost figure is replaced"""
        limited = limit_pathway_for_free_tier(build_static_pathway(canada_profile))

        assert limited.costs["tuition"]["min"] == MASKED_VALUE
        assert limited.costs["total"]["max"] == MASKED_VALUE
        assert "currency" not in limited.costs["total"]
        assert limited.details == {}

    @pytest.mark.unit
    def test_limiting_is_idempotent(self, canada_profile):
        """Test limiting a limited pathway changes nothing"""
        limited = limit_pathway_for_free_tier(build_static_pathway(canada_profile))
        assert limit_pathway_for_free_tier(limited) is limited

    @pytest.mark.unit
    def test_free_resolve_returns_limited_ai_pathway(self, db, fake_generator):
        """Test free plan resolution returns the limited view of the AI plan"""
        resolver = PathwayResolver(db, generator=fake_generator)

        pathway = resolver.resolve(canada_request(), plan="free")

        assert pathway.kind == PathwayKind.LIMITED
        assert pathway.full_kind == PathwayKind.AI_GENERATED
        # January has four tasks in the mock
        assert len(pathway.steps[0].tasks) == 2
        assert len(pathway.scholarships) == 1
        # The stored template keeps the full plan
        stored = db.query(PathwayTemplate).filter(PathwayTemplate.id == pathway.key).first()
        assert len(stored.data["steps"]) == 6

    @pytest.mark.unit
    def test_ai_timeline_is_cut_to_visible_months(self, fake_generator, canada_profile):
        """Test hidden months and their tasks do not leak through the timeline"""
        full = fake_generator.generate(canada_profile)
        assert len(full.timeline) == 6

        limited = limit_pathway_for_free_tier(full)

        assert len(limited.timeline) == FREE_STEP_LIMIT
        assert [entry["month"] for entry in limited.timeline] == ["January", "February", "March"]
        assert all(len(entry["tasks"]) <= FREE_TASK_LIMIT for entry in limited.timeline)
        visible_tasks = [task for entry in limited.timeline for task in entry["tasks"]]
        assert "Apply for study permit" not in visible_tasks
        # The full pathway is left untouched
        assert len(full.timeline) == 6
        assert len(full.timeline[0]["tasks"]) == 4

    @pytest.mark.unit
    def test_phase_timeline_is_trimmed(self, canada_profile):
        """Test a phase table keeps only the visible phases"""
        full = build_static_pathway(canada_profile)
        full.timeline = {
            "total_duration": "24 months",
            "phases": [
                {"phase": f"Phase {n}", "duration": "2 months", "tasks": ["a", "b", "c"]}
                for n in range(1, 6)
            ],
        }

        limited = limit_pathway_for_free_tier(full)

        assert limited.timeline["total_duration"] == "24 months"
        assert [p["phase"] for p in limited.timeline["phases"]] == ["Phase 1", "Phase 2", "Phase 3"]
        assert all(p["tasks"] == ["a", "b"] for p in limited.timeline["phases"])
