"""
Tests for university search, saved universities and profile matching.
"""

import pytest

from eduvox.models.models import University
from eduvox.services.subscription import record_usage
from eduvox.services.universities import (
    MAX_COMPARE,
    calculate_match_score,
    compare_universities,
    match_universities,
    search_universities,
)
from tests.factories import make_university


class TestSearch:
    """Tests for the filtered, paginated catalogue"""

    @pytest.mark.unit
    def test_orders_by_ranking_with_unranked_last(self, db, universities_batch):
        """Test ranking order puts NULL rankings at the end"""
        result = search_universities(db)

        names = [u["name"] for u in result["universities"]]
        assert names == ["Harvard University", "University of Oxford", "University of Toronto", "University of Melbourne"]
        assert result["pagination"] == {"page": 1, "limit": 20, "total": 4, "pages": 1}

    @pytest.mark.unit
    def test_country_filter_is_case_insensitive(self, db, universities_batch):
        """Test partial, case-insensitive country filtering"""
        result = search_universities(db, country="cana")

        assert [u["name"] for u in result["universities"]] == ["University of Toronto"]

    @pytest.mark.unit
    def test_search_matches_name_or_city(self, db, universities_batch):
        """Test free-text search covers both name and city"""
        by_city = search_universities(db, search="cambridge")
        by_name = search_universities(db, search="oxford")

        assert [u["name"] for u in by_city["universities"]] == ["Harvard University"]
        assert [u["name"] for u in by_name["universities"]] == ["University of Oxford"]

    @pytest.mark.unit
    def test_tuition_and_ranking_ranges(self, db, universities_batch):
        """Test range filters combine"""
        result = search_universities(db, max_tuition=45000, max_ranking=10)

        assert [u["name"] for u in result["universities"]] == ["University of Oxford"]

    @pytest.mark.unit
    def test_verified_only(self, db, universities_batch):
        """Test unverified scraped rows can be hidden"""
        make_university(db, name="Pending University", is_verified=False, verification_status="pending")

        assert search_universities(db)["pagination"]["total"] == 5
        assert search_universities(db, verified_only=True)["pagination"]["total"] == 4

    @pytest.mark.unit
    def test_pagination(self, db, universities_batch):
        """Test page and limit"""
        result = search_universities(db, page=2, limit=3)

        assert len(result["universities"]) == 1
        assert result["pagination"]["pages"] == 2

    @pytest.mark.api
    def test_list_endpoint_uses_camel_case_aliases(self, client, universities_batch):
        """Test the public endpoint accepts the frontend's query names"""
        response = client.get("/api/universities/?minRanking=2&maxTuition=40000")

        assert response.status_code == 200
        assert [u["name"] for u in response.json()["universities"]] == ["University of Toronto"]

    @pytest.mark.api
    def test_get_university_detail(self, client, universities_batch):
        """Test single university lookup and 404"""
        toronto = universities_batch[0]

        found = client.get(f"/api/universities/{toronto.id}")
        missing = client.get("/api/universities/nope")

        assert found.status_code == 200
        assert found.json()["university"]["city"] == "Toronto"
        assert missing.status_code == 404


class TestSavedUniversities:
    """Tests for the user's saved list"""

    @pytest.mark.api
    def test_save_list_and_remove(self, authed_client, universities_batch):
        """Test the full saved-university cycle"""
        oxford = universities_batch[1]

        saved = authed_client.post("/api/universities/save", json={"university_id": oxford.id, "notes": "Dream"})
        assert saved.status_code == 201

        listing = authed_client.get("/api/universities/saved/list").json()["saved_universities"]
        assert len(listing) == 1
        assert listing[0]["notes"] == "Dream"
        assert listing[0]["university"]["name"] == "University of Oxford"

        removed = authed_client.delete(f"/api/universities/saved/{listing[0]['id']}")
        assert removed.status_code == 200
        assert authed_client.get("/api/universities/saved/list").json()["saved_universities"] == []

    @pytest.mark.api
    def test_save_twice_rejected(self, authed_client, universities_batch):
        """Test saving the same university twice"""
        payload = {"university_id": universities_batch[0].id}
        authed_client.post("/api/universities/save", json=payload)

        response = authed_client.post("/api/universities/save", json=payload)

        assert response.status_code == 400

    @pytest.mark.api
    def test_save_unknown_university(self, authed_client):
        """Test saving a university that does not exist"""
        response = authed_client.post("/api/universities/save", json={"university_id": "missing"})

        assert response.status_code == 404

    @pytest.mark.api
    def test_remove_unknown_saved_entry(self, authed_client):
        """Test removing something that was never saved"""
        response = authed_client.delete("/api/universities/saved/missing")

        assert response.status_code == 404


class TestMatchScore:
    """Tests for calculate_match_score"""

    @pytest.mark.unit
    def test_strong_profile_is_safety(self, db):
        """Test a profile above every requirement scores 100"""
        university = make_university(db)
        student = {"cgpa": 9.5, "ielts_score": 7.5, "toefl_score": None, "budget_max": 40000}

        result = calculate_match_score(student, university)

        assert result["score"] == 100
        assert result["category"] == "safety"
        assert result["details"]["cgpa_match"] is True
        assert result["details"]["english_match"] is True
        assert result["details"]["budget_match"] is True
        assert result["details"]["gre_match"] is None

    @pytest.mark.unit
    def test_budget_between_min_and_max_gets_half(self, db):
        """Test partial budget credit"""
        university = make_university(db)
        student = {"cgpa": 9.5, "ielts_score": 7.0, "budget_max": 30000}

        result = calculate_match_score(student, university)

        # 40 + 30 + 10 out of 90
        assert result["score"] == 89
        assert result["category"] == "safety"

    @pytest.mark.unit
    def test_english_always_counts(self, db):
        """Test missing English scores still weigh against the student"""
        university = make_university(db, cgpa_requirement=None, tuition_min=None, tuition_max=None)

        result = calculate_match_score({"cgpa": 9.0}, university)

        assert result["score"] == 0
        assert result["category"] == "ambitious"
        assert result["details"]["english_match"] is None

    @pytest.mark.unit
    def test_cgpa_bands(self, db):
        """Test 90% of the CGPA requirement earns 30 of 40"""
        university = make_university(db, cgpa_requirement=10.0, tuition_min=None)

        result = calculate_match_score({"cgpa": 9.0, "ielts_score": 6.5}, university)

        # 30 + 30 out of 70
        assert result["score"] == 86

    @pytest.mark.unit
    def test_best_english_test_wins(self, db):
        """Test TOEFL can carry a weak IELTS"""
        university = make_university(db, cgpa_requirement=None, tuition_min=None)

        result = calculate_match_score({"ielts_score": 5.0, "toefl_score": 100}, university)

        assert result["score"] == 100
        assert result["details"]["english_match"] is True

    @pytest.mark.unit
    def test_target_category(self, db):
        """Test the 60-79 band"""
        university = make_university(db, tuition_min=None, gre_requirement=320)

        # CGPA 7.6/9.25 -> 20, IELTS 6.5 -> 30, GRE 300/320 -> 5; 55 of 80
        result = calculate_match_score({"cgpa": 7.6, "ielts_score": 6.5, "gre_score": 300}, university)

        assert result["score"] == 69
        assert result["category"] == "target"


class TestMatching:
    """Tests for match_universities and the match endpoint"""

    @pytest.mark.unit
    def test_filters_by_country_and_field(self, db, universities_batch):
        """Test preferred countries and fields narrow the candidates"""
        student = {
            "cgpa": 9.0, "ielts_score": 7.0,
            "preferred_countries": ["Canada", "UK", "Australia"],
            "preferred_fields": ["computer science"],
        }

        matches = match_universities(db, student)

        names = {m["university"]["name"] for m in matches}
        assert names == {"University of Toronto", "University of Oxford"}

    @pytest.mark.unit
    def test_sorted_best_first(self, db, universities_batch):
        """Test descending score order"""
        matches = match_universities(db, {"cgpa": 9.0, "ielts_score": 6.5, "budget_max": 35000})

        scores = [m["match"]["score"] for m in matches]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.api
    def test_match_endpoint_uses_stored_profile(self, authed_client, universities_batch):
        """Test the caller's academic profile and preferences drive matching"""
        response = authed_client.post("/api/universities/match", json={})

        assert response.status_code == 200
        data = response.json()
        # test_user prefers Canada and UK, Computer Science
        assert {m["university"]["country"] for m in data["matches"]} == {"Canada", "UK"}
        assert data["total"] == 2

    @pytest.mark.api
    def test_match_endpoint_overrides_and_converts_cgpa(self, authed_client, universities_batch):
        """Test request overrides; a 4-point CGPA is rescaled before scoring"""
        response = authed_client.post(
            "/api/universities/match",
            json={"cgpa": 3.8, "preferred_countries": ["Canada"]}
        )

        assert response.status_code == 200
        match = response.json()["matches"][0]
        assert match["university"]["name"] == "University of Toronto"
        assert match["match"]["details"]["cgpa_match"] is True


class TestComparison:
    """Tests for side-by-side university comparison"""

    @pytest.mark.unit
    def test_keeps_request_order_and_drops_repeats(self, db, universities_batch):
        """Test columns follow the requested ids"""
        toronto, oxford, harvard, _ = universities_batch

        result = compare_universities(
            db, [harvard.id, toronto.id, harvard.id], {"cgpa": 9.5, "ielts_score": 7.0}
        )

        assert [u["name"] for u in result["universities"]] == ["Harvard University", "University of Toronto"]
        assert result["comparison"]["ranking_overall"] == [1, 21]
        assert result["comparison"]["currency"] == ["USD", "CAD"]
        assert result["universities"][1]["match"]["details"]["cgpa_match"] is True

    @pytest.mark.unit
    def test_size_and_unknown_ids(self, db, universities_batch):
        """Test too few, too many and unknown ids are rejected"""
        ids = [u.id for u in universities_batch]
        extra = make_university(db, name="ETH Zurich", country="Switzerland", city="Zurich")

        with pytest.raises(ValueError):
            compare_universities(db, [ids[0], ids[0]], {})
        with pytest.raises(ValueError):
            compare_universities(db, ids + [extra.id], {})
        with pytest.raises(LookupError):
            compare_universities(db, [ids[0], "missing-id"], {})
        assert len(ids) == MAX_COMPARE

    @pytest.mark.api
    def test_compare_endpoint_counts_usage(self, authed_client, universities_batch):
        """Test a comparison is recorded against the monthly limit"""
        toronto, oxford, _, _ = universities_batch

        response = authed_client.post("/api/universities/compare", json={"university_ids": [toronto.id, oxford.id]})

        assert response.status_code == 200
        data = response.json()
        assert [u["id"] for u in data["universities"]] == [toronto.id, oxford.id]
        assert data["comparison"]["country"] == ["Canada", "UK"]
        assert data["usage"]["used"] == 1
        assert data["usage"]["remaining"] == 2

    @pytest.mark.api
    def test_free_limit_reached(self, authed_client, db, test_user, universities_batch):
        """Test the fourth comparison in a month is blocked on free"""
        for _ in range(3):
            record_usage(db, test_user.id, "university_comparison")
        ids = [u.id for u in universities_batch[:2]]

        response = authed_client.post("/api/universities/compare", json={"university_ids": ids})

        assert response.status_code == 403
        detail = response.json()["detail"]
        assert detail["limit"] == 3
        assert "Upgrade" in detail["upgrade_message"]

    @pytest.mark.api
    def test_compare_endpoint_errors(self, authed_client, universities_batch):
        """Test unknown ids are a 404 and a single id fails validation"""
        toronto = universities_batch[0]

        unknown = authed_client.post("/api/universities/compare", json={"university_ids": [toronto.id, "nope"]})
        single = authed_client.post("/api/universities/compare", json={"university_ids": [toronto.id]})
        repeated = authed_client.post("/api/universities/compare", json={"university_ids": [toronto.id, toronto.id]})

        assert unknown.status_code == 404
        assert single.status_code == 422
        assert repeated.status_code == 400

class TestAdminUniversities:
    """Admin catalogue maintenance"""

    @pytest.mark.api
    def test_create_requires_admin(self, authed_client):
        """Test students cannot add universities"""
        response = authed_client.post("/api/universities/", json={"name": "X", "country": "US"})
        assert response.status_code == 403

    @pytest.mark.api
    def test_admin_create_update_verify_delete(self, admin_client, db):
        """Test the admin lifecycle of a catalogue row"""
        created = admin_client.post(
            "/api/universities/",
            json={"name": "ETH Zurich", "country": "Switzerland", "city": "Zurich", "tuition_min": 1500}
        )
        assert created.status_code == 201
        university_id = created.json()["university"]["id"]
        assert created.json()["university"]["is_verified"] is True

        updated = admin_client.put(f"/api/universities/{university_id}", json={"ranking_overall": 7})
        assert updated.status_code == 200
        assert updated.json()["university"]["ranking_overall"] == 7

        rejected = admin_client.post(f"/api/universities/{university_id}/verify", json={"approved": False})
        assert rejected.status_code == 200
        assert rejected.json()["university"]["verification_status"] == "rejected"

        deleted = admin_client.delete(f"/api/universities/{university_id}")
        assert deleted.status_code == 200
        assert db.query(University).filter(University.id == university_id).first() is None
