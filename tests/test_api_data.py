"""
/api/data routes and /api/healthz against the in-memory store.
"""

import logging
import uuid
from unittest.mock import Mock

import pytest

from careerme.core import record_store
from careerme.core.record_store import DocumentStore

BASIC_INFO = {"lastName": "山田", "firstName": "太郎", "dob": {"year": 1990, "month": 4, "day": 1}, "gender": "male"}


@pytest.fixture
def resume_id(client):
    response = client.post("/api/data/resume", json={"basicInfo": BASIC_INFO})
    assert response.status_code == 200
    return response.json()["id"]


class TestHealth:

    def test_healthz(self, client):
        response = client.get("/api/healthz")

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["env"] == "dev"
        assert "time" in body
        assert response.headers["x-correlation-id"]

    def test_inbound_correlation_id_is_echoed(self, client):
        correlation_id = str(uuid.uuid4())
        response = client.get("/api/healthz", headers={"x-correlation-id": correlation_id})
        assert response.headers["x-correlation-id"] == correlation_id

    def test_unknown_route_uses_error_shape(self, client):
        response = client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.json()["code"] == "not_found"
        assert response.json()["correlationId"] == response.headers["x-correlation-id"]


class TestResume:

    def test_get_without_resume_sets_cookie(self, client):
        response = client.get("/api/data/resume")

        assert response.status_code == 200
        assert response.json()["id"] is None
        assert "anon_key=" in response.headers["set-cookie"]

    def test_save_and_load(self, client, resume_id):
        client.post("/api/data/resume", json={"id": resume_id, "highestEducation": "大学"})

        body = client.get("/api/data/resume", params={"id": resume_id}).json()

        assert body["id"] == resume_id
        assert body["basicInfo"]["lastName"] == "山田"
        assert body["highestEducation"] == "大学"

    def test_empty_update_rejected(self, client):
        response = client.post("/api/data/resume", json={})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "invalid_request"
        assert "更新内容がありません" in body["message"]

    def test_invalid_json(self, client):
        response = client.post("/api/data/resume", content="{not json",
                               headers={"content-type": "application/json"})

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_json"

    def test_other_browser_cannot_read(self, resume_id, other_client):
        response = other_client.get("/api/data/resume", params={"id": resume_id})

        assert response.status_code == 200
        assert response.json()["basicInfo"] is None

    def test_other_browser_cannot_overwrite(self, resume_id, other_client):
        response = other_client.post("/api/data/resume", json={"id": resume_id, "summary": "乗っ取り"})
        assert response.status_code == 404

    def test_record_by_store_id_without_store(self, client):
        response = client.get("/api/data/resumes/recAnything")

        assert response.status_code == 200
        assert response.json() is None


class TestEducation:

    def test_replace_list_and_delete(self, client, resume_id):
        items = [
            {"schoolName": "東京大学", "faculty": "工学部", "start": "2010-04", "end": "2014-03"},
            {"schoolName": "東京大学大学院", "start": "2014-04", "present": True},
        ]
        response = client.post("/api/data/education", json={"draftId": resume_id, "items": items})
        assert response.json() == {"ok": True, "count": 2}

        listed = client.get("/api/data/education", params={"draftId": resume_id}).json()["items"]
        assert [item["schoolName"] for item in listed] == ["東京大学", "東京大学大学院"]
        assert listed[1]["present"] is True
        assert listed[1]["end"] == ""

        response = client.request("DELETE", "/api/data/education", json={"id": listed[0]["id"]})
        assert response.json() == {"ok": True}

        listed = client.get("/api/data/education", params={"draftId": resume_id}).json()["items"]
        assert [item["schoolName"] for item in listed] == ["東京大学大学院"]

    def test_invalid_dates(self, client, resume_id):
        items = [{"schoolName": "東京大学", "start": "2014-04", "end": "2010-03"}]
        response = client.post("/api/data/education", json={"draftId": resume_id, "items": items})

        assert response.status_code == 400
        assert "終了年月は開始年月以降を入力してください" in response.json()["message"]

    def test_missing_draft_id(self, client):
        response = client.get("/api/data/education")
        assert response.status_code == 400

    def test_foreign_resume_is_not_found(self, resume_id, other_client):
        response = other_client.get("/api/data/education", params={"draftId": resume_id})

        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    def test_foreign_row_cannot_be_deleted(self, client, resume_id, other_client):
        items = [{"schoolName": "東京大学", "start": "2010-04"}]
        client.post("/api/data/education", json={"draftId": resume_id, "items": items})
        row_id = client.get("/api/data/education", params={"draftId": resume_id}).json()["items"][0]["id"]

        response = other_client.delete("/api/data/education", params={"id": row_id})
        assert response.status_code == 404


class TestExperience:

    def test_replace_with_draft_id_alias(self, client, resume_id):
        items = [{"companyName": "株式会社A", "jobTitle": "営業", "start": "2015-04", "present": True,
                  "description": "法人営業"}]

        response = client.post("/api/data/experience", json={"draftId": resume_id, "items": items})
        assert response.json() == {"ok": True, "count": 1}

        listed = client.get("/api/data/experience", params={"resumeId": resume_id}).json()["items"]
        assert listed[0]["companyName"] == "株式会社A"
        assert listed[0]["present"] is True


class TestWork:

    def test_upsert_list_and_delete(self, client, resume_id):
        first = client.post("/api/data/work", json={
            "resumeId": resume_id,
            "data": {"company": "株式会社A", "startYm": "2015-04", "endYm": "2018-03", "roles": ["営業"]},
        }).json()
        second = client.post("/api/data/work", json={
            "resumeId": resume_id,
            "data": {"company": "株式会社B", "startYm": "2018-04"},
        }).json()

        listed = client.get("/api/data/work", params={"resumeId": resume_id}).json()["items"]
        assert [item["company"] for item in listed] == ["株式会社B", "株式会社A"]

        client.post("/api/data/work", json={
            "id": first["id"],
            "resumeId": resume_id,
            "data": {"company": "株式会社A (改)", "startYm": "2015-04"},
        })
        listed = client.get("/api/data/work", params={"resumeId": resume_id}).json()["items"]
        assert listed[1]["company"] == "株式会社A (改)"

        assert client.delete("/api/data/work", params={"id": second["id"]}).json() == {"ok": True}
        listed = client.get("/api/data/work", params={"resumeId": resume_id}).json()["items"]
        assert len(listed) == 1

    def test_update_unknown_row(self, client, resume_id):
        response = client.post("/api/data/work", json={
            "id": "recUnknown",
            "resumeId": resume_id,
            "data": {"company": "株式会社A", "startYm": "2015-04"},
        })
        assert response.status_code == 404


class TestLookups:

    def test_lookups_without_store(self, client):
        body = client.get("/api/data/lookups", params={"type": "certifications"}).json()
        assert body == {"ok": True, "records": [], "options": []}


class TestRequestLogging:

    def test_store_log_lines_carry_correlation_id(self, client, store_env, fake_response, monkeypatch, caplog):
        session = Mock()
        session.request.return_value = fake_response(200, {"records": []})
        monkeypatch.setattr(record_store, "_store", DocumentStore(session=session, sleep=lambda seconds: None))
        correlation_id = str(uuid.uuid4())

        with caplog.at_level(logging.INFO, logger="careerme"):
            response = client.get("/api/data/resume", params={"id": "d1"},
                                  headers={"x-correlation-id": correlation_id})

        assert response.status_code == 200
        store_lines = [r.getMessage() for r in caplog.records if "Operation: store.get" in r.getMessage()]
        assert store_lines
        assert all(correlation_id in line for line in store_lines)
