"""
/api/ai routes with the generation client patched out.
"""

from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest
from starlette.exceptions import HTTPException
from starlette.requests import Request

from careerme.api import ai
from careerme.core.generation import GenerationError
from careerme.core.schema import GenerationResult

QA = {"q1": "粘り強さ", "q2": "障害対応を主導した", "q3": "誠実さ", "q4": "チームリーダー"}


@pytest.fixture
def generation_client():
    """Generation client whose generate() the test scripts."""
    mock_client = Mock()
    with patch("careerme.api.ai.get_generation_client", return_value=mock_client):
        yield mock_client


@pytest.fixture
def failing_generation(generation_client):
    generation_client.generate.side_effect = GenerationError("Missing GEMINI_API_KEY", kind="config")
    return generation_client


@pytest.fixture
def resume_id(client):
    return client.post("/api/data/resume", json={"highestEducation": "大学"}).json()["id"]


def generate_body(resume_id, **extra):
    return dict({"action": "generate", "resumeId": resume_id, "target": "draft", "qa": QA}, **extra)


class TestSelfPr:

    def test_generate(self, client, resume_id, generation_client):
        generation_client.generate.return_value = GenerationResult(text="生成された自己PR", tokens=120)

        response = client.post("/api/ai/selfpr", json=generate_body(resume_id, draft="営業職5年"))

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["correlationId"] == response.headers["x-correlation-id"]
        assert body["data"] == {"target": "draft", "text": "生成された自己PR", "fallback": False,
                                "usage": {"totalTokens": 120}}

        prompt = generation_client.generate.call_args.args[0]
        assert "障害対応を主導した" in prompt
        assert "営業職5年" in prompt
        assert generation_client.generate.call_args.kwargs["temperature"] == 0.4

    def test_generation_failure_falls_back(self, client, resume_id, failing_generation):
        response = client.post("/api/ai/selfpr", json=generate_body(resume_id))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["fallback"] is True
        assert data["text"].startswith("【自己PR（バックアップ）】")
        assert "粘り強さ" in data["text"]
        assert data["usage"] is None

    def test_generate_is_rate_limited(self, client, resume_id, failing_generation, monkeypatch):
        monkeypatch.setattr("careerme.api.ai.AI_RATE_LIMIT", 2)

        for _ in range(2):
            assert client.post("/api/ai/selfpr", json=generate_body(resume_id)).status_code == 200

        response = client.post("/api/ai/selfpr", json=generate_body(resume_id))

        assert response.status_code == 429
        assert response.json()["code"] == "rate_limited"
        assert int(response.headers["retry-after"]) >= 1
        assert failing_generation.generate.call_count == 2

    def test_save_and_load_are_not_rate_limited(self, client, resume_id, monkeypatch):
        monkeypatch.setattr("careerme.api.ai.AI_RATE_LIMIT", 1)

        for text in ("一回目", "二回目", "三回目"):
            response = client.post("/api/ai/selfpr", json={
                "action": "save", "resumeId": resume_id, "target": "final", "text": text,
            })
            assert response.status_code == 200

        response = client.post("/api/ai/selfpr", json={"action": "load", "resumeId": resume_id, "target": "final"})
        assert response.json()["data"]["text"] == "三回目"

        response = client.post("/api/ai/selfpr", json={"action": "load", "resumeId": resume_id, "target": "draft"})
        assert response.json()["data"]["text"] == ""

    def test_save_to_foreign_resume(self, resume_id, other_client):
        response = other_client.post("/api/ai/selfpr", json={
            "action": "save", "resumeId": resume_id, "target": "draft", "text": "本文",
        })
        assert response.status_code == 404

    def test_unknown_action(self, client, resume_id):
        response = client.post("/api/ai/selfpr", json={"action": "publish", "resumeId": resume_id, "target": "draft"})

        assert response.status_code == 400
        assert response.json()["code"] == "invalid_request"

    def test_unhandled_payload_type_is_rejected(self):
        request = Request({"type": "http", "method": "POST", "path": "/api/ai/selfpr", "headers": []})
        payload = SimpleNamespace(action="publish", resumeId="d1", target="draft")

        with pytest.raises(HTTPException) as exc_info:
            ai.selfpr(request, payload)

        assert exc_info.value.status_code == 400


class TestSummary:

    def test_summary_is_saved_on_resume(self, client, resume_id, generation_client):
        generation_client.generate.return_value = GenerationResult(text="法人営業として10年の経験。")

        response = client.post("/api/ai/summary", json={
            "resumeId": resume_id, "role": "営業", "years": 10, "headlineKeywords": ["法人営業"],
        })

        assert response.json() == {"ok": True, "text": "法人営業として10年の経験。", "saved": True,
                                   "fallback": False, "resumeId": resume_id, "warn": None}
        resume = client.get("/api/data/resume", params={"id": resume_id}).json()
        assert resume["summary"] == "法人営業として10年の経験。"

        prompt = generation_client.generate.call_args.args[0]
        assert "■ロール: 営業" in prompt
        assert "■経験年数: 約10年" in prompt

    def test_summary_fallback(self, client, resume_id, failing_generation):
        response = client.post("/api/ai/summary", json={"resumeId": resume_id, "role": "エンジニア", "years": 3})

        body = response.json()
        assert response.status_code == 200
        assert body["fallback"] is True
        assert body["saved"] is True
        assert "エンジニアとして約3年の経験があります。" in body["text"]

    def test_summary_for_unknown_resume_is_not_saved(self, client, failing_generation):
        body = client.post("/api/ai/summary", json={"resumeId": "missing"}).json()

        assert body["saved"] is False
        assert body["warn"]


class TestResumeText:

    def test_resume_text(self, client, resume_id, generation_client):
        generation_client.generate.return_value = GenerationResult(text="履歴書本文です。")

        response = client.post("/api/ai/resume", json={"resumeId": resume_id, "role": "営業"})

        assert response.json() == {"content": "履歴書本文です。", "fallback": False}
        assert generation_client.generate.call_args.kwargs["max_output_tokens"] == 1024

    def test_resume_text_fallback(self, client, resume_id, failing_generation):
        response = client.post("/api/ai/resume", json={"resumeId": resume_id, "role": "営業", "years": 2.5})

        body = response.json()
        assert body["fallback"] is True
        assert "志望ロール: 営業" in body["content"]
        assert "経験年数: 約2.5年" in body["content"]

    def test_invalid_request(self, client):
        response = client.post("/api/ai/resume", json={"resumeId": ""})
        assert response.status_code == 400
