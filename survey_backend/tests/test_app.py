import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from survey_backend.app import create_app
from survey_backend.config import Settings, get_settings
from survey_backend.db import InMemorySurveyStore
from survey_backend.dependencies import (
    get_ai_service,
    get_ai_service_for_status,
    get_knowledge_base,
    get_survey_store,
)
from survey_backend.errors import ConfigurationError
from survey_backend.knowledge import (
    InMemoryKnowledgeBase,
    NewEntryMetadata,
    NewKnowledgeEntry,
)
from survey_backend.tests.fakes import FakeAIService


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self.settings = Settings(
            _env_file=None,
            app_env="development",
            use_in_memory_backends=True,
            openai_api_key="sk-live-secret",
        )
        self.kb = InMemoryKnowledgeBase(partitions=["user_info", "company_values"])
        self.store = InMemorySurveyStore()
        self.ai = FakeAIService()

        app = create_app(self.settings)
        app.dependency_overrides[get_settings] = lambda: self.settings
        app.dependency_overrides[get_knowledge_base] = lambda: self.kb
        app.dependency_overrides[get_survey_store] = lambda: self.store
        app.dependency_overrides[get_ai_service] = lambda: self.ai
        app.dependency_overrides[get_ai_service_for_status] = lambda: self.ai
        self.app = app
        self.client = TestClient(app)

    def add_entry(self, content, table="knowledge_base"):
        response = self.client.post(
            "/api/knowledge/entries",
            json={"content": content, "metadata": {"source": "test", "table": table}},
        )
        self.assertEqual(response.status_code, 201)
        return response.json()

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["status"], "ok")
        self.assertEqual(payload["environment"], "development")

    def test_add_and_list_entries(self):
        entry = self.add_entry("Openness relates to curiosity")
        self.assertEqual(entry["metadata"]["table"], "knowledge_base")

        response = self.client.get("/api/knowledge/model/knowledge_base")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["count"], 1)
        self.assertEqual(payload["entries"][0]["id"], entry["id"])

    def test_add_entry_rejects_unknown_fields(self):
        response = self.client.post(
            "/api/knowledge/entries",
            json={"content": "x", "metadata": {"table": "knowledge_base"}, "id": "1"},
        )
        self.assertEqual(response.status_code, 422)

    def test_missing_partition_is_server_error(self):
        response = self.client.get("/api/knowledge/model/nope")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["partition"], "nope")

    def test_invalid_partition_is_bad_request(self):
        response = self.client.get("/api/knowledge/model/bad-name")
        self.assertEqual(response.status_code, 400)

    def test_search_respects_limit(self):
        for i in range(3):
            self.add_entry(f"career note {i}")
        response = self.client.get(
            "/api/knowledge/search", params={"query": "CAREER", "limit": 2}
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["partition"], "knowledge_base")
        self.assertEqual(payload["count"], 2)

        response = self.client.get("/api/knowledge/search", params={"query": ""})
        self.assertEqual(response.status_code, 422)

    def test_update_and_delete_item(self):
        entry = self.add_entry("old")
        response = self.client.patch(
            f"/api/knowledge/item/{entry['id']}", json={"content": "new"}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["content"], "new")

        response = self.client.patch(f"/api/knowledge/item/{entry['id']}", json={})
        self.assertEqual(response.status_code, 400)

        response = self.client.patch("/api/knowledge/item/missing", json={"content": "x"})
        self.assertEqual(response.status_code, 404)

        response = self.client.delete(f"/api/knowledge/item/{entry['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["success"])
        self.assertEqual(self.kb.get_entries("knowledge_base"), [])

    def test_stats(self):
        self.add_entry("x")
        response = self.client.get("/api/knowledge/stats")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["status"]["entry_count"], 1)
        self.assertEqual(payload["config"]["type"], "memory")

    def test_company_values(self):
        response = self.client.post(
            "/api/knowledge/company-values",
            json={
                "companyName": "Acme",
                "values": [
                    {
                        "title": "Ownership",
                        "description": "Own the outcome",
                        "whatIs": "Taking responsibility",
                        "whyImportant": "Trust",
                        "howToDo": "Follow through",
                    }
                ],
            },
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["added_count"], 1)
        entries = self.kb.get_entries("company_values")
        self.assertEqual(len(entries), 1)
        self.assertIn("# Acme - Ownership", entries[0].content)
        self.assertEqual(entries[0].metadata.source, "company_values:Acme")

    def test_ai_status_redacts_key(self):
        response = self.client.get("/api/ai/status")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["status"]["status"], "available")
        self.assertEqual(payload["config"]["api_key"], "***")
        self.assertNotIn("sk-test-secret", response.text)

    def test_ai_health(self):
        self.ai.available = False
        response = self.client.get("/api/ai/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "degraded")

    def test_ai_health_without_provider_config(self):
        del self.app.dependency_overrides[get_ai_service_for_status]
        with patch(
            "survey_backend.dependencies.get_ai_service",
            side_effect=ConfigurationError("OPENAI_API_KEY is required"),
        ), patch(
            "survey_backend.dependencies.get_settings", return_value=self.settings
        ):
            response = self.client.get("/api/ai/health")
            status_response = self.client.get("/api/ai/status")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["status"], "degraded")
        self.assertEqual(payload["services"]["ai"]["status"], "unavailable")
        self.assertIn("OPENAI_API_KEY", payload["services"]["ai"]["message"])
        self.assertFalse(payload["capabilities"]["ai_analysis"])
        self.assertTrue(payload["capabilities"]["knowledge_base"])

        self.assertEqual(status_response.status_code, 200)
        status = status_response.json()
        self.assertEqual(status["status"]["status"], "unavailable")
        self.assertNotIn("sk-live-secret", status_response.text)

    def test_generate_analysis(self):
        entry = self.add_entry("Extraverts gain energy from people")
        response = self.client.post(
            "/api/analysis/generate",
            json={"userId": "u1", "userAnswers": {"mbti": {"q1": "E"}}},
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["analysis"], "Analysis text")
        self.assertEqual(payload["knowledge_sources"], [entry["id"]])
        self.assertEqual(self.ai.requests[0].model, self.settings.ai_model)

        record = self.store.get_analysis_result(payload["analysis_id"])
        self.assertEqual(record.user_id, "u1")
        self.assertEqual(record.model_code, "knowledge_base")
        self.assertEqual(record.summary, "Analysis text")
        self.assertEqual(record.result["knowledge_sources"], [entry["id"]])

    def test_generate_analysis_defaults_to_knowledge_base_partition(self):
        self.kb = InMemoryKnowledgeBase(default_partition="reference")
        self.kb.add_entry(
            NewKnowledgeEntry(
                content="Reference note",
                metadata=NewEntryMetadata(source="test", table="reference"),
            )
        )
        response = self.client.post(
            "/api/analysis/generate", json={"userAnswers": {"mbti": {"q1": "E"}}}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()["knowledge_sources"]), 1)
        record = self.store.get_analysis_result(response.json()["analysis_id"])
        self.assertEqual(record.model_code, "reference")
        self.assertIsNone(record.user_id)

    def test_generate_analysis_provider_failure(self):
        self.ai.error = "rate limited"
        response = self.client.post(
            "/api/analysis/generate", json={"userAnswers": {"mbti": {"q1": "E"}}}
        )
        self.assertEqual(response.status_code, 502)
        self.assertIn("rate limited", response.json()["detail"])
        self.assertEqual(self.store.analysis_results, {})

    def test_generate_analysis_without_provider_config(self):
        def unconfigured():
            raise ConfigurationError("OPENAI_API_KEY is required for OpenAIService")

        self.app.dependency_overrides[get_ai_service] = unconfigured
        response = self.client.post(
            "/api/analysis/generate", json={"userAnswers": {"mbti": {"q1": "E"}}}
        )
        self.assertEqual(response.status_code, 503)

    def submit(self, gender="F"):
        model = self.store.add_model("mbti", "MBTI")
        self.store.add_question(model.id, "mbti_1", "E or I?")
        response = self.client.post(
            "/api/submit-test",
            json={
                "userInfo": {"name": "Ann", "gender": gender},
                "mbti": {"mbti_1": "E"},
            },
        )
        self.assertEqual(response.status_code, 200)
        return response.json()

    def generate(self, user_id, result="# Overview\nDetails"):
        self.ai.result = result
        response = self.client.post(
            "/api/analysis/generate",
            json={"userId": user_id, "userAnswers": {"mbti": {"mbti_1": "E"}}},
        )
        self.assertEqual(response.status_code, 200)
        return response.json()["analysis_id"]

    def test_latest_analysis(self):
        user_id = self.submit()["user_survey_id"]
        response = self.client.get(f"/api/analysis/user/{user_id}")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["status"], "processing")
        self.assertIsNone(payload["analysis"])
        self.assertIsNotNone(payload["submitted_at"])

        with patch("survey_backend.db.time") as clock:
            clock.time.side_effect = [100.0, 200.0]
            self.generate(user_id, "# First\nold")
            latest_id = self.generate(user_id, "# Second\nnew")

        response = self.client.get(f"/api/analysis/user/{user_id}")
        payload = response.json()
        self.assertEqual(payload["status"], "completed")
        self.assertEqual(payload["analysis"]["id"], latest_id)
        self.assertEqual(payload["analysis"]["summary"], "Second")
        self.assertEqual(payload["analysis"]["analysis"], "# Second\nnew")
        self.assertEqual(payload["analysis"]["metadata"]["tokens_used"], 10)

    def test_latest_analysis_unknown_user(self):
        response = self.client.get("/api/analysis/user/nobody")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["detail"], "Analysis not found")

    def test_get_analysis_by_id(self):
        analysis_id = self.generate("u1")
        response = self.client.get(f"/api/analysis/{analysis_id}")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["user_id"], "u1")
        self.assertEqual(payload["model_code"], "knowledge_base")
        self.assertEqual(payload["summary"], "Overview")

        response = self.client.get("/api/analysis/missing")
        self.assertEqual(response.status_code, 404)

    def test_analysis_history_pagination(self):
        with patch("survey_backend.db.time") as clock:
            clock.time.side_effect = [100.0, 200.0, 300.0]
            ids = [self.generate("u1", f"Report {i}") for i in range(3)]
        self.generate("u2")

        response = self.client.get(
            "/api/analysis/user/u1/history", params={"limit": 2}
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual([h["id"] for h in payload["history"]], [ids[2], ids[1]])
        self.assertEqual(payload["history"][0]["summary"], "Report 2")
        self.assertEqual(
            payload["pagination"],
            {"total": 3, "limit": 2, "offset": 0, "has_more": True},
        )

        response = self.client.get(
            "/api/analysis/user/u1/history", params={"limit": 2, "offset": 2}
        )
        payload = response.json()
        self.assertEqual([h["id"] for h in payload["history"]], [ids[0]])
        self.assertFalse(payload["pagination"]["has_more"])

        response = self.client.get(
            "/api/analysis/user/u1/history", params={"limit": 0}
        )
        self.assertEqual(response.status_code, 422)

    def test_analysis_summary(self):
        user_id = self.submit()["user_survey_id"]
        response = self.client.get(f"/api/analysis/user/{user_id}/summary")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            {"status": "no_analysis", "user_info": None, "overview": None},
        )

        self.add_entry("Extraverts gain energy from people")
        self.generate(user_id)
        response = self.client.get(f"/api/analysis/user/{user_id}/summary")
        payload = response.json()
        self.assertEqual(payload["status"], "completed")
        self.assertEqual(payload["user_info"]["name"], "Ann")
        self.assertEqual(payload["overview"]["summary"], "Overview")
        self.assertEqual(payload["overview"]["knowledge_sources_count"], 1)

    def test_survey_endpoints(self):
        response = self.client.get("/api/survey/models")
        self.assertEqual(response.status_code, 404)

        model = self.store.add_model("mbti", "MBTI")
        self.store.add_question(model.id, "mbti_1", "E or I?", options=["E", "I"])

        response = self.client.get("/api/survey/models")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["models"][0]["code"], "mbti")

        response = self.client.get("/api/survey/model", params={"code": "mbti"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["questions"][0]["options"], ["E", "I"])

        response = self.client.get("/api/survey-questions", params={"model": "mbti"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["model"]["name"], "MBTI")

        response = self.client.get("/api/survey/model", params={"code": "nope"})
        self.assertEqual(response.status_code, 404)

    def test_survey_model_without_questions(self):
        self.store.add_model("disc", "DISC")
        response = self.client.get("/api/survey/model", params={"code": "disc"})
        self.assertEqual(response.status_code, 404)

    def test_submit_test(self):
        payload = self.submit(gender="F")
        self.assertEqual(payload["saved_answers"], {"mbti": 1})
        self.assertEqual(len(self.store.list_answers(payload["user_survey_id"])), 1)
        survey = self.store.get_user_survey(payload["user_survey_id"])
        self.assertEqual(survey.profile["gender"], "female")

    def test_user_info_roundtrip(self):
        response = self.client.post(
            "/api/user/info", json={"name": "Li", "gender": "男", "age": 30}
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["gender"], "male")
        self.assertIn("submit_time", data)

        response = self.client.get(f"/api/user/info/{data['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["name"], "Li")

        response = self.client.get("/api/user/info/unknown")
        self.assertEqual(response.status_code, 404)

    def test_malformed_user_info_is_not_found(self):
        for content in ("plain text", '["a", "b"]', '"just a string"'):
            entry = self.add_entry(content, table="user_info")
            response = self.client.get(f"/api/user/info/{entry['id']}")
            self.assertEqual(response.status_code, 404, content)
            self.assertEqual(response.json()["detail"], "User info not found")

    def test_config_check(self):
        response = self.client.get("/api/config/check")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["ai"]["openai_api_key"], "configured")
        self.assertEqual(payload["ai"]["gemini_api_key"], "missing")
        self.assertNotIn("sk-live-secret", response.text)

        self.settings.app_env = "production"
        response = self.client.get("/api/config/check")
        self.assertEqual(response.status_code, 404)

    def test_db_check(self):
        response = self.client.get("/api/test/db")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["status"], "available")

        self.kb.partitions.pop("knowledge_base")
        response = self.client.get("/api/test/db")
        self.assertEqual(response.status_code, 503)


if __name__ == "__main__":
    unittest.main()
