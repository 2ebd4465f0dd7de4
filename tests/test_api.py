"""
Tests for the HTTP surface in osquery_rag/main.py.
"""

import json
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from osquery_rag.errors import GenerationError, IndexBuildError
from osquery_rag.main import PROCESSING_FAILED, QUERY_NOT_PROVIDED, create_app
from osquery_rag.rag_engine import RAGEngine

from tests.conftest import VALID_BUNDLE, CapturingGenerator, StubRetriever

BUNDLE_FIELDS = {"macOSQuery", "windowsQuery", "linuxQuery", "chromeOSQuery"}


def make_client(response=None, error=None, retriever=None):
    generator = CapturingGenerator(response=response, error=error)
    engine = RAGEngine(retriever or StubRetriever(), generator)
    app = create_app(engine)
    app.config["TESTING"] = True
    return app.test_client(), generator


class TestQuerySuccess:

    def test_returns_four_string_fields(self, client):
        resp = client.post("/query", json={"query": "Which hosts have Chrome installed?"})
        assert resp.status_code == 200
        body = resp.get_json()
        assert set(body) == BUNDLE_FIELDS
        assert all(isinstance(v, str) for v in body.values())

    def test_body_round_trips_through_json(self, client):
        resp = client.post("/query", json={"query": "Which hosts have Chrome installed?"})
        body = resp.get_json()
        assert json.loads(json.dumps(body)) == body
        assert body == VALID_BUNDLE

    def test_empty_platform_queries_are_kept(self):
        bundle = dict(VALID_BUNDLE, windowsQuery="", linuxQuery="")
        client, _ = make_client(response=json.dumps(bundle))
        resp = client.post("/query", json={"query": "Is FileVault enabled?"})
        assert resp.status_code == 200
        assert resp.get_json() == bundle

    def test_question_is_stripped_before_use(self, client, retriever):
        client.post("/query", json={"query": "  list users  "})
        assert retriever.calls[0][0] == "list users"


class TestMissingQuery:

    def test_empty_object_is_rejected(self, client, generator):
        resp = client.post("/query", json={})
        assert resp.status_code == 400
        assert resp.get_json() == {"error": QUERY_NOT_PROVIDED}
        assert generator.prompts == []

    @pytest.mark.parametrize("body", [{"query": ""}, {"query": "   "}, {"query": None}, {"query": 42}])
    def test_blank_or_non_string_query_is_rejected(self, client, generator, body):
        resp = client.post("/query", json=body)
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Query not provided"}
        assert generator.prompts == []

    def test_non_json_body_is_rejected(self, client, generator):
        resp = client.post("/query", data="not json", content_type="text/plain")
        assert resp.status_code == 400
        assert resp.get_json() == {"error": QUERY_NOT_PROVIDED}
        assert generator.prompts == []

    def test_json_array_body_is_rejected(self, client):
        resp = client.post("/query", json=["list users"])
        assert resp.status_code == 400


class TestPipelineFailures:

    def test_plain_sql_output_is_a_server_error(self):
        client, _ = make_client(response="SELECT * FROM x")
        resp = client.post("/query", json={"query": "list processes"})
        assert resp.status_code == 500
        assert resp.get_json() == {"error": PROCESSING_FAILED}

    def test_missing_field_is_a_server_error(self):
        partial = {k: v for k, v in VALID_BUNDLE.items() if k != "chromeOSQuery"}
        client, _ = make_client(response=json.dumps(partial))
        resp = client.post("/query", json={"query": "list processes"})
        assert resp.status_code == 500
        assert resp.get_json() == {"error": PROCESSING_FAILED}

    def test_code_fenced_output_is_not_repaired(self):
        fenced = "```json\n" + json.dumps(VALID_BUNDLE) + "\n```"
        client, _ = make_client(response=fenced)
        resp = client.post("/query", json={"query": "list processes"})
        assert resp.status_code == 500

    def test_generation_error_detail_is_not_leaked(self):
        client, _ = make_client(error=GenerationError("provider said: secret-key invalid"))
        resp = client.post("/query", json={"query": "list processes"})
        assert resp.status_code == 500
        assert resp.get_json() == {"error": PROCESSING_FAILED}
        assert b"secret" not in resp.data

    def test_retrieval_failure_is_a_server_error(self):
        class BrokenRetriever(StubRetriever):
            def retrieve(self, text, top_k=3):
                raise IndexBuildError("The index has been closed")

        client, generator = make_client(retriever=BrokenRetriever())
        resp = client.post("/query", json={"query": "list processes"})
        assert resp.status_code == 500
        assert generator.prompts == []

    def test_unexpected_exception_is_a_server_error(self):
        client, _ = make_client(error=RuntimeError("boom"))
        resp = client.post("/query", json={"query": "list processes"})
        assert resp.status_code == 500
        assert resp.get_json() == {"error": PROCESSING_FAILED}

    def test_failures_are_logged(self, caplog):
        client, _ = make_client(response="SELECT * FROM x")
        with caplog.at_level("ERROR"):
            client.post("/query", json={"query": "list processes"})
        assert "SELECT * FROM x" in caplog.text


class TestPromptCapture:

    def test_prompts_differ_only_in_the_question(self, client, generator):
        first, second = "Which hosts have Chrome installed?", "Is the firewall enabled?"
        client.post("/query", json={"query": first})
        client.post("/query", json={"query": second})

        p1, p2 = generator.prompts
        assert p1.endswith(first)
        assert p2.endswith(second)
        assert p1[: -len(first)] == p2[: -len(second)]


class TestMisc:

    def test_healthcheck(self, client):
        resp = client.get("/healthcheck")
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "ok"}

    def test_any_origin_is_allowed(self, client):
        resp = client.post(
            "/query",
            json={"query": "list users"},
            headers={"Origin": "https://console.example.com"},
        )
        assert resp.headers.get("Access-Control-Allow-Origin") in ("*", "https://console.example.com")

    def test_restricted_origins(self, engine):
        app = create_app(engine, cors_origins=["https://console.example.com"])
        client = app.test_client()
        resp = client.get("/healthcheck", headers={"Origin": "https://evil.example.net"})
        assert "Access-Control-Allow-Origin" not in resp.headers

    def test_wrong_method_is_not_a_server_error(self, client):
        resp = client.get("/query")
        assert resp.status_code == 405


class TestConcurrentRequests:

    def test_slow_generation_does_not_block_other_requests(self):
        n = 4
        all_in_flight = threading.Barrier(n, timeout=10)
        release = threading.Event()

        class SlowGenerator(CapturingGenerator):
            def generate(self, prompt):
                # every request must reach the model before any is released
                all_in_flight.wait()
                assert release.wait(timeout=10)
                return super().generate(prompt)

        retriever = StubRetriever()
        generator = SlowGenerator()
        app = create_app(RAGEngine(retriever, generator))

        def ask(i):
            with app.test_client() as client:
                return client.post("/query", json={"query": f"question {i}"})

        with ThreadPoolExecutor(max_workers=n) as pool:
            futures = [pool.submit(ask, i) for i in range(n)]
            release.set()
            responses = [f.result(timeout=20) for f in futures]

        assert [r.status_code for r in responses] == [200] * n
        assert all(r.get_json() == VALID_BUNDLE for r in responses)
        assert sorted(text for text, _ in retriever.calls) == [f"question {i}" for i in range(n)]
        assert len(generator.prompts) == n
