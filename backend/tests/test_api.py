"""HTTP surface tests through FastAPI's TestClient with faked providers."""

import pytest
from fastapi.testclient import TestClient

from fakes import FakeFeedClient, FakeLLM, FakeSearch, search_result
from mindcoach.dependencies import (
    get_discover_feed,
    get_llm_client,
    get_search_client,
    get_store,
)
from mindcoach.main import app
from mindcoach.services.discover import DiscoverFeed, FeedSource
from mindcoach.services.errors import ProviderError
from mindcoach.services.store import MemoryKeyValueBackend, Store

DRAFT = {
    "title": "Python Path",
    "milestones": [{"id": 1, "title": "Basics"}, {"id": 2, "title": "Functions"}],
}


@pytest.fixture
def api():
    """Client plus a hook to install fakes as dependency overrides."""
    store = Store(MemoryKeyValueBackend())
    app.dependency_overrides[get_store] = lambda: store

    def install(llm=None, search=None):
        if llm is not None:
            app.dependency_overrides[get_llm_client] = lambda: llm
        if search is not None:
            app.dependency_overrides[get_search_client] = lambda: search

    client = TestClient(app)
    client.install = install
    client.store = store
    yield client
    app.dependency_overrides.clear()


class TestSurface:
    """Test the app shell: health, CORS preflight and error mapping."""

    def test_root_and_health(self, api):
        """Root and /health report the app and an unconfigured provider."""
        assert api.get("/").json()["name"] == "MindCoach API"
        assert api.get("/health").json() == {"status": "ok", "ai_provider": "none"}

    def test_ai_health_unconfigured(self, api):
        """The AI health check reports unconfigured without a key."""
        assert api.get("/api/health/ai").json()["status"] == "unconfigured"

    @pytest.mark.parametrize("path", [
        "/api/chat", "/api/orchestrate", "/api/generate-roadmap", "/api/gather-resources",
        "/api/generate-visual", "/api/discover", "/api/exa-search",
    ])
    def test_preflight(self, api, path):
        """Explicit OPTIONS routes reply 200 with an empty body."""
        response = api.options(path)
        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.parametrize("path", ["/api/chat", "/api/discover", "/api/coach/messages"])
    def test_browser_preflight_has_empty_body(self, api, path):
        """A preflight with Origin and a requested method replies 200 with no body."""
        response = api.options(path, headers={
            "Origin": "http://app.test",
            "Access-Control-Request-Method": "POST",
        })
        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == "*"
        assert "POST" in response.headers["access-control-allow-methods"]

    def test_wrong_method(self, api):
        """A GET on a POST-only route is a 405 with an error body."""
        response = api.get("/api/chat")
        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}

    def test_missing_provider_key(self, api):
        """A missing Anthropic key is a generic 500 configuration error."""
        response = api.post("/api/chat", json={"messages": [{"role": "user", "content": "Hi"}]})
        assert response.status_code == 500
        assert response.json() == {"error": "API configuration error. Please contact support."}

    def test_unexpected_error(self):
        """An unhandled exception becomes a 500 JSON error."""
        def broken_store():
            raise RuntimeError("disk on fire")

        app.dependency_overrides[get_store] = broken_store
        try:
            response = TestClient(app, raise_server_exceptions=False).get("/api/coach/resume")
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"
        assert response.json()["details"] == "disk on fire"


class TestChat:
    """Test the /api/chat endpoint."""

    def test_missing_messages(self, api):
        """A body without messages is a 400."""
        api.install(llm=FakeLLM())
        response = api.post("/api/chat", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "messages is required"}

    def test_invalid_json(self, api):
        """An unparseable body is a 400."""
        api.install(llm=FakeLLM())
        response = api.post("/api/chat", content=b"{oops", headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request format."}

    def test_stream(self, api):
        """Streaming replies are SSE chunks followed by [DONE]."""
        api.install(llm=FakeLLM(stream=[["Hel", "lo"]]))
        response = api.post("/api/chat", json={"messages": [{"role": "user", "content": "Hi"}]})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.text == 'data: {"content": "Hel"}\n\ndata: {"content": "lo"}\n\ndata: [DONE]\n\n'

    def test_stream_failure_is_an_error_event(self, api):
        """A provider failure while streaming ends with one error event."""
        api.install(llm=FakeLLM(stream=[ProviderError("rate limit exceeded")]))
        response = api.post("/api/chat", json={"messages": [{"role": "user", "content": "Hi"}]})
        assert response.status_code == 200
        assert response.text == 'data: {"error": "Too many requests. Please wait a moment and try again."}\n\n'

    def test_single_shot(self, api):
        """stream=false returns one JSON reply using the project agent."""
        llm = FakeLLM(complete=["Hello!"])
        api.install(llm=llm)
        response = api.post("/api/chat", json={
            "messages": [{"role": "user", "content": "Hi"}],
            "stream": False,
            "context": {"projectId": "p1", "weakAreas": ["loops"]},
        })
        assert response.status_code == 200
        assert response.json() == {"response": "Hello!", "model": "fake-model", "reasoning": False, "agent": "project"}
        assert "- Weak areas: loops" in llm.calls["complete"][0]["system"]

    def test_single_shot_timeout(self, api):
        """A provider timeout maps to 504 with details and a timestamp."""
        api.install(llm=FakeLLM(complete=[ProviderError("Anthropic request timeout")]))
        response = api.post("/api/chat", json={"messages": [{"role": "user", "content": "Hi"}], "stream": False})
        assert response.status_code == 504
        body = response.json()
        assert body["error"] == "Request timed out. Please try a shorter message."
        assert "timeout" in body["details"]
        assert "timestamp" in body


class TestOrchestrate:
    """Test the /api/orchestrate endpoint."""

    def test_classification(self, api):
        """The classified intent comes back with its suggested action."""
        api.install(llm=FakeLLM(tool=[{
            "intent": "comparison", "confidence": 0.9, "reasoning": "vs", "extractedTopic": "languages",
        }]))
        response = api.post("/api/orchestrate", json={"message": "Python vs Rust", "context": {"hasActiveProject": True}})
        body = response.json()
        assert body["intent"] == "comparison"
        assert body["suggestedAction"] == {
            "type": "generate_visual",
            "parameters": {"topic": "languages", "visualType": "comparison", "query": "Python vs Rust"},
        }

    def test_outage_degrades(self, api):
        """A provider outage degrades to casual chat instead of an error."""
        api.install(llm=FakeLLM(tool=[ProviderError("down")]))
        body = api.post("/api/orchestrate", json={"message": "hi"}).json()
        assert body["intent"] == "casual_chat"
        assert body["fallback"] is True

    def test_body_required(self, api):
        """An empty body is a 400."""
        api.install(llm=FakeLLM())
        response = api.post("/api/orchestrate")
        assert response.status_code == 400
        assert response.json() == {"error": "Request body is required"}


class TestRoadmap:
    """Test the /api/generate-roadmap endpoint."""

    def test_generate(self, api):
        """A roadmap comes back with fallback links when search is down."""
        api.install(llm=FakeLLM(json=[DRAFT]), search=FakeSearch(error=ProviderError("down")))
        response = api.post("/api/generate-roadmap", json={"topic": "Python", "userLevel": "beginner"})
        assert response.status_code == 200
        body = response.json()
        assert body["roadmap"]["title"] == "Python Path"
        assert len(body["roadmap"]["milestones"][0]["resources"]) == 3
        assert "generatedAt" in body

    def test_revise(self, api):
        """An instruction plus existing milestones asks for a revision."""
        llm = FakeLLM(json=[DRAFT])
        api.install(llm=llm, search=FakeSearch(configured=False))
        response = api.post("/api/generate-roadmap", json={
            "topic": "Python",
            "instruction": "add testing",
            "existingMilestones": [{"id": 1, "title": "Basics"}],
        })
        assert response.status_code == 200
        assert 'User instruction: "add testing"' in llm.calls["complete_json"][0]["messages"][0]["content"]

    def test_topic_required(self, api):
        """A request without a topic is a 400."""
        api.install(llm=FakeLLM(), search=FakeSearch())
        response = api.post("/api/generate-roadmap", json={"userLevel": "beginner"})
        assert response.status_code == 400
        assert response.json() == {"error": "topic is required"}

    def test_failure(self, api):
        """A roadmap that cannot be generated is a 500."""
        api.install(llm=FakeLLM(json=[ProviderError("overloaded")]), search=FakeSearch())
        response = api.post("/api/generate-roadmap", json={"topic": "Python"})
        assert response.status_code == 500
        assert response.json()["error"] == "Failed to generate roadmap"


class TestResources:
    """Test the /api/gather-resources endpoint."""

    def test_gather(self, api):
        """Curated resources are returned and categorised."""
        api.install(
            llm=FakeLLM(json=[{"resources": [{"title": "Course", "url": "https://c", "type": "course"}]}]),
            search=FakeSearch(results=[search_result("Course", "https://c")]),
        )
        response = api.post("/api/gather-resources", json={"topic": "Python", "type": "course", "limit": 3})
        body = response.json()
        assert body["total"] == 1
        assert body["categorized"]["courses"][0]["title"] == "Course"

    def test_search_unconfigured(self, api):
        """Gathering without a search key is a configuration error."""
        api.install(llm=FakeLLM(), search=FakeSearch(configured=False))
        response = api.post("/api/gather-resources", json={"topic": "Python"})
        assert response.status_code == 500
        assert response.json() == {"error": "API configuration error. Please contact support."}

    def test_curation_outage(self, api):
        """A rate-limited curation call is a 429."""
        api.install(
            llm=FakeLLM(json=[ProviderError("rate limit exceeded")]),
            search=FakeSearch(results=[search_result("Course", "https://c")]),
        )
        response = api.post("/api/gather-resources", json={"topic": "Python"})
        assert response.status_code == 429
        assert response.json() == {"error": "Failed to gather resources"}


class TestVisuals:
    """Test the /api/generate-visual endpoint."""

    def test_comparison_chart(self, api):
        """A comparison query returns a bar chart."""
        api.install(llm=FakeLLM(json=[{
            "title": "SQL vs NoSQL",
            "items": [{"name": "Scale", "value": 60, "value2": 90}],
        }]))
        body = api.post("/api/generate-visual", json={"query": "SQL vs NoSQL"}).json()
        assert body["type"] == "comparison-chart"
        assert body["chartType"] == "bar"

    def test_failure(self, api):
        """A failed visual generation is a 500."""
        api.install(llm=FakeLLM(json=[ProviderError("overloaded")]))
        response = api.post("/api/generate-visual", json={"query": "How does DNS work"})
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to generate visual"}


class TestDiscover:
    """Test the /api/discover endpoint."""

    def test_feed(self, api):
        """Feed items are filtered by category and returned."""
        document = (
            '<?xml version="1.0"?><rss version="2.0"><channel>'
            "<item><title>News</title><link>https://n</link>"
            "<pubDate>Wed, 01 May 2024 09:00:00 GMT</pubDate></item></channel></rss>"
        )
        source = FeedSource("https://feed.example/rss", "Example", "Tech")
        app.dependency_overrides[get_discover_feed] = lambda: DiscoverFeed(
            FakeFeedClient({source.url: document}), feeds=[source],
        )
        body = api.get("/api/discover", params={"category": "Tech"}).json()
        assert body["total"] == 1
        assert body["category"] == "Tech"
        assert body["items"][0]["source"] == "Example"
        assert "published_at" in body["items"][0]

    def test_limit_is_validated(self, api):
        """A non-positive limit is a 400."""
        response = api.get("/api/discover", params={"limit": 0})
        assert response.status_code == 400


class TestSearch:
    """Test the /api/exa-search endpoint."""

    def test_results(self, api):
        """Search results are returned with a total."""
        search = FakeSearch(results=[search_result("Docs", "https://docs")])
        api.install(search=search)
        body = api.post("/api/exa-search", json={"query": "python docs", "numResults": 5}).json()
        assert body["total"] == 1
        assert body["results"][0]["url"] == "https://docs"
        assert search.queries == ["python docs"]

    def test_provider_failure(self, api):
        """A failing search provider is a 500."""
        api.install(search=FakeSearch(error=ProviderError("Exa search failed with status 502")))
        response = api.post("/api/exa-search", json={"query": "python"})
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to search with Exa"}


class TestCoach:
    """Test the coach endpoints."""

    def test_message_then_resume(self, api):
        """A general-chat turn becomes the resume point."""
        api.install(
            llm=FakeLLM(tool=[{"intent": "casual_chat", "confidence": 0.9, "reasoning": "hi"}], complete=["Hello"]),
            search=FakeSearch(configured=False),
        )
        reply = api.post("/api/coach/messages", json={"message": "Hi"}).json()
        assert reply["kind"] == "chat"
        assert reply["reply"] == "Hello"

        resume = api.get("/api/coach/resume").json()["resume"]
        assert resume["chatId"] == reply["chatId"]

    def test_nothing_to_resume(self, api):
        """A fresh store has nothing to resume."""
        assert api.get("/api/coach/resume").json() == {"resume": None}

    def test_unknown_chat(self, api):
        """Continuing an unknown chat is a 404."""
        api.install(llm=FakeLLM(tool=[{"intent": "casual_chat", "confidence": 0.9, "reasoning": "hi"}]), search=FakeSearch())
        response = api.post("/api/coach/messages", json={"message": "Hi", "chatId": "chat-x"})
        assert response.status_code == 404
        assert response.json() == {"error": "Chat chat-x not found"}

    def test_project_message_and_analytics(self, api):
        """A project turn shows up in the project analytics."""
        api.install(llm=FakeLLM(complete=["Let's go"]), search=FakeSearch())
        project = api.store.create_project("Python")

        reply = api.post(f"/api/coach/projects/{project.id}/messages", json={"message": "Start"}).json()
        assert reply["agent"] == "project"

        analytics = api.get(f"/api/coach/projects/{project.id}/analytics").json()
        assert analytics["totalChats"] == 1
        assert analytics["totalMessages"] == 2

    def test_unknown_project(self, api):
        """Analytics for an unknown project is a 404."""
        response = api.get("/api/coach/projects/missing/analytics")
        assert response.status_code == 404
        assert response.json() == {"error": "Project missing not found"}
