import pytest
from fastapi.testclient import TestClient

from app.dependencies import get_agent, get_inference_client, get_knowledge_client, get_provider_manager
from app.main import app
from knowledge.client import KnowledgeClient, KnowledgeResponse
from orchestration.state import AgentRunResult, RunState
from schemas.step import ExecutionStep
from tests.fakes import FakeToolManager, ScriptedInference


class StubAgent:
    def __init__(self):
        self.queries = []

    async def run(self, user_query):
        self.queries.append(user_query)
        step = ExecutionStep(id="step_1", type="tool_call", tool="search_issues", reasoning="Find issues")
        step.start()
        step.complete([{"key": "PROJ-1"}])
        return AgentRunResult(query=user_query, answer="One issue found.", state=RunState.COMPLETED, steps=[step])


@pytest.fixture
def agent():
    return StubAgent()


@pytest.fixture
def client(agent):
    app.dependency_overrides[get_agent] = lambda: agent
    app.dependency_overrides[get_provider_manager] = lambda: FakeToolManager({"search_issues": []})
    app.dependency_overrides[get_inference_client] = lambda: ScriptedInference(["connection successful"])
    app.dependency_overrides[get_knowledge_client] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_query_returns_answer_and_step_summaries(client, agent):
    response = client.post("/v1/query", json={"query": "Open issues?"})

    assert response.status_code == 200
    body = response.json()
    assert body["answer"] == "One issue found."
    assert body["state"] == "completed"
    assert body["total_steps"] == 1
    assert body["successful_steps"] == 1
    assert body["steps"][0] == {
        "id": "step_1",
        "type": "tool_call",
        "tool": "search_issues",
        "query": None,
        "reasoning": "Find issues",
        "status": "completed",
        "error": None,
    }
    assert agent.queries == ["Open issues?"]


def test_empty_query_is_rejected(client):
    response = client.post("/v1/query", json={"query": ""})
    assert response.status_code == 422


def test_tools_lists_connected_catalog(client):
    response = client.get("/v1/tools")

    assert response.status_code == 200
    assert response.json() == {
        "providers": ["atlassian"],
        "tools": [{"name": "search_issues", "description": "search_issues tool", "provider": "atlassian"}],
    }


class UnreachableKnowledge(KnowledgeClient):
    async def retrieve(self, question):
        return KnowledgeResponse(result="", error="index unavailable")


def test_status_reports_collaborators(client):
    response = client.get("/v1/status")

    assert response.status_code == 200
    body = response.json()
    assert body["inference"] is True
    assert body["knowledge"] is None
    assert body["providers"] == ["atlassian"]
    assert body["timestamp"]


def test_status_reports_failed_probes(client):
    app.dependency_overrides[get_inference_client] = lambda: ScriptedInference([RuntimeError("401 Unauthorized")])
    app.dependency_overrides[get_knowledge_client] = lambda: UnreachableKnowledge()

    body = client.get("/v1/status").json()

    assert body["inference"] is False
    assert body["knowledge"] is False
