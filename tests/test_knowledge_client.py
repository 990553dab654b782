import pytest

from app.core.config import Settings
from knowledge.client import AzureSearchKnowledgeClient
from tests.fakes import ScriptedInference


class FakeSearchResults:
    def __init__(self, documents):
        self._documents = documents

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for doc in self._documents:
            yield doc


class FakeSearchClient:
    def __init__(self, documents=None, error=None):
        self._documents = documents or []
        self._error = error
        self.searches = []
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True
        return False

    async def search(self, search_text, top):
        self.searches.append((search_text, top))
        if self._error:
            raise self._error
        return FakeSearchResults(self._documents)


DOCUMENTS = [
    {"id": "hr-1", "source": "handbook.pdf", "content": "Employees get 25 days of leave.", "@search.score": 3.2},
    {"id": "hr-2", "source": "faq.md", "content": "Unused leave carries over.", "@search.score": 1.1},
]


def _config(**overrides):
    values = {
        "azure_search_endpoint": "https://search.example.net",
        "azure_search_api_key": "key",
        "knowledge_top_k": 3,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.mark.asyncio
async def test_answer_is_grounded_in_retrieved_documents():
    search = FakeSearchClient(DOCUMENTS)
    inference = ScriptedInference(["You get 25 days [hr-1]."])
    client = AzureSearchKnowledgeClient(inference, config=_config(), search_client_factory=lambda: search)

    response = await client.retrieve("How much leave do I get?")

    assert response.error is None
    assert response.result == "You get 25 days [hr-1]."
    assert [c["id"] for c in response.citations] == ["hr-1", "hr-2"]
    assert response.citations[0]["source"] == "handbook.pdf"
    assert response.citations[0]["score"] == 3.2
    assert search.searches == [("How much leave do I get?", 3)]
    assert search.closed

    call = inference.calls[0]
    assert call["options"] == AzureSearchKnowledgeClient.ANSWER_OPTIONS
    assert "Employees get 25 days of leave." in call["prompt"]
    assert "[hr-2] (faq.md)" in call["prompt"]


@pytest.mark.asyncio
async def test_no_documents_skips_inference():
    inference = ScriptedInference([])
    client = AzureSearchKnowledgeClient(inference, config=_config(), search_client_factory=FakeSearchClient)

    response = await client.retrieve("Unknown topic")

    assert response.error is None
    assert response.result == "No relevant documents found for this question."
    assert inference.calls == []


@pytest.mark.asyncio
async def test_search_failure_is_returned_as_error():
    search = FakeSearchClient(error=RuntimeError("index not found"))
    client = AzureSearchKnowledgeClient(ScriptedInference([]), config=_config(), search_client_factory=lambda: search)

    response = await client.retrieve("Anything")

    assert response.error == "index not found"


@pytest.mark.asyncio
async def test_unconfigured_client_returns_error():
    client = AzureSearchKnowledgeClient(
        ScriptedInference([]),
        config=_config(azure_search_endpoint=None),
        search_client_factory=FakeSearchClient,
    )

    response = await client.retrieve("Anything")

    assert not client.is_configured
    assert response.error


@pytest.mark.asyncio
async def test_connection_probe():
    search = FakeSearchClient(DOCUMENTS)
    client = AzureSearchKnowledgeClient(
        ScriptedInference(["Connection successful"]),
        config=_config(),
        search_client_factory=lambda: search,
    )

    assert await client.test_connection() is True
