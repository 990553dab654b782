"""
Knowledge Retrieval Client

Answers a question from a managed document corpus: documents are
retrieved from Azure AI Search, then an inference call produces an answer
grounded in them (RAG pattern: context passed explicitly, not discovered
via tool calling).

DESIGN RULES:
- Never raises to the caller; failures come back in `error`
- Citations list the documents the answer was grounded on
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from azure.core.credentials import AzureKeyCredential
from azure.search.documents.aio import SearchClient
from pydantic import BaseModel, Field

from app.core.config import Settings, settings as default_settings
from llm.base import InferenceClient, InferenceOptions

logger = logging.getLogger(__name__)


class KnowledgeRetrievalError(Exception):
    """Raised by the agent when a retrieval response carries an error."""


class KnowledgeResponse(BaseModel):
    result: str
    citations: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None


class KnowledgeClient(ABC):
    """Abstract base for knowledge retrieval backends."""

    @abstractmethod
    async def retrieve(self, question: str) -> KnowledgeResponse:
        pass

    async def test_connection(self) -> bool:
        response = await self.retrieve('Test connection - please respond with "Connection successful"')
        if response.error:
            logger.error(f"Knowledge retrieval connection failed: {response.error}")
            return False
        logger.info(f"Knowledge retrieval connection successful: {response.result[:60]}")
        return True


GROUNDED_ANSWER_PROMPT = """You are a helpful AI assistant. Answer the question based on the following context.

CONTEXT:
{context}

QUESTION: {question}

INSTRUCTIONS:
- Base your answer on the provided context
- Reference documents by their [id] when you use them
- If the context doesn't contain relevant information, say so
- Be accurate and concise"""


class AzureSearchKnowledgeClient(KnowledgeClient):
    """
    Knowledge retrieval over an Azure AI Search index.

    Args:
        inference: Client used to generate the grounded answer
        config: Settings with search endpoint, key, index and top-k
        search_client_factory: Builds a SearchClient; defaults to one from settings
    """

    ANSWER_OPTIONS = InferenceOptions(temperature=0.2, max_output_tokens=1500, top_p=0.9)

    CONTENT_FIELD = "content"
    SOURCE_FIELD = "source"
    ID_FIELD = "id"

    def __init__(
        self,
        inference: InferenceClient,
        config: Optional[Settings] = None,
        search_client_factory: Optional[Callable[[], SearchClient]] = None,
    ):
        self._inference = inference
        self._config = config or default_settings
        self._top_k = self._config.knowledge_top_k
        self._search_client_factory = search_client_factory or self._default_search_client

    @property
    def is_configured(self) -> bool:
        return bool(self._config.azure_search_endpoint and self._config.azure_search_api_key)

    def _default_search_client(self) -> SearchClient:
        return SearchClient(
            endpoint=self._config.azure_search_endpoint,
            index_name=self._config.azure_search_index,
            credential=AzureKeyCredential(self._config.azure_search_api_key),
        )

    async def _search(self, question: str) -> List[Dict[str, Any]]:
        client = self._search_client_factory()
        documents = []
        async with client:
            results = await client.search(search_text=question, top=self._top_k)
            async for doc in results:
                documents.append(dict(doc))
        return documents

    def _citation(self, index: int, doc: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": str(doc.get(self.ID_FIELD, f"doc_{index}")),
            "source": doc.get(self.SOURCE_FIELD, "unknown"),
            "score": doc.get("@search.score"),
        }

    def _build_prompt(self, question: str, documents: List[Dict[str, Any]]) -> str:
        context_parts = []
        for i, doc in enumerate(documents):
            citation = self._citation(i, doc)
            content = doc.get(self.CONTENT_FIELD, str(doc))
            context_parts.append(f"[{citation['id']}] ({citation['source']}): {content}")
        return GROUNDED_ANSWER_PROMPT.format(context="\n\n".join(context_parts), question=question)

    async def retrieve(self, question: str) -> KnowledgeResponse:
        """
        Answer `question` from the document corpus.

        Returns:
            KnowledgeResponse; `error` is populated on failure
        """
        if not self.is_configured:
            return KnowledgeResponse(
                result="Knowledge retrieval is not configured.",
                error="Azure Search endpoint or API key not configured",
            )

        try:
            documents = await self._search(question)
            if not documents:
                return KnowledgeResponse(result="No relevant documents found for this question.")

            answer = await self._inference.infer(self._build_prompt(question, documents), self.ANSWER_OPTIONS)
            return KnowledgeResponse(
                result=answer,
                citations=[self._citation(i, doc) for i, doc in enumerate(documents)],
            )
        except Exception as e:
            logger.error(f"Knowledge retrieval error: {e}")
            return KnowledgeResponse(
                result="Sorry, I encountered an error while querying the knowledge base.",
                error=str(e),
            )
