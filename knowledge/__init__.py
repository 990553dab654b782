# Knowledge Package
from knowledge.client import (
    AzureSearchKnowledgeClient,
    KnowledgeClient,
    KnowledgeResponse,
    KnowledgeRetrievalError,
)

__all__ = ["AzureSearchKnowledgeClient", "KnowledgeClient", "KnowledgeResponse", "KnowledgeRetrievalError"]
