"""
FastAPI Dependencies

All object creation happens here, not per request.
This module provides dependency injection for the agent layer.

RULE: FastAPI routes call exactly one entry point, SmartAgent.run()
"""

from functools import lru_cache
from typing import Optional

from app.core.config import Settings, settings
from knowledge.client import AzureSearchKnowledgeClient, KnowledgeClient
from llm.azure_openai import AzureOpenAIInferenceClient
from llm.base import InferenceClient
from llm.langchain_adapter import LangChainInferenceClient
from mcp_client.manager import MultiProviderManager
from mcp_client.registry import RegistryConfig
from observability.collector import TraceCollector
from observability.sink import ConsoleTraceSink, JsonTraceSink
from orchestration.agent import SmartAgent
from orchestration.prompts import PromptLibrary
from orchestration.state import LoopSettings


def get_settings() -> Settings:
    return settings


@lru_cache(maxsize=1)
def get_provider_manager() -> MultiProviderManager:
    """Process-wide tool registry; providers are connected in the app lifespan."""
    config = get_settings()
    return MultiProviderManager(
        RegistryConfig(
            tenant_provider=config.tenant_provider,
            tenant_param=config.tenant_param,
            tenant_id=config.tenant_id,
        )
    )


@lru_cache(maxsize=1)
def get_inference_client() -> InferenceClient:
    config = get_settings()
    if config.llm_provider == "azure_openai":
        return AzureOpenAIInferenceClient(config=config)
    return LangChainInferenceClient(config=config)


@lru_cache(maxsize=1)
def get_knowledge_client() -> Optional[KnowledgeClient]:
    config = get_settings()
    if not config.knowledge_enabled:
        return None
    return AzureSearchKnowledgeClient(get_inference_client(), config=config)


@lru_cache(maxsize=1)
def get_trace_collector() -> TraceCollector:
    config = get_settings()
    sink = JsonTraceSink() if config.trace_format == "json" else ConsoleTraceSink()
    return TraceCollector(sink=sink, enabled=config.trace_enabled)


@lru_cache(maxsize=1)
def get_agent() -> SmartAgent:
    """
    Create and cache the SmartAgent singleton.

    All components are wired here:
    - InferenceClient: planning, reasoning and synthesis
    - MultiProviderManager: tool calls across MCP providers
    - KnowledgeClient: optional document retrieval
    - TraceCollector: one trace per run

    Returns:
        SmartAgent: The single entry point for query answering.
    """
    config = get_settings()
    return SmartAgent(
        inference=get_inference_client(),
        tools=get_provider_manager(),
        knowledge=get_knowledge_client(),
        loop_settings=LoopSettings(
            max_steps=config.max_steps,
            max_consecutive_failures=config.max_consecutive_failures,
            max_similar_steps=config.max_similar_steps,
            min_confidence_for_continue=config.min_confidence_for_continue,
        ),
        prompts=PromptLibrary(config.prompts_dir),
        trace_collector=get_trace_collector(),
    )
