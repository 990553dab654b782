"""
Query API Route

Thin delegation layer to the agent loop.
Contains NO business logic, planning, or provider-specific code.

DESIGN RULE: This file should never change for LLM, MCP, or RAG work.
All intelligence lives in the orchestration layer.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends

from app.dependencies import get_agent, get_inference_client, get_knowledge_client, get_provider_manager
from knowledge.client import KnowledgeClient
from llm.base import InferenceClient
from mcp_client.manager import MultiProviderManager
from orchestration.agent import SmartAgent
from schemas.request import QueryRequest
from schemas.response import QueryResponse, StatusResponse, ToolDescriptor, ToolListResponse


router = APIRouter()


@router.post("/query", response_model=QueryResponse)
async def query(request: QueryRequest, agent: SmartAgent = Depends(get_agent)) -> QueryResponse:
    """
    Answer a natural-language query.

    Flow:
    1. Planner picks the next step until it decides to answer
    2. Steps run against tools, knowledge retrieval or reasoning
    3. Results are aggregated into one synthesized answer

    Failures come back as an answer with state "error", never as a 5xx.
    """
    result = await agent.run(request.query)
    return QueryResponse.from_run_result(result)


@router.get("/tools", response_model=ToolListResponse)
async def list_tools(manager: MultiProviderManager = Depends(get_provider_manager)) -> ToolListResponse:
    """List tools exposed by connected providers."""
    return ToolListResponse(
        providers=manager.connected_providers(),
        tools=[
            ToolDescriptor(name=tool.name, description=tool.description, provider=tool.provider)
            for tool in manager.list_all_tools()
        ],
    )


@router.get("/status", response_model=StatusResponse)
async def status(
    inference: InferenceClient = Depends(get_inference_client),
    knowledge: Optional[KnowledgeClient] = Depends(get_knowledge_client),
    manager: MultiProviderManager = Depends(get_provider_manager),
) -> StatusResponse:
    """Probe inference and knowledge backends and list connected providers."""
    return StatusResponse(
        inference=await inference.test_connection(),
        knowledge=await knowledge.test_connection() if knowledge is not None else None,
        providers=manager.connected_providers(),
        timestamp=datetime.now(),
    )
