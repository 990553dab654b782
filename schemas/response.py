from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from orchestration.state import AgentRunResult


class StepSummary(BaseModel):
    """Public view of one executed step (results are not echoed back)."""
    id: str
    type: str
    tool: Optional[str] = None
    query: Optional[str] = None
    reasoning: str
    status: str
    error: Optional[str] = None


class QueryResponse(BaseModel):
    """
    API response model for the /query endpoint.

    This is the external contract: clients receive this.
    """
    answer: str = Field(..., description="Synthesized answer")
    state: str = Field(..., description="How the run ended: completed, stopped, exhausted or error")
    total_steps: int = Field(default=0, description="Number of executed steps")
    successful_steps: int = 0
    failed_steps: int = 0
    steps: List[StepSummary] = Field(default_factory=list)

    @classmethod
    def from_run_result(cls, result: "AgentRunResult") -> "QueryResponse":
        return cls(
            answer=result.answer,
            state=result.state.value,
            total_steps=len(result.steps),
            successful_steps=result.successful_steps,
            failed_steps=result.failed_steps,
            steps=[
                StepSummary(
                    id=step.id,
                    type=step.type,
                    tool=step.tool,
                    query=step.query,
                    reasoning=step.reasoning,
                    status=step.status.value,
                    error=step.error,
                )
                for step in result.steps
            ],
        )


class ToolDescriptor(BaseModel):
    name: str
    description: str
    provider: str


class ToolListResponse(BaseModel):
    providers: List[str] = Field(default_factory=list, description="Connected providers")
    tools: List[ToolDescriptor] = Field(default_factory=list)


class StatusResponse(BaseModel):
    """Connectivity of the agent's collaborators."""
    inference: bool = Field(..., description="Inference backend answered a probe prompt")
    knowledge: Optional[bool] = Field(default=None, description="Knowledge probe result; null when disabled")
    providers: List[str] = Field(default_factory=list, description="Connected providers")
    timestamp: datetime
