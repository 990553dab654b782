"""
Step Schemas

Planner decisions and executed steps for the agent loop.

DESIGN RULES:
- A step is created immediately before execution and never deleted
- Status only moves forward: pending -> executing -> completed | failed
- Step type is fixed at creation
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


class StepType(str, Enum):
    """Kinds of work the planner can ask for."""
    TOOL_CALL = "tool_call"
    KNOWLEDGE_QUERY = "knowledge_query"
    REASONING = "reasoning"
    FINAL_RESPONSE = "final_response"


class StepStatus(str, Enum):
    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


_ALLOWED_TRANSITIONS = {
    StepStatus.PENDING: {StepStatus.EXECUTING},
    StepStatus.EXECUTING: {StepStatus.COMPLETED, StepStatus.FAILED},
    StepStatus.COMPLETED: set(),
    StepStatus.FAILED: set(),
}


class StepDecision(BaseModel):
    """
    The planner's proposed next action.

    `type` is kept as a plain string so an unrecognized value survives
    parsing and fails at execution time instead of at the planner seam.
    """
    type: str = Field(default=StepType.FINAL_RESPONSE.value, description="Requested step type")
    tool: Optional[str] = Field(default=None, description="Tool name for tool_call steps")
    parameters: Dict[str, Any] = Field(default_factory=dict, description="Tool arguments")
    query: Optional[str] = Field(default=None, description="Question for knowledge_query steps")
    reasoning: str = Field(default="No reasoning provided", description="Planner justification")
    confidence: float = Field(default=0.5, description="Planner confidence in [0, 1]")

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: float) -> float:
        return max(0.0, min(1.0, value))

    def signature(self) -> str:
        """Canonical encoding used to detect repeated plans."""
        params = json.dumps(self.parameters or {}, sort_keys=True, default=str)
        return f"{self.type}:{self.tool or ''}:{self.query or ''}:{params}"

    @classmethod
    def fallback(cls, reasoning: str) -> "StepDecision":
        """Safe terminal decision used when planning fails."""
        return cls(
            type=StepType.FINAL_RESPONSE.value,
            reasoning=reasoning,
            confidence=0.5,
        )


class ExecutionStep(BaseModel):
    """
    One planned-and-executed unit of work.
    """
    id: str = Field(..., description="Run-scoped identifier, step_<n>")
    type: str = Field(..., frozen=True, description="Step type, immutable once set")
    tool: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None
    query: Optional[str] = None
    reasoning: str
    status: StepStatus = StepStatus.PENDING
    result: Any = None
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)

    @classmethod
    def from_decision(cls, decision: StepDecision, step_id: str) -> "ExecutionStep":
        """Build a step from a decision, carrying only the fields its type uses."""
        is_tool_call = decision.type == StepType.TOOL_CALL
        is_knowledge = decision.type == StepType.KNOWLEDGE_QUERY
        return cls(
            id=step_id,
            type=decision.type,
            tool=decision.tool if is_tool_call else None,
            parameters=dict(decision.parameters) if is_tool_call else None,
            query=decision.query if is_knowledge else None,
            reasoning=decision.reasoning,
        )

    @property
    def has_result(self) -> bool:
        return self.status == StepStatus.COMPLETED and self.result is not None

    def _transition(self, target: StepStatus) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise ValueError(f"Illegal step transition {self.status.value} -> {target.value} for {self.id}")
        self.status = target

    def start(self) -> None:
        self._transition(StepStatus.EXECUTING)

    def complete(self, result: Any) -> None:
        self._transition(StepStatus.COMPLETED)
        self.result = result
        self.error = None

    def fail(self, error: str) -> None:
        self._transition(StepStatus.FAILED)
        self.result = None
        self.error = error
