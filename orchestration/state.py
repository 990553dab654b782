from enum import Enum
from typing import Any, Dict, List, Set

from pydantic import BaseModel, Field

from schemas.step import ExecutionStep, StepStatus


class RunState(str, Enum):
    """
    Lifecycle of a single query run.

    RUNNING   -> loop may request another decision
    COMPLETED -> planner chose final_response
    STOPPED   -> planner output was not worth executing (low confidence, repeated plan)
    EXHAUSTED -> step, failure or similar-step limit reached
    ERROR     -> unexpected exception, answered with an apology
    """
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"
    EXHAUSTED = "exhausted"
    ERROR = "error"


class LoopSettings(BaseModel):
    """
    Runtime-tunable loop limits.
    """
    max_steps: int = Field(default=8, ge=1, description="Maximum executed steps per run")
    max_consecutive_failures: int = Field(default=3, ge=1, description="Stop after this many failures in a row")
    max_similar_steps: int = Field(default=2, ge=1, description="Stop when this many recent steps share type and tool")
    min_confidence_for_continue: float = Field(default=0.7, ge=0.0, le=1.0, description="Decisions below this stop the run")


class ExecutionContext(BaseModel):
    """
    Mutable state of one query run (internal use).

    Owned by a single run and discarded when it returns.
    """
    user_query: str
    steps: List[ExecutionStep] = Field(default_factory=list)
    current_step_index: int = 0
    context: Dict[str, Any] = Field(default_factory=dict)
    step_history: Set[str] = Field(default_factory=set)
    consecutive_failures: int = 0
    last_step_result: Any = None

    @property
    def completed_steps(self) -> List[ExecutionStep]:
        return [s for s in self.steps if s.status == StepStatus.COMPLETED]

    @property
    def failed_steps(self) -> List[ExecutionStep]:
        return [s for s in self.steps if s.status == StepStatus.FAILED]

    def record_success(self, step: ExecutionStep, result: Any) -> None:
        step.complete(result)
        self.consecutive_failures = 0
        self.last_step_result = result
        self.context[step.id] = result

    def record_failure(self, step: ExecutionStep, error: str) -> None:
        step.fail(error)
        self.consecutive_failures += 1


def _recent_steps_similar(context: ExecutionContext, window: int) -> bool:
    recent = context.steps[-window:]
    if len(recent) < window:
        return False
    first = recent[0]
    return all(s.type == first.type and s.tool == first.tool for s in recent)


def next_state(context: ExecutionContext, limits: LoopSettings) -> RunState:
    """
    Decide whether the loop may request another step.

    Pure function of the context and limits; returns RUNNING or EXHAUSTED.
    """
    if context.consecutive_failures >= limits.max_consecutive_failures:
        return RunState.EXHAUSTED
    if context.current_step_index >= limits.max_steps:
        return RunState.EXHAUSTED
    if _recent_steps_similar(context, limits.max_similar_steps):
        return RunState.EXHAUSTED
    return RunState.RUNNING


class AgentRunResult(BaseModel):
    """
    Final output of a query run.
    """
    query: str
    answer: str
    state: RunState
    steps: List[ExecutionStep] = Field(default_factory=list)
    consecutive_failures: int = 0

    @property
    def successful_steps(self) -> int:
        return sum(1 for s in self.steps if s.status == StepStatus.COMPLETED)

    @property
    def failed_steps(self) -> int:
        return sum(1 for s in self.steps if s.status == StepStatus.FAILED)
